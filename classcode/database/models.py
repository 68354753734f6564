"""
Модели данных (dataclasses)
"""

from dataclasses import dataclass
from datetime import datetime, time
from enum import Enum
from typing import Optional


class CodeStatus(str, Enum):
    """Статус кода"""

    ACTIVE = "active"
    EXPIRED = "expired"


@dataclass
class SchoolClass:
    """Класс (учебная группа)"""
    id: int
    name: str
    level: Optional[str]
    status: str


@dataclass
class ClassSchedule:
    """Еженедельное расписание класса"""
    id: int
    class_id: int
    day_of_week: str
    start_time: time
    end_time: time
    status: str  # active, inactive


@dataclass
class Tutor:
    """Преподаватель"""
    id: int
    tg_id: Optional[int]
    first_name: str
    last_name: str


@dataclass
class Student:
    """Студент"""
    id: int
    tg_id: Optional[int]
    class_id: Optional[int]
    full_name: Optional[str]


@dataclass
class Topic:
    """Тема курса"""
    id: int
    name: str
    level_id: Optional[int]
    order_index: int = 0


@dataclass
class ClassCode:
    """Код преподавателя (выдаётся во время занятия)"""
    id: int
    class_id: int
    schedule_id: int
    topic_id: Optional[int]
    code: str
    valid_from: datetime
    valid_until: datetime
    generated_by_tutor_id: Optional[int]
    status: str
    created_at: datetime


@dataclass
class SelfStudyCode:
    """Код самостоятельной практики (запрашивает студент)"""
    id: int
    student_id: int
    class_id: int
    schedule_id: int
    topic_id: Optional[int]
    code: str
    valid_from: datetime
    valid_until: datetime
    message_id: Optional[int]
    conversation_id: Optional[int]
    status: str
    created_at: datetime


@dataclass
class SelfStudyUsage:
    """Факт успешной проверки кода самостоятельной практики"""
    id: int
    student_id: int
    self_class_code_id: int
    topic_id: Optional[int]
    used_at: datetime


@dataclass
class Conversation:
    """Диалог 1:1 (участники хранятся в каноническом порядке)"""
    id: int
    participant_a_type: str
    participant_a_id: int
    participant_b_type: str
    participant_b_id: int


@dataclass
class ChatMessage:
    """Сообщение диалога и его копия в Telegram"""
    id: int
    conversation_id: int
    sender_type: str
    sender_id: int
    content: str
    tg_chat_id: Optional[int]
    tg_message_id: Optional[int]
    created_at: datetime
