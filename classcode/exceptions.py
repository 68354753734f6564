"""
Исключения движка кодов доступа

NotFoundError / PreconditionFailedError — детерминированные отказы, текст
исключения можно показывать пользователю как есть.
"""

from datetime import datetime
from typing import Optional

from classcode import clock


class ClassCodeError(Exception):
    """Базовое исключение сервиса"""

    pass


# ============================================
# Not found
# ============================================

class NotFoundError(ClassCodeError):
    """Сущность не найдена"""

    pass


class ClassNotFoundError(NotFoundError):
    def __init__(self, class_id: int):
        self.class_id = class_id
        super().__init__("Class not found")


class ScheduleNotFoundError(NotFoundError):
    def __init__(self, class_id: int):
        self.class_id = class_id
        super().__init__("Class does not have a schedule. Please assign a schedule first.")


class TopicNotFoundError(NotFoundError):
    def __init__(self, topic_id: int, reason: str = "Topic not found"):
        self.topic_id = topic_id
        super().__init__(reason)


class StudentNotFoundError(NotFoundError):
    def __init__(self, student_id: int):
        self.student_id = student_id
        super().__init__("Student or class not found")


class SystemParticipantNotFoundError(NotFoundError):
    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Class Code system user '{email}' not found. Run the migrations.")


# ============================================
# Preconditions
# ============================================

class PreconditionFailedError(ClassCodeError):
    """Действие сейчас невозможно"""

    pass


class NoTutorAssignedError(PreconditionFailedError):
    def __init__(self, class_id: int):
        self.class_id = class_id
        super().__init__("Class does not have any tutors assigned. Please assign a tutor first.")


class TopicNotEnrolledError(PreconditionFailedError):
    def __init__(self, class_id: int, topic_id: int):
        self.class_id = class_id
        self.topic_id = topic_id
        super().__init__("Topic must belong to a course level that is enrolled for this class")


class OutsideGenerationWindowError(PreconditionFailedError):
    """Код преподавателя можно создать только во время занятия"""

    def __init__(
        self,
        now: datetime,
        day_of_week: str,
        session_start: Optional[datetime],
        session_end: Optional[datetime],
        next_class: Optional[datetime],
    ):
        self.now = now
        self.day_of_week = day_of_week
        self.session_start = session_start
        self.session_end = session_end
        self.next_class = next_class

        message = "Cannot generate code outside class time. "
        if session_start and session_end:
            message += (
                f"Class runs from {clock.format_hm(session_start)} to {clock.format_hm(session_end)}. "
                f"Current server time: {clock.format_hm(now)}. "
            )
        else:
            message += f"Class is scheduled for {day_of_week} (today is {clock.day_name(now)}). "
        message += f"Next class: {clock.format_full(next_class) if next_class else 'Unknown'}"
        super().__init__(message)


class DuringClassError(PreconditionFailedError):
    def __init__(self, session_end: datetime):
        self.session_end = session_end
        super().__init__(
            "Cannot request self-study code during class time. "
            "The teacher will provide the code during class."
        )


class CooldownActiveError(PreconditionFailedError):
    def __init__(self, cooldown_until: datetime, cooldown_hours: int):
        self.cooldown_until = cooldown_until
        super().__init__(
            f"Please wait until {clock.format_hm(cooldown_until)} to request a new code "
            f"({cooldown_hours} hour cooldown after expiry)."
        )


class NoTopicsAvailableError(PreconditionFailedError):
    def __init__(self, class_id: int):
        self.class_id = class_id
        super().__init__("No topics available for your class.")


# ============================================
# Store / allocation / messaging
# ============================================

class ActiveCodeConflictError(ClassCodeError):
    """Параллельная запись нарушила правило одного активного кода на класс"""

    def __init__(self, class_id: int):
        self.class_id = class_id
        super().__init__(f"Another active code was created for class {class_id} concurrently")


class CodeAllocationError(ClassCodeError):
    """Основной аллокатор не смог выдать код"""

    pass


class MessagingError(ClassCodeError):
    """Ошибка чат-слоя (Telegram или таблицы диалогов)"""

    pass


class MessagingDeliveryError(ClassCodeError):
    """Код сохранён, но сообщение студенту не доставлено"""

    def __init__(self, self_code, cause: Exception):
        self.self_code = self_code
        self.cause = cause
        super().__init__(
            f"Your code {self_code.code} was created but could not be delivered to the chat: {cause}"
        )
