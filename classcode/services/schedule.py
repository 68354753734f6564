"""
Расписание → окна времени

Чистые функции от (расписание, now): сессия "сегодня", окно генерации,
окно действия кода, статус класса, следующее занятие, статус кода.
Ничего не читают из БД и не берут время сами.
"""

from dataclasses import dataclass
from datetime import datetime, time, timedelta
from enum import Enum
from typing import Optional, Union

from classcode import clock
from classcode.config import config
from classcode.database.models import ClassSchedule, CodeStatus


class ClassStatus(str, Enum):
    """Статус класса для отображения (на выдачу кодов не влияет)"""

    UNASSIGNED = "unassigned"
    ASSIGNED = "assigned"
    UPCOMING = "upcoming"
    TODAY = "today"
    TOMORROW = "tomorrow"
    PAST = "past"


@dataclass
class Session:
    """Занятие на сегодня. start/end = None, если сегодня не день занятия"""
    start: Optional[datetime]
    end: Optional[datetime]
    is_today: bool

    def contains(self, moment: datetime) -> bool:
        """Момент внутри [start, end] (границы включены)"""
        if not self.is_today:
            return False
        return self.start <= moment <= self.end


@dataclass
class Window:
    """Замкнутый интервал времени"""
    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


# ============================================
# Schedule resolver
# ============================================

def normalize_day(day: Optional[str]) -> str:
    return (day or "").strip().lower()


def parse_time(value: Union[time, str, None]) -> time:
    """TIME из БД или строка 'HH:MM' / 'HH:MM:SS'"""
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    parts = (value or "00:00")[:5].split(":")
    hours = int(parts[0] or 0)
    minutes = int(parts[1] or 0) if len(parts) > 1 else 0
    return time(hours, minutes)


def combine(moment: datetime, at: Union[time, str], add_days: int = 0) -> datetime:
    """Дата момента (в канонической зоне) + время суток"""
    local = clock.localize(moment)
    day = local.date() + timedelta(days=add_days)
    return datetime.combine(day, parse_time(at), tzinfo=clock.TZ)


def is_schedule_day(schedule: ClassSchedule, moment: datetime) -> bool:
    return normalize_day(schedule.day_of_week) == clock.day_name(moment)


def resolve_session(schedule: Optional[ClassSchedule], now: datetime) -> Session:
    """Превратить еженедельное расписание в конкретное занятие сегодня"""
    if schedule is None or not is_schedule_day(schedule, now):
        return Session(start=None, end=None, is_today=False)

    return Session(
        start=combine(now, schedule.start_time),
        end=combine(now, schedule.end_time),
        is_today=True
    )


# ============================================
# Window calculator
# ============================================

def generation_window(session: Session) -> Optional[Window]:
    """Когда преподаватель может создать код: само занятие"""
    if not session.is_today:
        return None
    return Window(start=session.start, end=session.end)


def validity_window(session: Session) -> Optional[Window]:
    """Когда созданный код принимается: занятие −5 мин / +20 мин"""
    if not session.is_today:
        return None
    return Window(
        start=session.start - timedelta(minutes=config.CODE_VALID_BEFORE_START_MIN),
        end=session.end + timedelta(minutes=config.CODE_VALID_AFTER_END_MIN)
    )


def is_within_generation_window(schedule: Optional[ClassSchedule], now: datetime) -> bool:
    window = generation_window(resolve_session(schedule, now))
    return window is not None and window.contains(now)


def self_study_window(created_at: datetime) -> Window:
    """Код самостоятельной практики: фиксированные N часов от создания"""
    return Window(
        start=created_at,
        end=created_at + timedelta(hours=config.SELF_CODE_VALID_HOURS)
    )


def cooldown_until(last_expired_until: datetime) -> datetime:
    """Момент, когда студент снова может запросить код"""
    return last_expired_until + timedelta(hours=config.SELF_CODE_COOLDOWN_HOURS)


# ============================================
# Class status
# ============================================

def class_status(schedule: Optional[ClassSchedule], has_tutor: bool, now: datetime) -> ClassStatus:
    if schedule is None or not has_tutor:
        return ClassStatus.UNASSIGNED

    session = resolve_session(schedule, now)
    if session.is_today:
        if now < session.start:
            return ClassStatus.UPCOMING
        if now <= session.end:
            return ClassStatus.TODAY
        return ClassStatus.PAST

    tomorrow = clock.localize(now) + timedelta(days=1)
    if is_schedule_day(schedule, tomorrow):
        return ClassStatus.TOMORROW

    return ClassStatus.ASSIGNED


def next_class_start(schedule: Optional[ClassSchedule], now: datetime) -> Optional[datetime]:
    """
    Ближайшее будущее занятие по дню расписания.
    Сегодняшнее — только если оно ещё не началось, иначе через неделю.
    """
    if schedule is None:
        return None

    day = normalize_day(schedule.day_of_week)
    if day not in clock.DAY_NAMES:
        return None

    today_index = clock.localize(now).weekday()
    days_ahead = (clock.DAY_NAMES.index(day) - today_index) % 7
    start = combine(now, schedule.start_time, add_days=days_ahead)
    if start <= now:
        start = combine(now, schedule.start_time, add_days=days_ahead + 7)
    return start


# ============================================
# Code status
# ============================================

def derive_status(record, now: datetime) -> CodeStatus:
    """
    Статус кода на момент now. Общая функция для ленивой проверки
    (validate) и для планировщика: запись в БД — только побочный эффект.
    """
    if record.status == CodeStatus.EXPIRED.value:
        return CodeStatus.EXPIRED
    if now > record.valid_until:
        return CodeStatus.EXPIRED
    return CodeStatus.ACTIVE
