"""
Каноническое время сервиса

Все расчёты окон ведутся в одной зоне (config.TIMEZONE). Время клиента
никогда не используется для проверки кодов.
"""

from datetime import datetime
from zoneinfo import ZoneInfo

from classcode.config import config

TZ = ZoneInfo(config.TIMEZONE)

DAY_NAMES = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


def now() -> datetime:
    """Текущий момент в канонической зоне"""
    return datetime.now(TZ)


def localize(moment: datetime) -> datetime:
    """Привести момент к канонической зоне (naive считается уже локальным)"""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=TZ)
    return moment.astimezone(TZ)


def day_name(moment: datetime) -> str:
    """Название дня недели в канонической зоне: 'monday' ... 'sunday'"""
    return DAY_NAMES[localize(moment).weekday()]


def format_hm(moment: datetime) -> str:
    """HH:MM в канонической зоне"""
    return localize(moment).strftime("%H:%M")


def format_full(moment: datetime) -> str:
    """Дата и время для сообщений пользователю"""
    return localize(moment).strftime("%a %d %b %Y, %H:%M")
