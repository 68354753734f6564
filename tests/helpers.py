"""
Общие помощники для тестов: моменты времени в канонической зоне
"""

from datetime import date, datetime, timedelta

from classcode import clock

# Понедельник
MONDAY = date(2024, 1, 1)


def at(hour: int, minute: int = 0, second: int = 0, day: int = 0) -> datetime:
    """Момент в канонической зоне: MONDAY + day дней, hour:minute:second"""
    moment = datetime(MONDAY.year, MONDAY.month, MONDAY.day, hour, minute, second, tzinfo=clock.TZ)
    return moment + timedelta(days=day)
