"""
Коды преподавателя — выдаются только во время занятия

Один активный код на класс. Код принимается в окне занятия −5 / +20 минут.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, List

from classcode import clock
from classcode.config import config
from classcode.database import queries as db
from classcode.database.models import ClassCode, ClassSchedule, CodeStatus, SchoolClass, Topic
from classcode.exceptions import (
    ActiveCodeConflictError,
    ClassNotFoundError,
    NoTutorAssignedError,
    OutsideGenerationWindowError,
    ScheduleNotFoundError,
    TopicNotEnrolledError,
    TopicNotFoundError,
)
from classcode.services import schedule as sched
from classcode.services.allocator import CodeAllocator, default_allocator
from classcode.services.results import CodeCheck, CodeVerdict

logger = logging.getLogger(__name__)

# Заменяется в тестах
allocator: CodeAllocator = default_allocator()


@dataclass
class ClassOverview:
    """Сводка по классу для преподавателя"""
    school_class: SchoolClass
    schedule: Optional[ClassSchedule]
    status: sched.ClassStatus
    can_generate_code: bool
    window: Optional[sched.Window]
    next_class: Optional[datetime]
    current_code: Optional[ClassCode]


# ============================================
# Generate
# ============================================

async def generate_code(class_id: int, topic_id: int, tutor_id: Optional[int] = None) -> ClassCode:
    """
    Создать код для класса.
    Проверки по порядку: класс, расписание, преподаватель, тема, окно генерации.
    """
    now = clock.now()

    school_class = await db.get_class(class_id)
    if not school_class:
        raise ClassNotFoundError(class_id)

    schedule = await db.get_active_schedule(class_id)
    if not schedule:
        raise ScheduleNotFoundError(class_id)

    if await db.count_active_tutors(class_id) == 0:
        raise NoTutorAssignedError(class_id)

    topic = await db.get_topic(topic_id)
    if not topic:
        raise TopicNotFoundError(topic_id)
    if not topic.level_id:
        raise TopicNotFoundError(topic_id, "Topic does not have an associated course level")
    if not await db.is_level_enrolled(class_id, topic.level_id):
        raise TopicNotEnrolledError(class_id, topic_id)

    session = sched.resolve_session(schedule, now)
    window = sched.generation_window(session)
    if window is None or not window.contains(now):
        raise OutsideGenerationWindowError(
            now=now,
            day_of_week=schedule.day_of_week,
            session_start=session.start,
            session_end=session.end,
            next_class=sched.next_class_start(schedule, now)
        )

    validity = sched.validity_window(session)

    attempts = max(config.GENERATE_MAX_ATTEMPTS, 1)
    for attempt in range(1, attempts + 1):
        code = await allocator.allocate(class_id)
        try:
            class_code = await db.replace_active_class_code(
                class_id, schedule.id, topic_id, code, validity.start, validity.end, tutor_id
            )
        except ActiveCodeConflictError:
            logger.warning(f"Класс {class_id}: конфликт активного кода, попытка {attempt}")
            if attempt == attempts:
                raise
            continue

        logger.info(
            f"Класс {class_id}: создан код {class_code.code} "
            f"({clock.format_hm(validity.start)}–{clock.format_hm(validity.end)})"
        )
        return class_code


# ============================================
# Validate
# ============================================

async def validate_code(class_id: int, code: str) -> CodeCheck:
    """
    Проверить код класса. Код не одноразовый: повторные проверки в окне
    проходят. Просроченный код помечается expired.
    """
    now = clock.now()

    class_code = await db.get_active_class_code(class_id, code.strip())
    if not class_code:
        return CodeCheck(CodeVerdict.NOT_FOUND, server_time=now)

    if now < class_code.valid_from:
        return CodeCheck(CodeVerdict.NOT_YET_VALID, server_time=now, code=class_code)

    if sched.derive_status(class_code, now) is CodeStatus.EXPIRED:
        await db.expire_class_codes([class_code.id])
        class_code.status = CodeStatus.EXPIRED.value
        return CodeCheck(CodeVerdict.EXPIRED, server_time=now, code=class_code)

    return CodeCheck(
        CodeVerdict.VALID,
        server_time=now,
        code=class_code,
        topic_id=class_code.topic_id
    )


async def redeem_code(student_id: int, class_id: int, code: str) -> CodeCheck:
    """Проверка кода студентом: при успехе пишем использование в отчёт"""
    check = await validate_code(class_id, code)
    if check.valid:
        await db.record_class_code_usage(student_id, check.code.id, check.topic_id, check.server_time)
    return check


# ============================================
# Read-only
# ============================================

async def get_active_code(class_id: int) -> Optional[ClassCode]:
    """Текущий живой код класса"""
    return await db.get_current_class_code(class_id, clock.now())


async def get_code_history(class_id: int, limit: int = 10) -> List[ClassCode]:
    return await db.get_class_code_history(class_id, limit)


async def get_topics_for_enrolled_levels(class_id: int) -> List[Topic]:
    return await db.get_topics_for_enrolled_levels(class_id)


async def get_class_overview(class_id: int, now: Optional[datetime] = None) -> ClassOverview:
    """Статус класса, окно на сегодня, следующее занятие, текущий код"""
    now = now or clock.now()

    school_class = await db.get_class(class_id)
    if not school_class:
        raise ClassNotFoundError(class_id)

    schedule = await db.get_active_schedule(class_id)
    has_tutor = await db.count_active_tutors(class_id) > 0
    session = sched.resolve_session(schedule, now)
    window = sched.generation_window(session)

    return ClassOverview(
        school_class=school_class,
        schedule=schedule,
        status=sched.class_status(schedule, has_tutor, now),
        can_generate_code=has_tutor and window is not None and window.contains(now),
        window=window,
        next_class=sched.next_class_start(schedule, now),
        current_code=await db.get_current_class_code(class_id, now)
    )


async def get_tutor_classes(tutor_id: int) -> List[ClassOverview]:
    """Сводка по всем классам преподавателя (одно "now" на весь список)"""
    now = clock.now()
    class_ids = await db.get_tutor_class_ids(tutor_id)
    return [await get_class_overview(class_id, now) for class_id in class_ids]


async def debug_class_info(class_id: int) -> dict:
    """Диагностика: расписание, окна и текущий код так, как их видит сервер"""
    now = clock.now()
    schedule = await db.get_active_schedule(class_id)
    tutor_count = await db.count_active_tutors(class_id)
    session = sched.resolve_session(schedule, now)
    generation = sched.generation_window(session)
    validity = sched.validity_window(session)
    within = sched.is_within_generation_window(schedule, now)
    current = await db.get_current_class_code(class_id, now)

    def iso(moment):
        return moment.isoformat() if moment else None

    return {
        "server_time": {
            "iso": now.isoformat(),
            "day": clock.day_name(now),
            "timezone": config.TIMEZONE,
        },
        "schedule": {
            "id": schedule.id,
            "day_of_week_raw": schedule.day_of_week,
            "day_of_week": sched.normalize_day(schedule.day_of_week),
            "start_time": str(schedule.start_time),
            "end_time": str(schedule.end_time),
            "status": schedule.status,
        } if schedule else None,
        "calculated": {
            "days_match": session.is_today,
            "session_start": iso(session.start),
            "session_end": iso(session.end),
            "generation_window": [iso(generation.start), iso(generation.end)] if generation else None,
            "validity_window": [iso(validity.start), iso(validity.end)] if validity else None,
            "within_generation_window": within,
            "next_class": iso(sched.next_class_start(schedule, now)),
        },
        "tutors": {
            "count": tutor_count,
            "has_tutor": tutor_count > 0,
        },
        "current_code": {
            "code": current.code,
            "valid_from": iso(current.valid_from),
            "valid_until": iso(current.valid_until),
            "topic_id": current.topic_id,
        } if current else None,
        "can_generate": within and tutor_count > 0,
    }
