"""
Коды самостоятельной практики — студент запрашивает сам, вне занятия

Код живёт 6 часов от создания и приходит в чат от системного участника
"Class Code". После истечения — 4 часа ожидания до следующего запроса.
"""

import logging
import random
from datetime import datetime
from typing import Optional

from classcode import clock
from classcode.config import config
from classcode.database import queries as db
from classcode.database.models import CodeStatus, SelfStudyCode, Student
from classcode.exceptions import (
    CooldownActiveError,
    DuringClassError,
    MessagingDeliveryError,
    MessagingError,
    NoTopicsAvailableError,
    ScheduleNotFoundError,
    StudentNotFoundError,
    SystemParticipantNotFoundError,
)
from classcode.services import messaging
from classcode.services import schedule as sched
from classcode.services.allocator import generate_numeric_code
from classcode.services.results import CodeCheck, CodeVerdict, Eligibility, SelfStudyIssue

logger = logging.getLogger(__name__)


# ============================================
# Helpers
# ============================================

def format_code_message(code: str, valid_until: datetime, topic_name: str, is_expired: bool) -> str:
    """Текст сообщения с кодом (живой / истёкший)"""
    if is_expired:
        return (
            f"🔑 Your self-study class code: {code} (Expired). "
            f"You can request a new code in {config.SELF_CODE_COOLDOWN_HOURS} hours."
        )
    return (
        f"🔑 Your self-study class code: {code} (Valid until {clock.format_hm(valid_until)}). "
        f"Topic: {topic_name}. Use for home practice."
    )


async def get_cooldown_until(student_id: int, now: datetime) -> Optional[datetime]:
    """Время окончания cooldown, если студент сейчас в нём; иначе None"""
    last_expired = await db.get_latest_expired_self_code(student_id)
    if not last_expired:
        return None

    until = sched.cooldown_until(last_expired.valid_until)
    if now < until:
        return until
    return None


async def _get_student_class(student_id: int) -> Student:
    student = await db.get_student(student_id)
    if not student or not student.class_id:
        raise StudentNotFoundError(student_id)
    return student


async def _get_system_participant_id() -> int:
    system_id = await db.get_admin_id_by_email(config.CLASS_CODE_SYSTEM_EMAIL)
    if system_id is None:
        raise SystemParticipantNotFoundError(config.CLASS_CODE_SYSTEM_EMAIL)
    return system_id


# ============================================
# Request
# ============================================

async def request_code(student_id: int) -> SelfStudyIssue:
    """
    Выдать код самостоятельной практики.
    Отказ: во время занятия, в cooldown, нет тем.
    Код сохраняется до отправки в чат; ошибка доставки не глотается.
    """
    now = clock.now()

    student = await _get_student_class(student_id)
    class_id = student.class_id

    schedule = await db.get_active_schedule(class_id)
    if not schedule:
        raise ScheduleNotFoundError(class_id)

    session = sched.resolve_session(schedule, now)
    if session.contains(now):
        raise DuringClassError(session.end)

    cooldown = await get_cooldown_until(student_id, now)
    if cooldown:
        raise CooldownActiveError(cooldown, config.SELF_CODE_COOLDOWN_HOURS)

    topics = await db.get_topics_for_enrolled_levels(class_id)
    if not topics:
        raise NoTopicsAvailableError(class_id)
    topic = random.choice(topics)

    system_id = await _get_system_participant_id()

    window = sched.self_study_window(now)
    self_code = await db.create_self_study_code(
        student_id, class_id, schedule.id, topic.id,
        generate_numeric_code(), window.start, window.end
    )
    logger.info(
        f"Студент {student_id}: код самостоятельной практики {self_code.code} "
        f"до {clock.format_hm(window.end)} (тема {topic.id})"
    )

    try:
        conversation_id = await messaging.find_or_create_conversation(
            "student", student_id, "admin", system_id
        )
        message = await messaging.send_message(
            conversation_id,
            "admin",
            system_id,
            format_code_message(self_code.code, window.end, topic.name or "General", False)
        )
    except MessagingError as e:
        logger.error(f"Студент {student_id}: код {self_code.id} не доставлен: {e}")
        raise MessagingDeliveryError(self_code, e) from e

    self_code = await db.attach_self_study_message(self_code.id, message.id, conversation_id)
    return SelfStudyIssue(self_code=self_code, topic=topic)


# ============================================
# Validate
# ============================================

async def validate_code(student_id: int, class_id: int, code: str) -> CodeCheck:
    """
    Проверить код студента. Не одноразовый: каждая успешная проверка
    пишется в журнал использования.
    """
    now = clock.now()

    self_code = await db.find_self_study_code(student_id, class_id, code.strip())
    if not self_code:
        return CodeCheck(CodeVerdict.NOT_FOUND, server_time=now)

    if self_code.student_id != student_id:
        return CodeCheck(CodeVerdict.NOT_OWNER, server_time=now)

    if sched.derive_status(self_code, now) is CodeStatus.EXPIRED:
        if self_code.status == CodeStatus.ACTIVE.value:
            await db.expire_self_study_codes([self_code.id])
            self_code.status = CodeStatus.EXPIRED.value
            try:
                await update_expired_message(self_code)
            except MessagingError as e:
                logger.warning(f"Код {self_code.id}: не удалось обновить сообщение: {e}")
        return CodeCheck(CodeVerdict.EXPIRED, server_time=now, code=self_code)

    await db.record_self_study_usage(student_id, self_code.id, self_code.topic_id, now)

    return CodeCheck(
        CodeVerdict.VALID,
        server_time=now,
        code=self_code,
        topic_id=self_code.topic_id
    )


async def update_expired_message(self_code: SelfStudyCode):
    """Переписать сообщение с кодом на "Expired" """
    if not self_code.message_id or not self_code.conversation_id:
        return

    await messaging.update_message_content(
        self_code.message_id,
        self_code.conversation_id,
        format_code_message(self_code.code, self_code.valid_until, "N/A", True)
    )


# ============================================
# Eligibility
# ============================================

async def get_eligibility(student_id: int) -> Eligibility:
    """Пройдёт ли запрос сейчас, и если нет — почему и когда пройдёт"""
    now = clock.now()

    student = await db.get_student(student_id)
    if not student or not student.class_id:
        return Eligibility(can_request=False, reason="Student or class not found")

    schedule = await db.get_active_schedule(student.class_id)
    if not schedule:
        return Eligibility(can_request=False, reason="Class has no schedule")

    session = sched.resolve_session(schedule, now)
    cooldown = await get_cooldown_until(student_id, now)

    if session.contains(now):
        return Eligibility(
            can_request=False,
            reason="Cannot request during class time. Teacher will provide the code.",
            during_class=True,
            class_ends_at=session.end,
            cooldown_until=cooldown
        )

    if cooldown:
        return Eligibility(
            can_request=False,
            reason=f"Wait {config.SELF_CODE_COOLDOWN_HOURS} hours after code expiry to request again.",
            cooldown_until=cooldown
        )

    return Eligibility(can_request=True)
