"""
SQL-запросы к базе данных
"""

from datetime import datetime
from typing import Optional, List

import asyncpg

from classcode.database.connection import get_pool, transaction
from classcode.database.models import (
    SchoolClass,
    ClassSchedule,
    Tutor,
    Student,
    Topic,
    ClassCode,
    SelfStudyCode,
    SelfStudyUsage,
    Conversation,
    ChatMessage,
)
from classcode.exceptions import ActiveCodeConflictError


# ============================================
# Classes / Schedules
# ============================================

async def get_class(class_id: int) -> Optional[SchoolClass]:
    """Получить класс по ID"""
    pool = await get_pool()
    row = await pool.fetchrow(
        "SELECT id, name, level, status FROM classes WHERE id = $1",
        class_id
    )
    if row:
        return SchoolClass(**dict(row))
    return None


async def get_active_schedule(class_id: int) -> Optional[ClassSchedule]:
    """Активное расписание класса (не больше одного)"""
    pool = await get_pool()
    row = await pool.fetchrow(
        "SELECT * FROM class_schedules WHERE class_id = $1 AND status = 'active'",
        class_id
    )
    if row:
        return ClassSchedule(**dict(row))
    return None


# ============================================
# Tutors
# ============================================

async def count_active_tutors(class_id: int) -> int:
    """Количество активных назначений преподавателей на класс"""
    pool = await get_pool()
    count = await pool.fetchval(
        """
        SELECT COUNT(*) FROM tutor_class_assignments
        WHERE class_id = $1 AND status = 'active'
        """,
        class_id
    )
    return count or 0


async def get_tutor_by_tg_id(tg_id: int) -> Optional[Tutor]:
    """Получить преподавателя по Telegram ID"""
    pool = await get_pool()
    row = await pool.fetchrow(
        "SELECT id, tg_id, first_name, last_name FROM tutors WHERE tg_id = $1",
        tg_id
    )
    if row:
        return Tutor(**dict(row))
    return None


async def get_tutor_class_ids(tutor_id: int) -> List[int]:
    """ID классов, на которые преподаватель назначен"""
    pool = await get_pool()
    rows = await pool.fetch(
        """
        SELECT class_id FROM tutor_class_assignments
        WHERE tutor_id = $1 AND status = 'active'
        ORDER BY class_id
        """,
        tutor_id
    )
    return [row["class_id"] for row in rows]


# ============================================
# Topics
# ============================================

async def get_topic(topic_id: int) -> Optional[Topic]:
    """Получить тему по ID"""
    pool = await get_pool()
    row = await pool.fetchrow(
        "SELECT id, name, level_id, order_index FROM topics WHERE id = $1",
        topic_id
    )
    if row:
        return Topic(**dict(row))
    return None


async def is_level_enrolled(class_id: int, level_id: int) -> bool:
    """Проверить, что уровень курса зачислен для класса"""
    pool = await get_pool()
    result = await pool.fetchval(
        """
        SELECT EXISTS(
            SELECT 1 FROM class_course_level_assignments
            WHERE class_id = $1 AND course_level_id = $2
            AND enrollment_status = 'enrolled'
        )
        """,
        class_id, level_id
    )
    return result or False


async def get_topics_for_enrolled_levels(class_id: int) -> List[Topic]:
    """Активные темы всех зачисленных уровней класса"""
    pool = await get_pool()
    rows = await pool.fetch(
        """
        SELECT t.id, t.name, t.level_id, t.order_index
        FROM topics t
        INNER JOIN class_course_level_assignments a
            ON a.course_level_id = t.level_id
        WHERE a.class_id = $1
          AND a.enrollment_status = 'enrolled'
          AND t.status = 'active'
        ORDER BY t.order_index, t.id
        """,
        class_id
    )
    return [Topic(**dict(row)) for row in rows]


# ============================================
# Tutor codes
# ============================================

async def allocate_class_code(class_id: int) -> Optional[str]:
    """Атомарно выбрать свободный код для класса (SQL-функция)"""
    pool = await get_pool()
    return await pool.fetchval(
        "SELECT generate_unique_class_code($1)",
        class_id
    )


async def replace_active_class_code(
    class_id: int,
    schedule_id: int,
    topic_id: int,
    code: str,
    valid_from: datetime,
    valid_until: datetime,
    generated_by_tutor_id: Optional[int]
) -> ClassCode:
    """
    Истечь активные коды класса и создать новый — в одной транзакции.
    Advisory-lock на class_id держится до конца транзакции, поэтому
    параллельные замены для одного класса идут по очереди.
    Вставка в обход этой функции упирается в class_codes_one_active_idx.
    """
    try:
        async with transaction() as conn:
            await conn.execute("SELECT pg_advisory_xact_lock($1)", class_id)
            await conn.execute(
                """
                UPDATE class_codes SET status = 'expired'
                WHERE class_id = $1 AND status = 'active'
                """,
                class_id
            )
            row = await conn.fetchrow(
                """
                INSERT INTO class_codes
                (class_id, schedule_id, topic_id, code, valid_from, valid_until,
                 generated_by_tutor_id, status)
                VALUES ($1, $2, $3, $4, $5, $6, $7, 'active')
                RETURNING *
                """,
                class_id, schedule_id, topic_id, code, valid_from, valid_until,
                generated_by_tutor_id
            )
    except asyncpg.UniqueViolationError as e:
        raise ActiveCodeConflictError(class_id) from e
    return ClassCode(**dict(row))


async def get_active_class_code(class_id: int, code: str) -> Optional[ClassCode]:
    """Активный код класса с данным значением"""
    pool = await get_pool()
    row = await pool.fetchrow(
        """
        SELECT * FROM class_codes
        WHERE class_id = $1 AND code = $2 AND status = 'active'
        ORDER BY created_at DESC
        LIMIT 1
        """,
        class_id, code
    )
    if row:
        return ClassCode(**dict(row))
    return None


async def get_current_class_code(class_id: int, now: datetime) -> Optional[ClassCode]:
    """Текущий живой код класса (active и окно ещё не закрыто)"""
    pool = await get_pool()
    row = await pool.fetchrow(
        """
        SELECT * FROM class_codes
        WHERE class_id = $1 AND status = 'active' AND valid_until > $2
        ORDER BY created_at DESC
        LIMIT 1
        """,
        class_id, now
    )
    if row:
        return ClassCode(**dict(row))
    return None


async def get_class_code_history(class_id: int, limit: int = 10) -> List[ClassCode]:
    """Последние коды класса"""
    pool = await get_pool()
    rows = await pool.fetch(
        """
        SELECT * FROM class_codes
        WHERE class_id = $1
        ORDER BY created_at DESC
        LIMIT $2
        """,
        class_id, limit
    )
    return [ClassCode(**dict(row)) for row in rows]


async def expire_class_codes(code_ids: List[int]):
    """Пометить коды преподавателей истёкшими"""
    if not code_ids:
        return
    pool = await get_pool()
    await pool.execute(
        "UPDATE class_codes SET status = 'expired' WHERE id = ANY($1::int[])",
        code_ids
    )


async def record_class_code_usage(student_id: int, class_code_id: int, topic_id: Optional[int], used_at: datetime):
    """Записать использование кода преподавателя студентом"""
    pool = await get_pool()
    await pool.execute(
        """
        INSERT INTO student_class_code_usage (student_id, class_code_id, topic_id, used_at)
        VALUES ($1, $2, $3, $4)
        """,
        student_id, class_code_id, topic_id, used_at
    )


# ============================================
# Students
# ============================================

async def get_student(student_id: int) -> Optional[Student]:
    """Получить студента по ID"""
    pool = await get_pool()
    row = await pool.fetchrow(
        "SELECT id, tg_id, class_id, full_name FROM students WHERE id = $1",
        student_id
    )
    if row:
        return Student(**dict(row))
    return None


async def get_student_by_tg_id(tg_id: int) -> Optional[Student]:
    """Получить студента по Telegram ID"""
    pool = await get_pool()
    row = await pool.fetchrow(
        "SELECT id, tg_id, class_id, full_name FROM students WHERE tg_id = $1",
        tg_id
    )
    if row:
        return Student(**dict(row))
    return None


# ============================================
# Self-study codes
# ============================================

async def get_latest_expired_self_code(student_id: int) -> Optional[SelfStudyCode]:
    """Последний истёкший код студента (по valid_until) — для cooldown"""
    pool = await get_pool()
    row = await pool.fetchrow(
        """
        SELECT * FROM self_class_codes
        WHERE student_id = $1 AND status = 'expired'
        ORDER BY valid_until DESC
        LIMIT 1
        """,
        student_id
    )
    if row:
        return SelfStudyCode(**dict(row))
    return None


async def create_self_study_code(
    student_id: int,
    class_id: int,
    schedule_id: int,
    topic_id: int,
    code: str,
    valid_from: datetime,
    valid_until: datetime
) -> SelfStudyCode:
    """Сохранить новый код самостоятельной практики"""
    pool = await get_pool()
    row = await pool.fetchrow(
        """
        INSERT INTO self_class_codes
        (student_id, class_id, schedule_id, topic_id, code, valid_from, valid_until, status)
        VALUES ($1, $2, $3, $4, $5, $6, $7, 'active')
        RETURNING *
        """,
        student_id, class_id, schedule_id, topic_id, code, valid_from, valid_until
    )
    return SelfStudyCode(**dict(row))


async def attach_self_study_message(code_id: int, message_id: int, conversation_id: int) -> SelfStudyCode:
    """Привязать отправленное сообщение к коду (для правки при истечении)"""
    pool = await get_pool()
    row = await pool.fetchrow(
        """
        UPDATE self_class_codes
        SET message_id = $2, conversation_id = $3
        WHERE id = $1
        RETURNING *
        """,
        code_id, message_id, conversation_id
    )
    return SelfStudyCode(**dict(row))


async def find_self_study_code(student_id: int, class_id: int, code: str) -> Optional[SelfStudyCode]:
    """Самый свежий код студента с данным значением"""
    pool = await get_pool()
    row = await pool.fetchrow(
        """
        SELECT * FROM self_class_codes
        WHERE student_id = $1 AND class_id = $2 AND code = $3
        ORDER BY created_at DESC, id DESC
        LIMIT 1
        """,
        student_id, class_id, code
    )
    if row:
        return SelfStudyCode(**dict(row))
    return None


async def get_stale_self_study_codes(now: datetime) -> List[SelfStudyCode]:
    """Активные коды самостоятельной практики с прошедшим valid_until"""
    pool = await get_pool()
    rows = await pool.fetch(
        """
        SELECT * FROM self_class_codes
        WHERE status = 'active' AND valid_until < $1
        ORDER BY valid_until
        """,
        now
    )
    return [SelfStudyCode(**dict(row)) for row in rows]


async def expire_self_study_codes(code_ids: List[int]):
    """Пометить коды самостоятельной практики истёкшими"""
    if not code_ids:
        return
    pool = await get_pool()
    await pool.execute(
        "UPDATE self_class_codes SET status = 'expired' WHERE id = ANY($1::int[])",
        code_ids
    )


async def record_self_study_usage(
    student_id: int,
    self_class_code_id: int,
    topic_id: Optional[int],
    used_at: datetime
) -> SelfStudyUsage:
    """Записать успешную проверку кода (журнал только на добавление)"""
    pool = await get_pool()
    row = await pool.fetchrow(
        """
        INSERT INTO self_class_code_usage (student_id, self_class_code_id, topic_id, used_at)
        VALUES ($1, $2, $3, $4)
        RETURNING *
        """,
        student_id, self_class_code_id, topic_id, used_at
    )
    return SelfStudyUsage(**dict(row))


# ============================================
# Messaging
# ============================================

async def get_admin_id_by_email(email: str) -> Optional[int]:
    """ID админа (в т.ч. системного участника) по email"""
    pool = await get_pool()
    return await pool.fetchval(
        "SELECT id FROM admins WHERE email = $1",
        email
    )


async def get_participant_chat_id(participant_type: str, participant_id: int) -> Optional[int]:
    """Telegram chat id участника диалога"""
    tables = {"student": "students", "tutor": "tutors", "admin": "admins"}
    table = tables.get(participant_type)
    if table is None:
        return None
    pool = await get_pool()
    return await pool.fetchval(
        f"SELECT tg_id FROM {table} WHERE id = $1",
        participant_id
    )


async def find_conversation(a_type: str, a_id: int, b_type: str, b_id: int) -> Optional[int]:
    """ID диалога (участники уже в каноническом порядке)"""
    pool = await get_pool()
    return await pool.fetchval(
        """
        SELECT id FROM conversations
        WHERE participant_a_type = $1 AND participant_a_id = $2
          AND participant_b_type = $3 AND participant_b_id = $4
        """,
        a_type, a_id, b_type, b_id
    )


async def create_conversation(a_type: str, a_id: int, b_type: str, b_id: int) -> int:
    """Создать диалог; при гонке возвращает уже созданный"""
    pool = await get_pool()
    conversation_id = await pool.fetchval(
        """
        INSERT INTO conversations
        (participant_a_type, participant_a_id, participant_b_type, participant_b_id)
        VALUES ($1, $2, $3, $4)
        ON CONFLICT (participant_a_type, participant_a_id, participant_b_type, participant_b_id)
        DO NOTHING
        RETURNING id
        """,
        a_type, a_id, b_type, b_id
    )
    if conversation_id is None:
        conversation_id = await find_conversation(a_type, a_id, b_type, b_id)
    return conversation_id


async def get_conversation(conversation_id: int) -> Optional[Conversation]:
    """Получить диалог"""
    pool = await get_pool()
    row = await pool.fetchrow(
        """
        SELECT id, participant_a_type, participant_a_id, participant_b_type, participant_b_id
        FROM conversations WHERE id = $1
        """,
        conversation_id
    )
    if row:
        return Conversation(**dict(row))
    return None


async def create_message(
    conversation_id: int,
    sender_type: str,
    sender_id: int,
    content: str,
    tg_chat_id: Optional[int],
    tg_message_id: Optional[int]
) -> ChatMessage:
    """Сохранить сообщение и обновить last_message_at диалога"""
    async with transaction() as conn:
        row = await conn.fetchrow(
            """
            INSERT INTO messages
            (conversation_id, sender_type, sender_id, content, tg_chat_id, tg_message_id)
            VALUES ($1, $2, $3, $4, $5, $6)
            RETURNING *
            """,
            conversation_id, sender_type, sender_id, content, tg_chat_id, tg_message_id
        )
        await conn.execute(
            "UPDATE conversations SET last_message_at = NOW() WHERE id = $1",
            conversation_id
        )
    return ChatMessage(**dict(row))


async def get_message(message_id: int, conversation_id: int) -> Optional[ChatMessage]:
    """Получить сообщение диалога"""
    pool = await get_pool()
    row = await pool.fetchrow(
        "SELECT * FROM messages WHERE id = $1 AND conversation_id = $2",
        message_id, conversation_id
    )
    if row:
        return ChatMessage(**dict(row))
    return None


async def update_message_content(message_id: int, conversation_id: int, content: str):
    """Заменить текст сообщения"""
    pool = await get_pool()
    await pool.execute(
        "UPDATE messages SET content = $3 WHERE id = $1 AND conversation_id = $2",
        message_id, conversation_id, content
    )
