"""
Команды преподавателя: код класса, проверка, сводка
"""

import logging
from functools import wraps

from telegram import Update
from telegram.ext import ContextTypes

from classcode import clock
from classcode.database import queries as db
from classcode.exceptions import ClassCodeError
from classcode.services import tutor_codes

logger = logging.getLogger(__name__)


def tutor_only(func):
    """Декоратор: только для зарегистрированных преподавателей"""
    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE):
        tutor = await db.get_tutor_by_tg_id(update.effective_user.id)
        if not tutor:
            await update.message.reply_text("This command is for registered tutors only.")
            return
        return await func(update, context, tutor)
    return wrapper


def parse_int_args(args, count: int):
    """Первые count аргументов как int; None при ошибке"""
    if not args or len(args) < count:
        return None
    try:
        return [int(arg) for arg in args[:count]]
    except ValueError:
        return None


@tutor_only
async def generate_handler(update: Update, context: ContextTypes.DEFAULT_TYPE, tutor):
    """/generate <class_id> <topic_id>"""
    parsed = parse_int_args(context.args, 2)
    if not parsed:
        await update.message.reply_text("Usage: /generate <class_id> <topic_id>")
        return
    class_id, topic_id = parsed

    try:
        class_code = await tutor_codes.generate_code(class_id, topic_id, tutor.id)
    except ClassCodeError as e:
        await update.message.reply_text(str(e))
        return

    await update.message.reply_text(
        f"Class code: {class_code.code}\n"
        f"Valid {clock.format_hm(class_code.valid_from)}–{clock.format_hm(class_code.valid_until)}"
    )


@tutor_only
async def check_handler(update: Update, context: ContextTypes.DEFAULT_TYPE, tutor):
    """/check <class_id> <code>"""
    if not context.args or len(context.args) < 2:
        await update.message.reply_text("Usage: /check <class_id> <code>")
        return
    try:
        class_id = int(context.args[0])
    except ValueError:
        await update.message.reply_text("Invalid class id")
        return

    check = await tutor_codes.validate_code(class_id, context.args[1])
    await update.message.reply_text(f"{check.message} (server time {clock.format_hm(check.server_time)})")


@tutor_only
async def my_classes_handler(update: Update, context: ContextTypes.DEFAULT_TYPE, tutor):
    """/my_classes — статус классов преподавателя"""
    overviews = await tutor_codes.get_tutor_classes(tutor.id)

    if not overviews:
        await update.message.reply_text("You have no classes assigned")
        return

    lines = []
    for item in overviews:
        line = f"#{item.school_class.id} {item.school_class.name} — {item.status.value}"
        if item.window:
            line += f", today {clock.format_hm(item.window.start)}–{clock.format_hm(item.window.end)}"
        if item.current_code:
            line += f", code {item.current_code.code}"
        elif item.can_generate_code:
            line += ", code can be generated now"
        if item.next_class:
            line += f", next: {clock.format_full(item.next_class)}"
        lines.append(line)

    await update.message.reply_text("\n".join(lines))


@tutor_only
async def topics_handler(update: Update, context: ContextTypes.DEFAULT_TYPE, tutor):
    """/topics <class_id>"""
    parsed = parse_int_args(context.args, 1)
    if not parsed:
        await update.message.reply_text("Usage: /topics <class_id>")
        return

    topics = await tutor_codes.get_topics_for_enrolled_levels(parsed[0])
    if not topics:
        await update.message.reply_text("No topics for the enrolled course levels")
        return

    await update.message.reply_text("\n".join(f"{t.id}: {t.name}" for t in topics))


@tutor_only
async def history_handler(update: Update, context: ContextTypes.DEFAULT_TYPE, tutor):
    """/history <class_id> — последние 10 кодов"""
    parsed = parse_int_args(context.args, 1)
    if not parsed:
        await update.message.reply_text("Usage: /history <class_id>")
        return

    codes = await tutor_codes.get_code_history(parsed[0])
    if not codes:
        await update.message.reply_text("No codes yet")
        return

    lines = [
        f"{c.code} — {c.status}, {clock.format_full(c.valid_from)}–{clock.format_hm(c.valid_until)}"
        for c in codes
    ]
    await update.message.reply_text("\n".join(lines))
