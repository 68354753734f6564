"""
Админ-команды: диагностика
"""

import json
import logging
from functools import wraps

from telegram import Update
from telegram.ext import ContextTypes

from classcode.config import config
from classcode.services import scheduler, tutor_codes

logger = logging.getLogger(__name__)


def admin_only(func):
    """Декоратор: только для админов"""
    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE):
        user_id = update.effective_user.id
        if user_id not in config.ADMIN_IDS:
            await update.message.reply_text("Access denied")
            return
        return await func(update, context)
    return wrapper


@admin_only
async def debug_class_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """/debug_class <class_id> — окна и код глазами сервера"""
    if not context.args:
        await update.message.reply_text("Usage: /debug_class <class_id>")
        return

    try:
        class_id = int(context.args[0])
    except ValueError:
        await update.message.reply_text("Invalid class id")
        return

    info = await tutor_codes.debug_class_info(class_id)
    await update.message.reply_text(json.dumps(info, indent=2, ensure_ascii=False))


@admin_only
async def sweep_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """/sweep — внеочередной проход по истёкшим кодам"""
    self_count = await scheduler.expire_self_study_codes()
    logger.info(f"Ручной проход: истекло {self_count}")

    await update.message.reply_text(f"Expired self-study codes: {self_count}")
