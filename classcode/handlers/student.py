"""
Команды студента: код самостоятельной практики и ввод кода
"""

import logging
from functools import wraps

from telegram import Update
from telegram.ext import ContextTypes

from classcode import clock
from classcode.database import queries as db
from classcode.exceptions import ClassCodeError, MessagingDeliveryError
from classcode.keyboards import student_menu_keyboard
from classcode.services import self_study, tutor_codes
from classcode.services.results import CodeVerdict

logger = logging.getLogger(__name__)


def student_only(func):
    """Декоратор: только для зарегистрированных студентов"""
    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE):
        student = await db.get_student_by_tg_id(update.effective_user.id)
        if not student:
            await update.effective_message.reply_text("You are not registered as a student.")
            return
        return await func(update, context, student)
    return wrapper


async def _answer(update: Update, text: str):
    """Ответ и на команду, и на нажатие кнопки"""
    if update.callback_query:
        await update.callback_query.answer()
    await update.effective_message.reply_text(text, reply_markup=student_menu_keyboard())


@student_only
async def start_handler(update: Update, context: ContextTypes.DEFAULT_TYPE, student):
    """Обработка команды /start"""
    await update.message.reply_text(
        f"Welcome, {student.full_name or 'student'}!\n\n"
        "Enter the class code with /code <code>, or request a self-study code.",
        reply_markup=student_menu_keyboard()
    )


@student_only
async def self_code_handler(update: Update, context: ContextTypes.DEFAULT_TYPE, student):
    """/selfcode или кнопка — запрос кода самостоятельной практики"""
    try:
        issue = await self_study.request_code(student.id)
    except MessagingDeliveryError as e:
        # Код уже сохранён, показываем его в ответе
        await _answer(update, str(e))
        return
    except ClassCodeError as e:
        await _answer(update, str(e))
        return

    # Сам код пришёл сообщением от "Class Code"
    await _answer(
        update,
        f"Code requested. Topic: {issue.topic.name}. "
        f"Valid until {clock.format_hm(issue.self_code.valid_until)}."
    )


@student_only
async def eligibility_handler(update: Update, context: ContextTypes.DEFAULT_TYPE, student):
    """/eligibility или кнопка — можно ли сейчас запросить код"""
    eligibility = await self_study.get_eligibility(student.id)

    if eligibility.can_request:
        await _answer(update, "You can request a self-study code now.")
        return

    text = eligibility.reason
    if eligibility.available_at:
        text += f"\nAvailable again at {clock.format_hm(eligibility.available_at)}."
    await _answer(update, text)


@student_only
async def code_handler(update: Update, context: ContextTypes.DEFAULT_TYPE, student):
    """/code <code> — сначала код класса от преподавателя, затем свой код"""
    if not context.args:
        await update.message.reply_text("Usage: /code <code>")
        return
    if not student.class_id:
        await update.message.reply_text("You are not assigned to a class.")
        return

    code = context.args[0]

    check = await tutor_codes.redeem_code(student.id, student.class_id, code)
    if not check.valid:
        self_check = await self_study.validate_code(student.id, student.class_id, code)
        if self_check.valid or check.verdict is CodeVerdict.NOT_FOUND:
            check = self_check

    if check.valid:
        logger.info(f"Студент {student.id}: код {code} принят (тема {check.topic_id})")
        await update.message.reply_text(f"Code accepted. Topic #{check.topic_id} is open.")
    else:
        await update.message.reply_text(check.message)
