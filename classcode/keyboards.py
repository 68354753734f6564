"""
Клавиатуры бота
"""

from telegram import InlineKeyboardButton, InlineKeyboardMarkup


# ============================================
# Студент
# ============================================

def student_menu_keyboard() -> InlineKeyboardMarkup:
    """Меню студента"""
    return InlineKeyboardMarkup([
        [InlineKeyboardButton("🔑 Request self-study code", callback_data="self_code")],
        [InlineKeyboardButton("⏱ Can I request a code?", callback_data="eligibility")]
    ])
