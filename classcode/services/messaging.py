"""
Чат-слой: диалоги 1:1, сообщения и их доставка в Telegram
"""

import logging
from typing import Optional, Tuple

from telegram import Bot
from telegram.error import TelegramError

from classcode.database import queries as db
from classcode.database.models import ChatMessage
from classcode.exceptions import MessagingError

logger = logging.getLogger(__name__)

PARTICIPANT_TYPES = ("admin", "student", "tutor")

# Ссылка на бота (устанавливается при старте)
_bot: Optional[Bot] = None


def set_bot(bot):
    """Установить ссылку на бота для доставки сообщений"""
    global _bot
    _bot = bot


def normalize_participants(
    a_type: str, a_id: int, b_type: str, b_id: int
) -> Tuple[str, int, str, int]:
    """Канонический порядок участников: сначала по типу, затем по id"""
    for participant_type in (a_type, b_type):
        if participant_type not in PARTICIPANT_TYPES:
            raise MessagingError(f"Unknown participant type: {participant_type}")

    first, second = sorted([(a_type, a_id), (b_type, b_id)])
    return first[0], first[1], second[0], second[1]


async def find_or_create_conversation(a_type: str, a_id: int, b_type: str, b_id: int) -> int:
    """Найти или создать диалог. Идемпотентно и симметрично по участникам"""
    key = normalize_participants(a_type, a_id, b_type, b_id)

    conversation_id = await db.find_conversation(*key)
    if conversation_id is not None:
        return conversation_id

    conversation_id = await db.create_conversation(*key)
    logger.info(f"Создан диалог {conversation_id}: {key[0]}:{key[1]} <-> {key[2]}:{key[3]}")
    return conversation_id


async def send_message(conversation_id: int, sender_type: str, sender_id: int, content: str) -> ChatMessage:
    """
    Отправить сообщение в диалог.
    Сообщение всегда сохраняется в БД; если у получателя есть Telegram —
    дублируется туда, и id Telegram-сообщения запоминается для правки.
    """
    conversation = await db.get_conversation(conversation_id)
    if not conversation:
        raise MessagingError(f"Conversation {conversation_id} not found")

    side_a = (conversation.participant_a_type, conversation.participant_a_id)
    side_b = (conversation.participant_b_type, conversation.participant_b_id)
    sender = (sender_type, sender_id)
    if sender == side_a:
        recipient = side_b
    elif sender == side_b:
        recipient = side_a
    else:
        raise MessagingError("Sender is not a participant of the conversation")

    tg_chat_id = await db.get_participant_chat_id(*recipient)
    tg_message_id = None

    if tg_chat_id:
        if _bot is None:
            raise MessagingError("Telegram bot is not configured")
        try:
            sent = await _bot.send_message(chat_id=tg_chat_id, text=content)
        except TelegramError as e:
            raise MessagingError(f"Telegram delivery failed: {e}") from e
        tg_message_id = sent.message_id

    return await db.create_message(
        conversation_id, sender_type, sender_id, content, tg_chat_id, tg_message_id
    )


async def update_message_content(message_id: int, conversation_id: int, new_content: str):
    """Переписать ранее отправленное сообщение (в БД и в Telegram)"""
    message = await db.get_message(message_id, conversation_id)
    if not message:
        raise MessagingError(f"Message {message_id} not found in conversation {conversation_id}")

    await db.update_message_content(message_id, conversation_id, new_content)

    if message.tg_chat_id and message.tg_message_id and _bot is not None:
        try:
            await _bot.edit_message_text(
                text=new_content,
                chat_id=message.tg_chat_id,
                message_id=message.tg_message_id
            )
        except TelegramError as e:
            raise MessagingError(f"Telegram edit failed: {e}") from e
