"""
Главная точка входа сервиса кодов доступа
"""

import logging

from telegram import Update
from telegram.error import TelegramError
from telegram.ext import (
    Application,
    CommandHandler,
    CallbackQueryHandler,
    ContextTypes,
)

from classcode.config import config
from classcode.database.connection import get_pool, close_pool
from classcode.database.migrations import run_migrations
from classcode.services import messaging
from classcode.services.scheduler import setup_scheduler, shutdown_scheduler

# Хендлеры
from classcode.handlers.student import (
    start_handler,
    self_code_handler,
    eligibility_handler,
    code_handler
)
from classcode.handlers.tutor import (
    generate_handler,
    check_handler,
    my_classes_handler,
    topics_handler,
    history_handler
)
from classcode.handlers.admin import (
    debug_class_handler,
    sweep_handler
)


# Настройка логирования
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO
)
logger = logging.getLogger(__name__)


def register_handlers(app: Application):
    """Регистрация всех хендлеров"""

    # Студент
    app.add_handler(CommandHandler("start", start_handler))
    app.add_handler(CommandHandler("selfcode", self_code_handler))
    app.add_handler(CommandHandler("eligibility", eligibility_handler))
    app.add_handler(CommandHandler("code", code_handler))
    app.add_handler(CallbackQueryHandler(self_code_handler, pattern="^self_code$"))
    app.add_handler(CallbackQueryHandler(eligibility_handler, pattern="^eligibility$"))

    # Преподаватель
    app.add_handler(CommandHandler("generate", generate_handler))
    app.add_handler(CommandHandler("check", check_handler))
    app.add_handler(CommandHandler("my_classes", my_classes_handler))
    app.add_handler(CommandHandler("topics", topics_handler))
    app.add_handler(CommandHandler("history", history_handler))

    # Админ
    app.add_handler(CommandHandler("debug_class", debug_class_handler))
    app.add_handler(CommandHandler("sweep", sweep_handler))


async def error_handler(update: object, context: ContextTypes.DEFAULT_TYPE):
    """Необработанная ошибка хендлера: в лог, пользователю — короткий ответ"""
    logger.error("Ошибка при обработке update", exc_info=context.error)

    message = getattr(update, "effective_message", None)
    if message:
        try:
            await message.reply_text("Something went wrong. Please try again later.")
        except TelegramError as e:
            logger.warning(f"Не удалось ответить об ошибке: {e}")


async def post_init(app: Application):
    """Инициализация после запуска"""
    await get_pool()
    applied = await run_migrations()
    logger.info(f"База данных подключена, новых миграций: {len(applied)}")

    # Бот нужен чат-слою для доставки и правки сообщений с кодами
    messaging.set_bot(app.bot)
    setup_scheduler()


async def post_shutdown(app: Application):
    """Очистка при завершении"""
    shutdown_scheduler()
    await close_pool()
    logger.info("Соединение с БД закрыто")


def build_application() -> Application:
    """Собрать приложение со всеми хендлерами (без запуска)"""
    app = (
        Application.builder()
        .token(config.BOT_TOKEN)
        .post_init(post_init)
        .post_shutdown(post_shutdown)
        .build()
    )
    register_handlers(app)
    app.add_error_handler(error_handler)
    return app


def main():
    """Запуск бота"""

    # Проверка конфигурации
    errors = config.validate()
    if errors:
        for error in errors:
            logger.error(f"Ошибка конфигурации: {error}")
        return

    app = build_application()
    logger.info("Бот запущен!")

    # Запуск
    app.run_polling(allowed_updates=Update.ALL_TYPES)


if __name__ == "__main__":
    main()
