"""
Конфигурация сервиса кодов — загрузка переменных окружения
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Загружаем .env из корня проекта
BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")


class Config:
    """Конфигурация приложения"""

    # --- Telegram ---
    BOT_TOKEN: str = os.getenv("BOT_TOKEN", "")
    ADMIN_IDS: list[int] = [
        int(id_.strip())
        for id_ in os.getenv("ADMIN_IDS", "").split(",")
        if id_.strip()
    ]

    # --- Database ---
    DATABASE_URL: str = os.getenv("DATABASE_URL", "")
    DB_POOL_MIN: int = int(os.getenv("DB_POOL_MIN", "2"))
    DB_POOL_MAX: int = int(os.getenv("DB_POOL_MAX", "10"))

    # --- Canonical clock ---
    # Africa/Nairobi = UTC+3 без перехода на летнее время
    TIMEZONE: str = os.getenv("TIMEZONE", "Africa/Nairobi")

    # --- Tutor codes ---
    CODE_VALID_BEFORE_START_MIN: int = int(os.getenv("CODE_VALID_BEFORE_START_MIN", "5"))
    CODE_VALID_AFTER_END_MIN: int = int(os.getenv("CODE_VALID_AFTER_END_MIN", "20"))
    # Не настраивается: колонки code VARCHAR(3), SQL-аллокатор берёт 100..999
    CODE_DIGITS: int = 3
    GENERATE_MAX_ATTEMPTS: int = int(os.getenv("GENERATE_MAX_ATTEMPTS", "3"))

    # --- Self-study codes ---
    SELF_CODE_VALID_HOURS: int = int(os.getenv("SELF_CODE_VALID_HOURS", "6"))
    SELF_CODE_COOLDOWN_HOURS: int = int(os.getenv("SELF_CODE_COOLDOWN_HOURS", "4"))
    CLASS_CODE_SYSTEM_EMAIL: str = os.getenv("CLASS_CODE_SYSTEM_EMAIL", "classcode@system")

    # --- Scheduler ---
    EXPIRY_SWEEP_MINUTES: int = int(os.getenv("EXPIRY_SWEEP_MINUTES", "5"))

    @classmethod
    def validate(cls) -> list[str]:
        """Проверка обязательных переменных"""
        errors = []

        if not cls.BOT_TOKEN:
            errors.append("BOT_TOKEN не задан")
        if not cls.DATABASE_URL:
            errors.append("DATABASE_URL не задан")
        if cls.EXPIRY_SWEEP_MINUTES < 1:
            errors.append("EXPIRY_SWEEP_MINUTES должен быть >= 1")
        if cls.GENERATE_MAX_ATTEMPTS < 1:
            errors.append("GENERATE_MAX_ATTEMPTS должен быть >= 1")

        return errors


# Синглтон конфигурации
config = Config()
