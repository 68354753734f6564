"""
Автоматические миграции базы данных

Файлы migrations/*.sql применяются по имени, каждый в своей транзакции.
Применённые записываются в schema_migrations и больше не выполняются.
"""

import logging
from pathlib import Path
from typing import List

from classcode.database.connection import get_pool

logger = logging.getLogger(__name__)

# Путь к папке с миграциями
MIGRATIONS_DIR = Path(__file__).resolve().parent.parent.parent / "migrations"


async def run_migrations() -> List[str]:
    """Выполнить новые SQL-миграции. Возвращает имена применённых файлов"""
    pool = await get_pool()

    if not MIGRATIONS_DIR.exists():
        logger.warning(f"Папка миграций не найдена: {MIGRATIONS_DIR}")
        return []

    sql_files = sorted(MIGRATIONS_DIR.glob("*.sql"))
    if not sql_files:
        logger.info("Миграции не найдены")
        return []

    applied = []
    async with pool.acquire() as conn:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
                name TEXT PRIMARY KEY,
                applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
            """
        )
        done = {row["name"] for row in await conn.fetch("SELECT name FROM schema_migrations")}

        for sql_file in sql_files:
            if sql_file.name in done:
                continue

            logger.info(f"Выполняю миграцию: {sql_file.name}")
            try:
                async with conn.transaction():
                    await conn.execute(sql_file.read_text(encoding="utf-8"))
                    await conn.execute(
                        "INSERT INTO schema_migrations (name) VALUES ($1)",
                        sql_file.name
                    )
            except Exception as e:
                logger.error(f"✗ Ошибка в {sql_file.name}: {e}")
                raise

            applied.append(sql_file.name)
            logger.info(f"✓ Миграция {sql_file.name} выполнена")

    return applied
