"""
Пул соединений PostgreSQL

Сессии открываются в канонической зоне (config.TIMEZONE): NOW() и
приведения TIMESTAMPTZ в SQL-функциях совпадают с clock.now().
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import asyncpg

from classcode.config import config

logger = logging.getLogger(__name__)

# Глобальный пул соединений
_pool: Optional[asyncpg.Pool] = None


async def get_pool() -> asyncpg.Pool:
    """Получить пул соединений (создаёт при первом вызове)"""
    global _pool

    if _pool is None:
        _pool = await asyncpg.create_pool(
            config.DATABASE_URL,
            min_size=config.DB_POOL_MIN,
            max_size=config.DB_POOL_MAX,
            server_settings={
                "timezone": config.TIMEZONE,
                "application_name": "classcode",
            }
        )
        logger.info(f"Пул соединений создан ({config.DB_POOL_MIN}..{config.DB_POOL_MAX})")

    return _pool


@asynccontextmanager
async def transaction():
    """Соединение из пула внутри транзакции"""
    pool = await get_pool()
    async with pool.acquire() as conn:
        async with conn.transaction():
            yield conn


async def close_pool():
    """Закрыть пул соединений"""
    global _pool

    if _pool:
        await _pool.close()
        _pool = None
        logger.info("Пул соединений закрыт")
