"""
Выбор числового кода

StoreCodeAllocator — атомарно в БД (уникален среди живых кодов класса).
RandomCodeAllocator — локальный случайный код без гарантии уникальности,
используется только как запасной вариант.
"""

import logging
import secrets
import string

from classcode.config import config
from classcode.database import queries as db
from classcode.exceptions import CodeAllocationError

logger = logging.getLogger(__name__)


def generate_numeric_code() -> str:
    """Случайный код из цифр без ведущего нуля: 100..999"""
    first = secrets.choice(string.digits[1:])
    rest = "".join(secrets.choice(string.digits) for _ in range(config.CODE_DIGITS - 1))
    return first + rest


class CodeAllocator:
    """Интерфейс аллокатора"""

    async def allocate(self, class_id: int) -> str:
        raise NotImplementedError


class StoreCodeAllocator(CodeAllocator):
    """Код через SQL-функцию generate_unique_class_code"""

    async def allocate(self, class_id: int) -> str:
        try:
            code = await db.allocate_class_code(class_id)
        except Exception as e:
            raise CodeAllocationError(f"Store allocator failed for class {class_id}: {e}") from e

        if not code:
            raise CodeAllocationError(f"No free code left for class {class_id}")
        return code


class RandomCodeAllocator(CodeAllocator):
    """Локальная случайная выборка"""

    async def allocate(self, class_id: int) -> str:
        return generate_numeric_code()


class FallbackCodeAllocator(CodeAllocator):
    """Основной аллокатор, при ошибке — запасной"""

    def __init__(self, primary: CodeAllocator, fallback: CodeAllocator):
        self.primary = primary
        self.fallback = fallback

    async def allocate(self, class_id: int) -> str:
        try:
            return await self.primary.allocate(class_id)
        except CodeAllocationError as e:
            logger.warning(f"Аллокатор кода: {e}; используем случайный код")
            return await self.fallback.allocate(class_id)


def default_allocator() -> CodeAllocator:
    return FallbackCodeAllocator(StoreCodeAllocator(), RandomCodeAllocator())
