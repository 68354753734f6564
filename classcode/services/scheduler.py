"""
Планировщик задач — периодическое истечение кодов
"""

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from classcode import clock
from classcode.config import config
from classcode.database import queries as db
from classcode.database.models import CodeStatus
from classcode.services import self_study
from classcode.services.schedule import derive_status

logger = logging.getLogger(__name__)

# Создаётся в setup_scheduler(), не при импорте
scheduler: Optional[AsyncIOScheduler] = None


async def expire_self_study_codes() -> int:
    """
    Истечь просроченные коды самостоятельной практики и переписать
    их сообщения в чате. Ошибка правки одного сообщения не останавливает
    остальные.
    """
    now = clock.now()
    candidates = await db.get_stale_self_study_codes(now)
    stale = [c for c in candidates if derive_status(c, now) is CodeStatus.EXPIRED]
    if not stale:
        return 0

    await db.expire_self_study_codes([c.id for c in stale])

    for self_code in stale:
        try:
            await self_study.update_expired_message(self_code)
        except Exception as e:
            logger.warning(f"Не удалось обновить сообщение кода {self_code.id}: {e}")

    return len(stale)


async def expire_codes_job():
    """
    Job: проход по истёкшим кодам самостоятельной практики.
    Ленивые проверки в validate и так чинят отдельные записи; этот проход
    нужен для кодов, которые больше никто не проверяет.
    Коды преподавателей не трогаем: validate сам отвечает expired.
    """
    logger.info("Scheduler: проверяю истёкшие коды...")

    try:
        self_count = await expire_self_study_codes()
        logger.info(f"Scheduler: истекло кодов самостоятельной практики: {self_count}")

    except Exception as e:
        logger.error(f"Scheduler error in expire_codes_job: {e}", exc_info=True)


def setup_scheduler(interval_minutes: Optional[int] = None) -> AsyncIOScheduler:
    """Создать и запустить планировщик (нужен запущенный event loop)"""
    global scheduler

    interval = interval_minutes or config.EXPIRY_SWEEP_MINUTES
    scheduler = AsyncIOScheduler(timezone=config.TIMEZONE)

    scheduler.add_job(
        expire_codes_job,
        IntervalTrigger(minutes=interval, timezone=config.TIMEZONE),
        id="expire_codes",
        replace_existing=True,
        coalesce=True,
        max_instances=1
    )

    scheduler.start()
    logger.info(f"Scheduler запущен (каждые {interval} мин)")
    return scheduler


def shutdown_scheduler():
    """Остановка планировщика"""
    global scheduler

    if scheduler is None:
        return

    if scheduler.running:
        scheduler.shutdown(wait=False)
    scheduler = None
    logger.info("Scheduler остановлен")
