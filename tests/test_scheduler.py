"""
Тесты планировщика: периодическое истечение кодов

Проверяем полный проход: от состояния хранилища до правки сообщений.
"""

import pytest

pytestmark = pytest.mark.unit

from unittest.mock import AsyncMock

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from telegram.error import TelegramError

from classcode.services import scheduler, self_study, tutor_codes
from classcode.services.results import CodeVerdict

from helpers import at


# ============================================
# Tests: expire_self_study_codes()
# ============================================

@pytest.mark.asyncio
async def test_sweep_expires_self_codes_and_edits_messages(robotics_class, frozen_clock, mock_bot):
    store = robotics_class["store"]
    issue = await self_study.request_code(robotics_class["student"].id)

    frozen_clock.set(at(18, 5))
    count = await scheduler.expire_self_study_codes()

    assert count == 1
    assert store.self_codes[issue.self_code.id].status == "expired"
    mock_bot.edit_message_text.assert_awaited_once()
    assert "(Expired)" in mock_bot.edit_message_text.call_args.kwargs["text"]


@pytest.mark.asyncio
async def test_sweep_leaves_live_codes(robotics_class, frozen_clock, mock_bot):
    store = robotics_class["store"]
    issue = await self_study.request_code(robotics_class["student"].id)

    frozen_clock.set(at(18, 0))
    count = await scheduler.expire_self_study_codes()

    assert count == 0
    assert store.self_codes[issue.self_code.id].status == "active"
    mock_bot.edit_message_text.assert_not_awaited()


@pytest.mark.asyncio
async def test_sweep_continues_after_edit_failure(robotics_class, frozen_clock, mock_bot):
    """Ошибка правки одного сообщения не мешает остальным"""
    store = robotics_class["store"]
    first = await self_study.request_code(robotics_class["student"].id)
    other = store.add_student(robotics_class["class"].id, tg_id=800000002)
    second = await self_study.request_code(other.id)

    mock_bot.edit_message_text.side_effect = [TelegramError("Message to edit not found"), None]
    frozen_clock.set(at(18, 5))

    count = await scheduler.expire_self_study_codes()

    assert count == 2
    assert store.self_codes[first.self_code.id].status == "expired"
    assert store.self_codes[second.self_code.id].status == "expired"
    assert mock_bot.edit_message_text.await_count == 2


@pytest.mark.asyncio
async def test_sweep_code_without_message(robotics_class, frozen_clock, mock_bot):
    store = robotics_class["store"]
    student = robotics_class["student"]
    self_code = store.add_self_code(student, "333", at(4, 0), at(10, 0))

    count = await scheduler.expire_self_study_codes()

    assert count == 1
    assert store.self_codes[self_code.id].status == "expired"
    mock_bot.edit_message_text.assert_not_awaited()


# ============================================
# Tests: expire_codes_job()
# ============================================

@pytest.mark.asyncio
async def test_job_expires_only_self_study_codes(robotics_class, frozen_clock, mock_bot):
    store = robotics_class["store"]
    await self_study.request_code(robotics_class["student"].id)
    frozen_clock.set(at(16, 30))
    await tutor_codes.generate_code(robotics_class["class"].id, robotics_class["topics"][0].id)

    frozen_clock.set(at(18, 5))
    await scheduler.expire_codes_job()

    assert all(c.status == "expired" for c in store.self_codes.values())
    assert all(c.status == "active" for c in store.class_codes.values())


@pytest.mark.asyncio
async def test_tutor_code_after_job_reports_expired(robotics_class, frozen_clock, mock_bot):
    """
    Сценарий:
    1. Код создан в 16:30 (окно до 17:20)
    2. Job отработал в 17:21
    3. Проверка в 17:25 -> expired, а не "код не найден"
    """
    store = robotics_class["store"]
    store.allocated_codes = ["615"]
    class_id = robotics_class["class"].id

    frozen_clock.set(at(16, 30))
    class_code = await tutor_codes.generate_code(class_id, robotics_class["topics"][0].id)

    frozen_clock.set(at(17, 21))
    await scheduler.expire_codes_job()

    frozen_clock.set(at(17, 25))
    check = await tutor_codes.validate_code(class_id, "615")

    assert check.verdict is CodeVerdict.EXPIRED
    assert store.class_codes[class_code.id].status == "expired"


@pytest.mark.asyncio
async def test_job_logs_store_errors(fake_db, frozen_clock, monkeypatch):
    """Ошибка хранилища логируется, job не падает"""
    monkeypatch.setattr(
        scheduler.db, "get_stale_self_study_codes", AsyncMock(side_effect=ConnectionError("pool closed"))
    )

    await scheduler.expire_codes_job()


# ============================================
# Tests: setup / shutdown
# ============================================

@pytest.mark.asyncio
async def test_setup_and_shutdown_scheduler():
    instance = scheduler.setup_scheduler(interval_minutes=5)

    try:
        assert isinstance(instance, AsyncIOScheduler)
        assert instance.running
        job = instance.get_job("expire_codes")
        assert job is not None
        assert job.trigger.interval.total_seconds() == 300
    finally:
        scheduler.shutdown_scheduler()

    assert scheduler.scheduler is None


def test_shutdown_without_scheduler():
    scheduler.shutdown_scheduler()

    assert scheduler.scheduler is None
