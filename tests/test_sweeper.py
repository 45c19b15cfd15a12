"""Tests for the periodic status sweep."""
import logging
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from pingwatch.models.check import Check
from pingwatch.probe import run_probe
from pingwatch.recorder import PingRecorder
from pingwatch.status import compute_status
from pingwatch.sweeper import SWEEP_JOB_ID, StatusSweeper, StatusTransition, should_notify

from tests.conftest import test_session_factory

T0 = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "previous, current, expected",
    [
        ("new", "up", False),
        ("up", "grace", True),
        ("grace", "down", True),
        ("up", "down", True),
        ("down", "up", True),
        ("grace", "up", True),
    ],
)
def test_should_notify(previous, current, expected):
    assert should_notify(previous, current) is expected


@pytest.mark.asyncio
async def test_sweep_marks_overdue_check_down_once(repository, dispatcher):
    check = await repository.create(name="Backup", period=5, grace=5)
    await PingRecorder(repository).record_ping(check.id, now=T0)
    sweeper = StatusSweeper(repository, dispatcher)

    transitions = await sweeper.run_once(now=T0 + timedelta(minutes=11))
    assert transitions == [StatusTransition(check.id, "up", "down", True)]
    assert dispatcher.calls == [(check.id, "down")]
    assert (await repository.get(check.id)).status == "down"

    # Still down on the next tick: no further notification
    assert await sweeper.run_once(now=T0 + timedelta(minutes=12)) == []
    assert dispatcher.calls == [(check.id, "down")]


@pytest.mark.asyncio
async def test_sweep_walks_through_grace(repository, dispatcher):
    check = await repository.create(name="Backup", period=5, grace=5)
    await PingRecorder(repository).record_ping(check.id, now=T0)
    sweeper = StatusSweeper(repository, dispatcher)

    await sweeper.run_once(now=T0 + timedelta(minutes=1))
    await sweeper.run_once(now=T0 + timedelta(minutes=6))
    await sweeper.run_once(now=T0 + timedelta(minutes=11))

    assert dispatcher.calls == [(check.id, "grace"), (check.id, "down")]


@pytest.mark.asyncio
async def test_new_check_is_left_alone(repository, dispatcher):
    await repository.create(name="Never pinged", period=1, grace=1)
    sweeper = StatusSweeper(repository, dispatcher)

    assert await sweeper.run_once(now=T0 + timedelta(days=10)) == []
    assert dispatcher.calls == []


@pytest.mark.asyncio
async def test_new_to_up_is_persisted_without_notification(repository, dispatcher):
    check = await repository.create(name="Imported", period=5, grace=5)
    # A last ping written behind the recorder's back leaves the stored status at new
    await repository.update(check.id, last_ping=T0, next_ping_due=T0 + timedelta(minutes=5))
    sweeper = StatusSweeper(repository, dispatcher)

    transitions = await sweeper.run_once(now=T0 + timedelta(minutes=1))

    assert transitions == [StatusTransition(check.id, "new", "up", False)]
    assert dispatcher.calls == []
    assert (await repository.get(check.id)).status == "up"


@pytest.mark.asyncio
async def test_sweep_only_persists_status(repository, dispatcher):
    check = await repository.create(name="Backup", period=5, grace=5)
    await PingRecorder(repository).record_ping(check.id, now=T0)
    before = await repository.get(check.id)

    await StatusSweeper(repository, dispatcher).run_once(now=T0 + timedelta(minutes=20))

    after = await repository.get(check.id)
    assert after.status == "down"
    assert after.last_ping == before.last_ping
    assert after.next_ping_due == before.next_ping_due


@pytest.mark.asyncio
async def test_failing_check_does_not_stop_the_sweep(repository, dispatcher, caplog):
    broken = await repository.create(name="Broken", period=5, grace=5)
    healthy = await repository.create(name="Healthy", period=5, grace=5)
    recorder = PingRecorder(repository)
    await recorder.record_ping(broken.id, now=T0)
    await recorder.record_ping(healthy.id, now=T0)

    def flaky_compute(check, now):
        if check.id == broken.id:
            raise RuntimeError("boom")
        return compute_status(check, now)

    with patch("pingwatch.sweeper.compute_status", side_effect=flaky_compute):
        with caplog.at_level(logging.ERROR, logger="pingwatch.sweeper"):
            transitions = await StatusSweeper(repository, dispatcher).run_once(
                now=T0 + timedelta(minutes=11)
            )

    assert [t.check_id for t in transitions] == [healthy.id]
    assert (await repository.get(broken.id)).status == "up"
    assert "boom" in caplog.text


@pytest.mark.asyncio
async def test_invalid_stored_cron_fails_open(repository, dispatcher):
    check = await repository.create(name="Cron", cron_expression="0 * * * *", grace=1)
    # Corrupt the stored expression directly, bypassing validation
    await repository.update(check.id, last_ping=T0 - timedelta(days=2), status="up")
    async with test_session_factory() as db:
        stored = await db.get(Check, check.id)
        stored.cron_expression = "bogus"
        stored.next_ping_due = None
        await db.commit()

    transitions = await StatusSweeper(repository, dispatcher).run_once(now=T0)

    assert transitions == []
    assert (await repository.get(check.id)).status == "up"
    assert dispatcher.calls == []


@pytest.mark.asyncio
async def test_sweep_refreshes_cache(repository, dispatcher):
    sweeper = StatusSweeper(repository, dispatcher)
    first = await repository.create(name="One", period=5)
    await sweeper.run_once(now=T0)
    assert set(sweeper.checks) == {first.id}

    await repository.delete(first.id)
    second = await repository.create(name="Two", period=5)
    await sweeper.run_once(now=T0)
    assert set(sweeper.checks) == {second.id}


def test_start_and_stop_register_job(repository, dispatcher):
    scheduler = AsyncIOScheduler()
    sweeper = StatusSweeper(repository, dispatcher, interval_seconds=30)

    sweeper.start(scheduler)
    job = scheduler.get_job(SWEEP_JOB_ID)
    assert sweeper.running
    assert job is not None
    assert job.trigger.interval == timedelta(seconds=30)

    sweeper.stop()
    assert not sweeper.running
    assert scheduler.get_job(SWEEP_JOB_ID) is None


@pytest.mark.asyncio
async def test_http_check_failing_from_the_start_goes_down(repository, dispatcher):
    check = await repository.create(
        name="Public API",
        type="http_request",
        period=5,
        grace=5,
        http_config={"url": "https://api.example.com/health", "method": "GET", "success_codes": [200]},
    )
    mock_response = MagicMock()
    mock_response.status_code = 503

    with patch("pingwatch.probe.httpx.AsyncClient") as MockClient:
        mock_client_instance = AsyncMock()
        mock_client_instance.request = AsyncMock(return_value=mock_response)
        mock_client_instance.__aenter__ = AsyncMock(return_value=mock_client_instance)
        mock_client_instance.__aexit__ = AsyncMock(return_value=False)
        MockClient.return_value = mock_client_instance
        await run_probe(check.id, repository, PingRecorder(repository, dispatcher))

    stored = await repository.get(check.id)
    transitions = await StatusSweeper(repository, dispatcher).run_once(
        now=stored.last_ping + timedelta(days=3)
    )

    assert transitions == [StatusTransition(check.id, "new", "down", True)]
    assert dispatcher.calls == [(check.id, "down")]


@pytest.mark.asyncio
async def test_paused_check_is_not_swept(repository, dispatcher):
    check = await repository.create(name="Paused", period=5, grace=5)
    await PingRecorder(repository).record_ping(check.id, now=T0)
    await repository.update(check.id, enabled=False)

    transitions = await StatusSweeper(repository, dispatcher).run_once(now=T0 + timedelta(days=1))

    assert transitions == []
    assert (await repository.get(check.id)).status == "up"
    assert dispatcher.calls == []
