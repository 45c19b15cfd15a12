"""Tests for probe job scheduling."""
import pytest
from datetime import timedelta

from apscheduler.triggers.cron import CronTrigger

from pingwatch.recorder import PingRecorder
from pingwatch.scheduler import scheduler, schedule_probe, unschedule_probe

HTTP_CONFIG = {"url": "https://api.example.com/health", "method": "GET", "success_codes": [200]}


@pytest.mark.asyncio
async def test_interval_probe_job(repository):
    check = await repository.create(name="API", type="http_request", period=15, http_config=HTTP_CONFIG)
    try:
        schedule_probe(check, repository, PingRecorder(repository))
        job = scheduler.get_job(f"probe_{check.id}")
        assert job is not None
        assert job.trigger.interval == timedelta(minutes=15)
        assert job.args[0] == check.id
    finally:
        unschedule_probe(check.id)
    assert scheduler.get_job(f"probe_{check.id}") is None


@pytest.mark.asyncio
async def test_cron_probe_job(repository):
    check = await repository.create(
        name="API", type="http_request", cron_expression="*/5 * * * *", http_config=HTTP_CONFIG
    )
    try:
        schedule_probe(check, repository, PingRecorder(repository))
        assert isinstance(scheduler.get_job(f"probe_{check.id}").trigger, CronTrigger)
    finally:
        unschedule_probe(check.id)


@pytest.mark.asyncio
async def test_standard_check_has_no_probe(repository):
    check = await repository.create(name="Heartbeat", period=5)
    schedule_probe(check, repository, PingRecorder(repository))
    assert scheduler.get_job(f"probe_{check.id}") is None


def test_unschedule_missing_job_is_noop():
    unschedule_probe("never-scheduled")


@pytest.mark.asyncio
async def test_paused_check_loses_its_probe(repository):
    check = await repository.create(name="API", type="http_request", period=15, http_config=HTTP_CONFIG)
    recorder = PingRecorder(repository)
    try:
        schedule_probe(check, repository, recorder)
        assert scheduler.get_job(f"probe_{check.id}") is not None

        paused = await repository.update(check.id, enabled=False)
        schedule_probe(paused, repository, recorder)
        assert scheduler.get_job(f"probe_{check.id}") is None

        resumed = await repository.update(check.id, enabled=True)
        schedule_probe(resumed, repository, recorder)
        assert scheduler.get_job(f"probe_{check.id}") is not None
    finally:
        unschedule_probe(check.id)
