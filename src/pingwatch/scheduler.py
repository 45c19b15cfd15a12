"""
APScheduler integration: runs the status sweep and per-check HTTP probes.
"""
import logging
from typing import Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from pingwatch.models.check import Check
from pingwatch.probe import run_probe
from pingwatch.recorder import PingRecorder
from pingwatch.repository import CheckRepository
from pingwatch.schedule import parse_cron
from pingwatch.sweeper import StatusSweeper

logger = logging.getLogger("pingwatch.scheduler")

scheduler = AsyncIOScheduler()


async def start_scheduler(
    sweeper: StatusSweeper,
    repository: CheckRepository,
    recorder: PingRecorder,
) -> None:
    """Start the sweep and schedule a probe for every HTTP request check."""
    sweeper.start(scheduler)

    checks = [
        c for c in await repository.list_checks() if c.type == "http_request" and c.enabled
    ]
    for check in checks:
        schedule_probe(check, repository, recorder)
        logger.info(f"Scheduled probe for check '{check.name}'")

    scheduler.start()
    logger.info(f"Scheduler started with {len(checks)} HTTP probe(s)")


async def _probe_job(check_id: str, repository: CheckRepository, recorder: PingRecorder) -> None:
    try:
        await run_probe(check_id, repository, recorder)
    except Exception as e:
        logger.error(f"Probe job for check {check_id} failed: {e}")


def schedule_probe(check: Check, repository: CheckRepository, recorder: PingRecorder) -> None:
    """Add or update the probe job of an HTTP request check.

    Standard checks and paused checks have no probe job.
    """
    if check.type != "http_request" or not check.enabled:
        unschedule_probe(check.id)
        return

    if check.cron_expression:
        trigger = parse_cron(check.cron_expression)
    elif check.period and check.period > 0:
        trigger = IntervalTrigger(minutes=check.period)
    else:
        logger.warning(f"Check {check.id} has no schedule; probe not scheduled")
        return

    scheduler.add_job(
        _probe_job,
        trigger=trigger,
        id=f"probe_{check.id}",
        args=[check.id, repository, recorder],
        replace_existing=True,
        max_instances=1,
    )


def unschedule_probe(check_id: str) -> None:
    try:
        scheduler.remove_job(f"probe_{check_id}")
    except JobLookupError:
        pass  # Job may not exist


def stop_scheduler(sweeper: Optional[StatusSweeper] = None) -> None:
    """Stop the sweep and shut down the scheduler."""
    if sweeper is not None:
        sweeper.stop()
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
