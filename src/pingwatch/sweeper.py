"""
Periodic re-evaluation of every check's status.

Each tick refreshes the cached checks from the repository, recomputes their
status and, on a transition, persists the new status and notifies the
check's integrations. Paused checks keep their stored status. A failing
check is skipped for the tick without affecting the others.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from pingwatch.errors import TransientComputeError
from pingwatch.locks import CheckLocks, check_locks
from pingwatch.models.check import Check
from pingwatch.notifier import NotificationDispatcher
from pingwatch.repository import CheckRepository
from pingwatch.status import CheckStatus, compute_status

logger = logging.getLogger("pingwatch.sweeper")

SWEEP_JOB_ID = "status_sweep"


@dataclass(frozen=True)
class StatusTransition:
    check_id: str
    previous: str
    current: str
    notified: bool


def should_notify(previous: str, current: str) -> bool:
    """Grace and down always notify; up only when recovering from a non-new state."""
    if current in (CheckStatus.GRACE.value, CheckStatus.DOWN.value):
        return True
    return current == CheckStatus.UP.value and previous != CheckStatus.NEW.value


class StatusSweeper:
    def __init__(
        self,
        repository: CheckRepository,
        dispatcher: NotificationDispatcher,
        interval_seconds: int = 60,
        locks: Optional[CheckLocks] = None,
    ) -> None:
        self.repository = repository
        self.dispatcher = dispatcher
        self.interval_seconds = interval_seconds
        self.locks = locks or check_locks
        self.checks: dict[str, Check] = {}
        self._scheduler: Optional[AsyncIOScheduler] = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None

    def start(self, scheduler: AsyncIOScheduler) -> None:
        scheduler.add_job(
            self.run_once,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id=SWEEP_JOB_ID,
            replace_existing=True,
            max_instances=1,
        )
        self._scheduler = scheduler
        logger.info(f"Status sweep scheduled every {self.interval_seconds}s")

    def stop(self) -> None:
        if self._scheduler is None:
            return
        if self._scheduler.get_job(SWEEP_JOB_ID) is not None:
            self._scheduler.remove_job(SWEEP_JOB_ID)
        self._scheduler = None
        logger.info("Status sweep stopped")

    async def refresh(self) -> None:
        self.checks = {check.id: check for check in await self.repository.list_checks()}

    async def run_once(self, now: Optional[datetime] = None) -> list[StatusTransition]:
        """Run a single sweep and return the transitions it applied."""
        now = now or datetime.now(timezone.utc)
        try:
            await self.refresh()
        except Exception as e:
            logger.error(f"Sweep skipped, could not load checks: {e}")
            return []

        transitions = []
        for check_id in list(self.checks):
            try:
                transition = await self._evaluate(check_id, now)
            except TransientComputeError as e:
                logger.error(f"{e}; keeping previous status")
                continue
            if transition is not None:
                transitions.append(transition)

        if transitions:
            logger.info(f"Sweep applied {len(transitions)} status change(s)")
        return transitions

    async def _evaluate(self, check_id: str, now: datetime) -> Optional[StatusTransition]:
        try:
            async with self.locks.lock(check_id):
                # Re-read under the lock so a concurrent ping is never overwritten
                check = await self.repository.get(check_id)
                if check is None:
                    self.checks.pop(check_id, None)
                    return None
                if not check.enabled:
                    self.checks[check_id] = check
                    return None

                previous = check.status
                current = compute_status(check, now).value
                if current == previous:
                    self.checks[check_id] = check
                    return None

                updated = await self.repository.update(check_id, status=current)
                self.checks[check_id] = updated or check
        except Exception as e:
            raise TransientComputeError(check_id, e) from e

        log = logger.warning if current in (CheckStatus.GRACE.value, CheckStatus.DOWN.value) else logger.info
        log(f"Check '{check.name}' ({check_id}) changed {previous} -> {current}")

        notified = should_notify(previous, current)
        if notified:
            await self.dispatcher.notify(check_id, current)
        return StatusTransition(check_id, previous, current, notified)
