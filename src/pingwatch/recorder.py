"""
Ping recording.

Every recorded heartbeat resets its check to ``up`` and re-anchors the next
due time at the ping's timestamp, whatever the ping's own status value.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from pingwatch.errors import InvalidScheduleError, NotFoundError
from pingwatch.locks import CheckLocks, check_locks
from pingwatch.models.ping import Ping
from pingwatch.notifier import NotificationDispatcher
from pingwatch.repository import CheckRepository
from pingwatch.schedule import next_due
from pingwatch.status import CheckStatus

logger = logging.getLogger("pingwatch.recorder")

PING_STATUSES = ("success", "failure", "start", "timeout")

# Statuses a ping counts as a recovery from
RECOVERABLE_STATUSES = (CheckStatus.GRACE.value, CheckStatus.DOWN.value)


class PingRecorder:
    def __init__(
        self,
        repository: CheckRepository,
        dispatcher: Optional[NotificationDispatcher] = None,
        locks: Optional[CheckLocks] = None,
    ) -> None:
        self.repository = repository
        self.dispatcher = dispatcher
        self.locks = locks or check_locks

    async def record_ping(
        self,
        check_id: str,
        status: str = "success",
        now: Optional[datetime] = None,
        *,
        response_code: Optional[int] = None,
        method: Optional[str] = None,
        request_url: Optional[str] = None,
        duration_ms: Optional[int] = None,
    ) -> Ping:
        """Append a ping and reset the check to up.

        Raises NotFoundError (without writing anything) for an unknown check.
        """
        if status not in PING_STATUSES:
            raise ValueError(f"Unknown ping status '{status}'")
        now = now or datetime.now(timezone.utc)

        async with self.locks.lock(check_id):
            check = await self.repository.get(check_id)
            if check is None:
                raise NotFoundError(check_id)
            previous_status = check.status

            try:
                due = next_due(check, now)
            except InvalidScheduleError as e:
                logger.warning(f"Check {check_id}: {e}; next due time left unset")
                due = None

            ping = await self.repository.insert_ping(
                check_id=check_id,
                timestamp=now,
                status=status,
                response_code=response_code,
                method=method,
                request_url=request_url,
                duration_ms=duration_ms,
            )

            fields = {
                "last_ping": now,
                "next_ping_due": due,
                # TODO: decide whether a failure ping should mark the check down
                "status": CheckStatus.UP.value,
            }
            if duration_ms is not None:
                fields["last_duration"] = duration_ms / 1000
            await self.repository.update(check_id, **fields)

        logger.info(f"Ping '{status}' recorded for check '{check.name}' ({check_id})")

        if previous_status in RECOVERABLE_STATUSES and self.dispatcher is not None:
            logger.info(f"RECOVERED: check '{check.name}' is back UP")
            await self.dispatcher.notify(check_id, CheckStatus.UP.value)

        return ping

    async def record_probe_failure(
        self,
        check_id: str,
        now: Optional[datetime] = None,
        *,
        status: str = "failure",
        response_code: Optional[int] = None,
        method: Optional[str] = None,
        request_url: Optional[str] = None,
        duration_ms: Optional[int] = None,
        error: Optional[str] = None,
    ) -> Ping:
        """Log a failed HTTP probe without resetting the check to up.

        The heartbeat is left alone, except for a check that has never been
        pinged: its first failure anchors ``last_ping`` and ``next_ping_due``
        so the sweep can age it into grace and down.
        """
        now = now or datetime.now(timezone.utc)
        async with self.locks.lock(check_id):
            check = await self.repository.get(check_id)
            if check is None:
                raise NotFoundError(check_id)
            ping = await self.repository.insert_ping(
                check_id=check_id,
                timestamp=now,
                status=status,
                response_code=response_code,
                method=method,
                request_url=request_url,
                duration_ms=duration_ms,
                error=error,
            )

            fields = {}
            if check.last_ping is None:
                try:
                    fields["next_ping_due"] = next_due(check, now)
                except InvalidScheduleError as e:
                    logger.warning(f"Check {check_id}: {e}; next due time left unset")
                fields["last_ping"] = now
            if duration_ms is not None:
                fields["last_duration"] = duration_ms / 1000
            if fields:
                await self.repository.update(check_id, **fields)

        logger.info(f"Probe failure '{status}' recorded for check '{check.name}' ({check_id})")
        return ping
