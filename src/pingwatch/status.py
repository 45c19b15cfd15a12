"""
Check status calculation.

Status is derived, never authoritative: it is always recomputable from the
last ping, the next due time, the grace window and the current time.
"""
import enum
import logging
from datetime import datetime, timedelta
from typing import Optional, Protocol

from pingwatch.errors import InvalidScheduleError
from pingwatch.schedule import as_utc, next_due

logger = logging.getLogger("pingwatch.status")


class CheckStatus(str, enum.Enum):
    NEW = "new"
    UP = "up"
    GRACE = "grace"
    DOWN = "down"


class CheckState(Protocol):
    id: str
    period: int
    grace: int
    cron_expression: Optional[str]
    last_ping: Optional[datetime]
    next_ping_due: Optional[datetime]


def compute_status(check: CheckState, now: datetime) -> CheckStatus:
    """Derive the status of ``check`` at ``now``."""
    if check.last_ping is None:
        return CheckStatus.NEW

    due = as_utc(check.next_ping_due)
    if due is None:
        try:
            due = next_due(check, check.last_ping)
        except InvalidScheduleError as e:
            # Fail open: a parser problem must not flap the check to down
            logger.warning(f"Check {check.id}: {e}; reporting it as up")
            return CheckStatus.UP
        if due is None:
            return CheckStatus.UP

    now = as_utc(now)
    if now < due:
        return CheckStatus.UP
    if now < due + timedelta(minutes=check.grace or 0):
        return CheckStatus.GRACE
    return CheckStatus.DOWN
