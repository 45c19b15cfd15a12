"""
Error taxonomy.

Schedule and not-found errors are raised synchronously to the caller.
Compute and delivery errors are raised inside the sweep and the notifier
and are always caught and logged there.
"""
from typing import Optional


class PingWatchError(Exception):
    """Base class for all PingWatch errors."""


class InvalidScheduleError(PingWatchError, ValueError):
    """A cron expression could not be parsed."""

    def __init__(self, expression: str, reason: Optional[str] = None) -> None:
        self.expression = expression
        self.reason = reason
        message = f"Invalid cron expression {expression!r}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class NotFoundError(PingWatchError):
    """Referenced check does not exist."""

    def __init__(self, check_id: str) -> None:
        self.check_id = check_id
        super().__init__(f"Check {check_id} not found")


class TransientComputeError(PingWatchError):
    """Status computation for a single check failed during a sweep tick."""

    def __init__(self, check_id: str, cause: Exception) -> None:
        self.check_id = check_id
        self.cause = cause
        super().__init__(f"Status computation failed for check {check_id}: {cause}")


class NotificationDeliveryError(PingWatchError):
    """A webhook or email notification could not be delivered."""

    def __init__(self, integration_id: str, channel: str, cause: Exception) -> None:
        self.integration_id = integration_id
        self.channel = channel
        self.cause = cause
        super().__init__(f"{channel} delivery failed for integration {integration_id}: {cause}")
