"""
Next-due computation for checks.

A check is scheduled either by a fixed period in minutes or by a standard
5-field cron expression. Cron expressions are evaluated with APScheduler's
CronTrigger, always against an explicit anchor time in UTC. As in classic
cron, an expression restricting both day-of-month and day-of-week fires when
either of them matches.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol, Union

from apscheduler.triggers.combining import OrTrigger
from apscheduler.triggers.cron import CronTrigger

from pingwatch.errors import InvalidScheduleError

logger = logging.getLogger("pingwatch.schedule")

CRON_FIELDS = ("minute", "hour", "day", "month", "day_of_week")

# Standard cron numbers weekdays from Sunday (0 or 7); APScheduler from Monday.
_WEEKDAY_NAMES = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")


class SchedulePolicy(Protocol):
    period: int
    cron_expression: Optional[str]


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return ``value`` as an aware UTC datetime (naive values are taken as UTC)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _weekday_number(token: str, expression: str) -> int:
    token = token.strip().lower()
    if token[:3] in _WEEKDAY_NAMES and not token.isdigit():
        return _WEEKDAY_NAMES.index(token[:3])
    try:
        number = int(token)
    except ValueError:
        raise InvalidScheduleError(expression, f"bad day-of-week value {token!r}") from None
    if not 0 <= number <= 7:
        raise InvalidScheduleError(expression, f"day-of-week {number} out of range")
    return number % 7


def _translate_day_of_week(field: str, expression: str) -> str:
    """Rewrite a cron day-of-week field as an explicit list of weekday names."""
    if field == "*":
        return field

    days: set[int] = set()
    for part in field.split(","):
        step = 1
        if "/" in part:
            part, step_text = part.split("/", 1)
            if not step_text.isdigit() or int(step_text) == 0:
                raise InvalidScheduleError(expression, f"bad day-of-week step {step_text!r}")
            step = int(step_text)

        if part == "*":
            first, last = 0, 6
        elif "-" in part:
            start_text, end_text = part.split("-", 1)
            first = _weekday_number(start_text, expression)
            last = _weekday_number(end_text, expression)
            if end_text.strip() == "7":
                last = 7
            if last < first:
                raise InvalidScheduleError(expression, f"bad day-of-week range {part!r}")
        else:
            first = last = _weekday_number(part, expression)
            if step != 1:
                last = 7

        days.update(day % 7 for day in range(first, last + 1, step))

    return ",".join(_WEEKDAY_NAMES[day] for day in sorted(days))


def parse_cron(expression: str) -> Union[CronTrigger, OrTrigger]:
    """Build a UTC trigger from a 5-field cron expression.

    CronTrigger requires every field to match. When both day fields are
    restricted the result is an OrTrigger of a day-of-month trigger and a
    day-of-week trigger instead.
    """
    if not expression or not expression.strip():
        raise InvalidScheduleError(expression or "", "expression is empty")

    values = expression.split()
    if len(values) != len(CRON_FIELDS):
        raise InvalidScheduleError(
            expression, f"expected {len(CRON_FIELDS)} fields, got {len(values)}"
        )

    fields = dict(zip(CRON_FIELDS, values))
    both_days_restricted = not (
        fields["day"].startswith("*") or fields["day_of_week"].startswith("*")
    )
    fields["day_of_week"] = _translate_day_of_week(fields["day_of_week"], expression)
    try:
        if not both_days_restricted:
            return CronTrigger(timezone=timezone.utc, **fields)
        return OrTrigger([
            CronTrigger(timezone=timezone.utc, **{**fields, "day_of_week": "*"}),
            CronTrigger(timezone=timezone.utc, **{**fields, "day": "*"}),
        ])
    except (ValueError, TypeError) as e:
        raise InvalidScheduleError(expression, str(e)) from e


def validate_cron_expression(expression: str) -> str:
    """Return the normalised expression, raising InvalidScheduleError if it is unusable."""
    trigger = parse_cron(expression)
    probe = datetime(2000, 1, 1, tzinfo=timezone.utc)
    if trigger.get_next_fire_time(probe, probe) is None:
        raise InvalidScheduleError(expression, "expression never fires")
    return " ".join(expression.split())


def next_due(policy: SchedulePolicy, from_time: datetime) -> Optional[datetime]:
    """Next time a ping is expected, strictly after ``from_time``.

    Returns ``None`` when the check has neither a cron expression nor a
    positive period, which means it is never due.
    """
    anchor = as_utc(from_time)
    cron_expression = (policy.cron_expression or "").strip()

    if cron_expression:
        trigger = parse_cron(cron_expression)
        # Passing the anchor as the previous fire time makes the result strictly later
        return trigger.get_next_fire_time(anchor, anchor)

    if policy.period and policy.period > 0:
        return anchor + timedelta(minutes=policy.period)

    logger.warning(
        f"Check {getattr(policy, 'id', '?')} has neither a period nor a cron "
        f"expression; treating it as never due"
    )
    return None
