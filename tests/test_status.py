"""Tests for status derivation."""
import logging
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from pingwatch.status import CheckStatus, compute_status

T0 = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_check(**overrides):
    fields = {
        "id": "check-1",
        "period": 5,
        "grace": 5,
        "cron_expression": None,
        "last_ping": None,
        "next_ping_due": None,
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


def test_never_pinged_is_new():
    assert compute_status(make_check(), T0) == CheckStatus.NEW
    assert compute_status(make_check(next_ping_due=T0 - timedelta(days=1)), T0) == CheckStatus.NEW


@pytest.mark.parametrize(
    "offset, expected",
    [
        (timedelta(minutes=-1), CheckStatus.UP),
        (timedelta(seconds=-1), CheckStatus.UP),
        (timedelta(0), CheckStatus.GRACE),
        (timedelta(minutes=4, seconds=59), CheckStatus.GRACE),
        (timedelta(minutes=5), CheckStatus.DOWN),
        (timedelta(hours=3), CheckStatus.DOWN),
    ],
)
def test_status_boundaries(offset, expected):
    due = T0 + timedelta(minutes=5)
    check = make_check(last_ping=T0, next_ping_due=due)
    assert compute_status(check, due + offset) == expected


def test_period_scenario():
    """period=5, grace=5: up after the ping, grace at +6m, down at +11m."""
    check = make_check(last_ping=T0, next_ping_due=T0 + timedelta(minutes=5))
    assert compute_status(check, T0 + timedelta(minutes=1)) == CheckStatus.UP
    assert compute_status(check, T0 + timedelta(minutes=6)) == CheckStatus.GRACE
    assert compute_status(check, T0 + timedelta(minutes=11)) == CheckStatus.DOWN


def test_cron_scenario_computes_missing_due_time():
    check = make_check(period=0, cron_expression="*/10 * * * *", grace=3, last_ping=T0)
    assert compute_status(check, T0 + timedelta(minutes=9)) == CheckStatus.UP
    assert compute_status(check, T0 + timedelta(minutes=10)) == CheckStatus.GRACE
    assert compute_status(check, T0 + timedelta(minutes=13)) == CheckStatus.DOWN


def test_naive_timestamps_are_utc():
    check = make_check(
        last_ping=T0.replace(tzinfo=None),
        next_ping_due=(T0 + timedelta(minutes=5)).replace(tzinfo=None),
    )
    assert compute_status(check, T0 + timedelta(minutes=6)) == CheckStatus.GRACE


def test_invalid_cron_fails_open(caplog):
    check = make_check(period=0, cron_expression="not a cron", last_ping=T0 - timedelta(days=30))
    with caplog.at_level(logging.WARNING, logger="pingwatch.status"):
        status = compute_status(check, T0)
    assert status == CheckStatus.UP
    assert "reporting it as up" in caplog.text


def test_check_without_schedule_stays_up():
    check = make_check(period=0, last_ping=T0 - timedelta(days=30))
    assert compute_status(check, T0) == CheckStatus.UP


def test_status_values_are_plain_strings():
    assert CheckStatus.GRACE == "grace"
    assert CheckStatus.DOWN.value == "down"
