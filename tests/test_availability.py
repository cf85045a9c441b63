"""Tests for resolving open intervals from availability rules."""

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest
from pydantic import ValidationError

from scheduling.availability import blocked_intervals, day_of_week, resolve_open_intervals
from scheduling.intervals import TimeInterval
from scheduling.schema import AvailabilityRule
from tests.conftest import WEDNESDAY, at

UTC = ZoneInfo("UTC")


def recurring(day: int, start: str, end: str, blocked: bool = False, reason=None):
    return AvailabilityRule(
        is_recurring=True,
        day_of_week=day,
        start_time=start,
        end_time=end,
        is_blocked=blocked,
        block_reason=reason,
    )


def one_off(on: date, start: str, end: str, blocked: bool = False, reason=None):
    return AvailabilityRule(
        is_recurring=False,
        specific_date=on,
        start_time=start,
        end_time=end,
        is_blocked=blocked,
        block_reason=reason,
    )


def test_day_of_week_is_monday_one_sunday_seven():
    """Weekdays are numbered 1 (Monday) to 7 (Sunday)."""
    assert day_of_week(date(2025, 3, 3)) == 1
    assert day_of_week(date(2025, 3, 9)) == 7


def test_blocked_one_off_splits_recurring_window():
    """A one-off block over lunch carves the recurring window in two."""
    rules = [
        recurring(3, "10:00", "18:00"),
        one_off(WEDNESDAY, "13:00", "14:00", blocked=True, reason="Lunch meeting"),
    ]
    assert resolve_open_intervals(WEDNESDAY, rules, UTC) == [
        TimeInterval(start=at(10), end=at(13)),
        TimeInterval(start=at(14), end=at(18)),
    ]


def test_no_rules_means_closed():
    """A day without rules is closed."""
    assert resolve_open_intervals(WEDNESDAY, [], UTC) == []


def test_rules_for_other_days_do_not_apply():
    """Rules for another weekday or date are ignored."""
    rules = [recurring(2, "09:00", "17:00"), one_off(date(2025, 3, 6), "09:00", "12:00")]
    assert [r.kind for r in rules] == ["recurring", "specific_date"]
    assert resolve_open_intervals(WEDNESDAY, rules, UTC) == []


def test_blocked_rule_without_open_rule_has_no_effect():
    """A block alone opens nothing but is still reported."""
    rules = [one_off(WEDNESDAY, "09:00", "12:00", blocked=True)]
    assert resolve_open_intervals(WEDNESDAY, rules, UTC) == []
    assert blocked_intervals(WEDNESDAY, rules, UTC) == [TimeInterval(start=at(9), end=at(12))]


def test_adjacent_open_windows_are_merged():
    """Touching and overlapping open windows become one interval."""
    rules = [
        recurring(3, "10:00", "12:00"),
        one_off(WEDNESDAY, "12:00", "15:00"),
        recurring(3, "14:00", "16:00"),
    ]
    assert resolve_open_intervals(WEDNESDAY, rules, UTC) == [
        TimeInterval(start=at(10), end=at(16)),
    ]


def test_block_covering_whole_window_closes_day():
    """A block wider than the open window removes it entirely."""
    rules = [recurring(3, "10:00", "18:00"), one_off(WEDNESDAY, "08:00", "20:00", blocked=True)]
    assert resolve_open_intervals(WEDNESDAY, rules, UTC) == []


def test_wall_clock_windows_use_practice_timezone():
    """10:00 in New York on 2025-03-05 (EST) is 15:00 UTC."""
    rules = [recurring(3, "10:00", "11:00")]
    intervals = resolve_open_intervals(WEDNESDAY, rules, ZoneInfo("America/New_York"))
    assert intervals == [
        TimeInterval(
            start=datetime(2025, 3, 5, 15, 0, tzinfo=timezone.utc),
            end=datetime(2025, 3, 5, 16, 0, tzinfo=timezone.utc),
        )
    ]


def test_seconds_in_rule_times_are_accepted():
    """HH:MM:SS rule times are read like HH:MM."""
    rules = [recurring(3, "10:00:00", "12:00:00")]
    assert resolve_open_intervals(WEDNESDAY, rules, UTC) == [
        TimeInterval(start=at(10), end=at(12)),
    ]


def test_rule_validation():
    """Inverted windows, bad weekdays and a missing day or date are rejected."""
    with pytest.raises(ValidationError):
        recurring(3, "12:00", "10:00")
    with pytest.raises(ValidationError):
        recurring(0, "10:00", "12:00")
    with pytest.raises(ValidationError):
        AvailabilityRule(is_recurring=True, start_time="10:00", end_time="12:00")
    with pytest.raises(ValidationError):
        AvailabilityRule(is_recurring=False, start_time="10:00", end_time="12:00")


@pytest.mark.parametrize(
    "start, end",
    [
        ("10:00", "25:00"),
        ("10:75", "12:00"),
        ("99:99", "23:00"),
        ("24:00", "24:00"),
        ("9:00", "12:00"),
    ],
)
def test_rule_times_out_of_range_are_rejected(start, end):
    """Hours above 23 (other than an end of 24:00) and minutes above 59 are invalid."""
    with pytest.raises(ValidationError):
        recurring(3, start, end)


def test_end_of_day_rule_runs_to_midnight():
    """24:00 as an end time closes the window at the next midnight."""
    rules = [recurring(3, "20:00", "24:00")]
    assert resolve_open_intervals(WEDNESDAY, rules, UTC) == [
        TimeInterval(start=at(20), end=at(0, day=date(2025, 3, 6))),
    ]
