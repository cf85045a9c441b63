"""Resolve a doctor's effective open intervals for one calendar day."""

import logging
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from scheduling.intervals import TimeInterval, merge, subtract
from scheduling.schema import AvailabilityRule, parse_time

logger = logging.getLogger(__name__)


def day_of_week(day: date) -> int:
    """Weekday number as stored on rules: 1=Monday, 7=Sunday."""
    return day.isoweekday()


def wall_clock_instant(day: date, hhmm: str, tz: ZoneInfo) -> datetime:
    """Convert a wall-clock time on `day` in `tz` to a UTC instant."""
    h, m = parse_time(hhmm)
    extra_days = 0
    if h == 24:
        h, extra_days = 0, 1
    local = datetime(day.year, day.month, day.day, h, m, tzinfo=tz)
    return (local + timedelta(days=extra_days)).astimezone(timezone.utc)


def rule_interval(rule: AvailabilityRule, day: date, tz: ZoneInfo) -> TimeInterval:
    return TimeInterval(
        start=wall_clock_instant(day, rule.start_time, tz),
        end=wall_clock_instant(day, rule.end_time, tz),
    )


def applicable_rules(day: date, rules: list[AvailabilityRule]) -> list[AvailabilityRule]:
    """Recurring rules matching the weekday plus date-specific rules for the exact date."""
    return [r for r in rules if r.applies_to(day)]


def blocked_intervals(
    day: date,
    rules: list[AvailabilityRule],
    tz: ZoneInfo,
) -> list[TimeInterval]:
    """Merged blocked windows applying to `day`."""
    return merge(
        rule_interval(r, day, tz) for r in applicable_rules(day, rules) if r.is_blocked
    )


def resolve_open_intervals(
    day: date,
    rules: list[AvailabilityRule],
    tz: ZoneInfo,
) -> list[TimeInterval]:
    """
    Effective open intervals for `day`: union of open windows minus every blocked window.
    A day with no applicable open rule is closed; there is no default business-hours fallback.
    Result is sorted, non-overlapping and never has two touching intervals.
    """
    matching = applicable_rules(day, rules)
    open_windows = [rule_interval(r, day, tz) for r in matching if not r.is_blocked]
    if not open_windows:
        logger.debug("No open availability for %s", day.isoformat())
        return []

    blocked = [rule_interval(r, day, tz) for r in matching if r.is_blocked]
    resolved = subtract(merge(open_windows), blocked)
    logger.debug(
        "Resolved %d open interval(s) for %s from %d rule(s), %d blocked",
        len(resolved),
        day.isoformat(),
        len(matching),
        len(blocked),
    )
    return resolved
