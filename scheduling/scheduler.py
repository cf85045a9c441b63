"""Deterministic slot generation and conflict checks."""

import logging
from datetime import datetime, timedelta

from scheduling.config import SchedulingPolicy
from scheduling.intervals import TimeInterval, overlaps, pad
from scheduling.schema import Slot

logger = logging.getLogger(__name__)


def generate_slots(
    open_intervals: list[TimeInterval],
    duration_minutes: int,
    buffer_minutes: int,
) -> list[Slot]:
    """
    Candidate slots of exactly `duration_minutes` inside each open interval.
    Consecutive slots in one interval are `buffer_minutes` apart; no buffer is
    carried across separate open intervals.
    """
    if duration_minutes <= 0:
        raise ValueError("duration_minutes must be positive")
    duration = timedelta(minutes=duration_minutes)
    step = duration + timedelta(minutes=max(buffer_minutes, 0))

    slots: list[Slot] = []
    for interval in open_intervals:
        cursor = interval.start
        while cursor + duration <= interval.end:
            slots.append(Slot(start=cursor, end=cursor + duration))
            cursor += step
    return slots


def is_blocked_by_existing(
    candidate: TimeInterval,
    existing: list[TimeInterval],
    buffer_minutes: int,
) -> bool:
    """True if the candidate overlaps any existing interval padded by the buffer."""
    return any(overlaps(pad(appt, buffer_minutes), candidate) for appt in existing)


def is_blocked_by_rule(candidate: TimeInterval, blocked: list[TimeInterval]) -> bool:
    """Blocked windows are hard walls: plain overlap, no buffer."""
    return any(overlaps(window, candidate) for window in blocked)


def within_booking_window(
    start: datetime,
    now: datetime,
    policy: SchedulingPolicy,
) -> bool:
    """Start is at least the minimum notice and at most the advance window after now."""
    earliest = now + timedelta(hours=policy.minimum_notice_hours)
    latest = now + timedelta(days=policy.advance_booking_days)
    return earliest <= start <= latest


def compute_slots(
    open_intervals: list[TimeInterval],
    existing: list[TimeInterval],
    blocked: list[TimeInterval],
    duration_minutes: int,
    policy: SchedulingPolicy,
    now: datetime,
) -> list[Slot]:
    """
    All candidate slots for a day, each flagged `available` when it clears
    existing appointments (with buffer), blocked windows and the booking window.
    """
    candidates = generate_slots(open_intervals, duration_minutes, policy.buffer_minutes)

    slots: list[Slot] = []
    for slot in candidates:
        interval = slot.interval
        available = (
            not is_blocked_by_existing(interval, existing, policy.buffer_minutes)
            and not is_blocked_by_rule(interval, blocked)
            and within_booking_window(slot.start, now, policy)
        )
        slots.append(Slot(start=slot.start, end=slot.end, available=available))

    logger.debug(
        "Generated %d slot(s), %d available, against %d appointment(s) and %d blocked window(s)",
        len(slots),
        sum(1 for s in slots if s.available),
        len(existing),
        len(blocked),
    )
    return slots
