"""Admissibility checks for a proposed booking, applied in order, failing fast."""

from datetime import datetime
from typing import Optional

from scheduling.config import SchedulingPolicy
from scheduling.errors import BookingFailure, ErrorKind
from scheduling.intervals import TimeInterval, contains
from scheduling.scheduler import (
    is_blocked_by_existing,
    is_blocked_by_rule,
    within_booking_window,
)


def validate_booking(
    proposed_start: datetime,
    proposed_end: datetime,
    open_intervals: list[TimeInterval],
    existing: list[TimeInterval],
    policy: SchedulingPolicy,
    now: datetime,
    blocked: Optional[list[TimeInterval]] = None,
) -> Optional[BookingFailure]:
    """
    Return None when the booking is admissible, otherwise the first failure:
    booking window, then open availability, then conflicts.
    The proposed time is never adjusted.
    """
    if proposed_end <= proposed_start:
        return BookingFailure.of(ErrorKind.INVALID_INTERVAL)

    if not within_booking_window(proposed_start, now, policy):
        return BookingFailure.of(
            ErrorKind.OUT_OF_BOOKING_WINDOW,
            minimum_notice_hours=policy.minimum_notice_hours,
            advance_booking_days=policy.advance_booking_days,
        )

    candidate = TimeInterval(start=proposed_start, end=proposed_end)
    if not any(contains(window, candidate) for window in open_intervals):
        return BookingFailure.of(ErrorKind.OUTSIDE_AVAILABILITY)

    if is_blocked_by_rule(candidate, blocked or []) or is_blocked_by_existing(
        candidate, existing, policy.buffer_minutes
    ):
        return BookingFailure.of(ErrorKind.SLOT_UNAVAILABLE)

    return None
