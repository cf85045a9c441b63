"""Weekly availability grid for the admin calendar view.

Display only: the grid covers a fixed daily window so that unconfigured time
shows up as blocked. Bookable availability always comes from the resolver.
"""

from datetime import date, datetime, timedelta
from typing import Literal, Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel

from scheduling.availability import resolve_open_intervals, rule_interval, wall_clock_instant
from scheduling.config import SchedulingPolicy
from scheduling.intervals import TimeInterval, contains, overlaps
from scheduling.schema import Appointment, AvailabilityRule

SlotState = Literal["available", "blocked", "booked", "past"]

GRID_DAYS = 6  # Monday..Saturday


class GridSlot(BaseModel):
    start: datetime
    end: datetime
    start_label: str
    end_label: str
    duration_minutes: int
    state: SlotState
    appointment_id: Optional[str] = None
    block_reason: Optional[str] = None


def day_slots(day: date, duration_minutes: int, policy: SchedulingPolicy) -> list[TimeInterval]:
    """Display slots over the grid window, stepping duration + buffer."""
    tz = ZoneInfo(policy.timezone)
    cursor = wall_clock_instant(day, policy.grid_start, tz)
    end = wall_clock_instant(day, policy.grid_end, tz)
    duration = timedelta(minutes=duration_minutes)
    step = duration + timedelta(minutes=policy.buffer_minutes)

    slots = []
    while cursor + duration <= end:
        slots.append(TimeInterval(start=cursor, end=cursor + duration))
        cursor += step
    return slots


def slot_state(
    slot: TimeInterval,
    day: date,
    rules: list[AvailabilityRule],
    open_intervals: list[TimeInterval],
    appointments: list[Appointment],
    tz: ZoneInfo,
    now: datetime,
) -> tuple[SlotState, Optional[str], Optional[str]]:
    """(state, appointment_id, block_reason), checked as past, booked, blocked, available."""
    if slot.start < now:
        return "past", None, None

    for appt in appointments:
        if appt.is_active and overlaps(appt.interval, slot):
            return "booked", appt.id, None

    for rule in rules:
        if rule.is_blocked and rule.applies_to(day) and overlaps(rule_interval(rule, day, tz), slot):
            return "blocked", None, rule.block_reason or "Blocked"

    if any(contains(window, slot) for window in open_intervals):
        return "available", None, None
    return "blocked", None, "No availability"


def weekly_grid(
    week_start: date,
    duration_minutes: int,
    rules: list[AvailabilityRule],
    appointments: list[Appointment],
    policy: SchedulingPolicy,
    now: datetime,
) -> list[list[GridSlot]]:
    tz = ZoneInfo(policy.timezone)
    grid: list[list[GridSlot]] = []
    for offset in range(GRID_DAYS):
        day = week_start + timedelta(days=offset)
        open_intervals = resolve_open_intervals(day, rules, tz)
        row = []
        for slot in day_slots(day, duration_minutes, policy):
            state, appointment_id, reason = slot_state(
                slot, day, rules, open_intervals, appointments, tz, now
            )
            row.append(
                GridSlot(
                    start=slot.start,
                    end=slot.end,
                    start_label=slot.start.astimezone(tz).strftime("%H:%M"),
                    end_label=slot.end.astimezone(tz).strftime("%H:%M"),
                    duration_minutes=duration_minutes,
                    state=state,
                    appointment_id=appointment_id,
                    block_reason=reason,
                )
            )
        grid.append(row)
    return grid


def weekly_stats(grid: list[list[GridSlot]]) -> dict[str, float]:
    stats = {"available_slots": 0, "blocked_slots": 0, "booked_slots": 0, "available_hours": 0.0}
    for row in grid:
        for slot in row:
            if slot.state == "available":
                stats["available_slots"] += 1
                stats["available_hours"] += slot.duration_minutes / 60
            elif slot.state == "blocked":
                stats["blocked_slots"] += 1
            elif slot.state == "booked":
                stats["booked_slots"] += 1
    return stats
