"""Half-open time interval algebra shared by every scheduling step."""

from datetime import datetime, timedelta
from typing import Iterable

from pydantic import BaseModel, ConfigDict, model_validator


class TimeInterval(BaseModel):
    """Half-open interval [start, end) between two aware instants."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @model_validator(mode="after")
    def check_order(self) -> "TimeInterval":
        if self.start >= self.end:
            raise ValueError("interval start must be before end")
        return self

    @property
    def minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)


def overlaps(a: TimeInterval, b: TimeInterval) -> bool:
    """True iff the intervals share time. Touching endpoints do not overlap."""
    return a.start < b.end and a.end > b.start


def pad(interval: TimeInterval, minutes: int) -> TimeInterval:
    """Widen an interval by `minutes` on both sides."""
    if minutes <= 0:
        return interval
    delta = timedelta(minutes=minutes)
    return TimeInterval(start=interval.start - delta, end=interval.end + delta)


def contains(outer: TimeInterval, inner: TimeInterval) -> bool:
    return outer.start <= inner.start and inner.end <= outer.end


def merge(intervals: Iterable[TimeInterval]) -> list[TimeInterval]:
    """Sort and coalesce overlapping or touching intervals."""
    merged: list[TimeInterval] = []
    for current in sorted(intervals, key=lambda i: i.start):
        if merged and current.start <= merged[-1].end:
            last = merged[-1]
            if current.end > last.end:
                merged[-1] = TimeInterval(start=last.start, end=current.end)
            continue
        merged.append(current)
    return merged


def subtract(
    intervals: Iterable[TimeInterval],
    removals: Iterable[TimeInterval],
) -> list[TimeInterval]:
    """
    Remove every interval in `removals` from `intervals`.
    A removal may split one interval in two, trim an end, or drop it entirely.
    """
    result = merge(intervals)
    for cut in merge(removals):
        remaining: list[TimeInterval] = []
        for interval in result:
            if not overlaps(interval, cut):
                remaining.append(interval)
                continue
            if interval.start < cut.start:
                remaining.append(TimeInterval(start=interval.start, end=cut.start))
            if cut.end < interval.end:
                remaining.append(TimeInterval(start=cut.end, end=interval.end))
        result = remaining
    return result
