# backend/modules/reservations/utils/time_window.py

"""
Half-open time intervals anchored to a calendar date.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional

from ..exceptions import InvalidTimeRange


@dataclass(frozen=True)
class TimeWindow:
    """
    The interval ``[start, end)``.

    A reservation window always starts and ends on the same date; a
    buffered window built from one may spill over midnight, which is fine
    because it is only ever used for overlap comparisons.
    """

    start: datetime
    end: datetime

    def __post_init__(self):
        if self.end <= self.start:
            raise InvalidTimeRange(
                f"Window end {self.end.isoformat()} must be after start "
                f"{self.start.isoformat()}",
                {"start": self.start.isoformat(), "end": self.end.isoformat()},
            )

    @classmethod
    def on(cls, day: date, start: time, end: time) -> "TimeWindow":
        """Build a same-day window; ``end <= start`` is rejected."""
        if end <= start:
            raise InvalidTimeRange(
                f"End time {end.strftime('%H:%M')} must be after start time "
                f"{start.strftime('%H:%M')} on {day.isoformat()}",
                {"date": day.isoformat()},
            )
        return cls(datetime.combine(day, start), datetime.combine(day, end))

    @classmethod
    def from_duration(cls, day: date, start: time, duration_minutes: int) -> "TimeWindow":
        return cls.on(day, start, compute_end_time(start, duration_minutes))

    @property
    def date(self) -> date:
        return self.start.date()

    @property
    def start_time(self) -> time:
        return self.start.time()

    @property
    def end_time(self) -> time:
        return self.end.time()

    @property
    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)

    def overlaps(self, other: "TimeWindow") -> bool:
        # Touching endpoints do not overlap
        return self.start < other.end and other.start < self.end

    def with_buffer(self, minutes: int) -> "TimeWindow":
        """Expand both ends by ``minutes``."""
        if minutes < 0:
            raise ValueError("Buffer minutes cannot be negative")
        delta = timedelta(minutes=minutes)
        return TimeWindow(self.start - delta, self.end + delta)

    def shifted(self, minutes: int) -> "TimeWindow":
        delta = timedelta(minutes=minutes)
        return TimeWindow(self.start + delta, self.end + delta)

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end

    def intersection(self, other: "TimeWindow") -> Optional["TimeWindow"]:
        if not self.overlaps(other):
            return None
        return TimeWindow(max(self.start, other.start), min(self.end, other.end))

    def is_same_day(self) -> bool:
        return self.start.date() == self.end.date()

    def __str__(self) -> str:
        return (
            f"{self.start.date().isoformat()} "
            f"{self.start.strftime('%H:%M')}-{self.end.strftime('%H:%M')}"
        )


def compute_end_time(start: time, duration_minutes: int) -> time:
    """
    Add ``duration_minutes`` to ``start`` without leaving the day.

    Ending exactly at midnight counts as crossing it, since the result
    could not be told apart from a 00:00 start.
    """
    if duration_minutes <= 0:
        raise InvalidTimeRange(
            f"Duration must be positive, got {duration_minutes} minutes",
            {"duration_minutes": duration_minutes},
        )
    anchor = datetime.combine(date.min, start)
    end = anchor + timedelta(minutes=duration_minutes)
    if end.date() != anchor.date():
        raise InvalidTimeRange(
            f"A {duration_minutes} minute booking starting at "
            f"{start.strftime('%H:%M')} would cross midnight",
            {"start": start.isoformat(), "duration_minutes": duration_minutes},
        )
    return end.time()
