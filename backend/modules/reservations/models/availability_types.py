# backend/modules/reservations/models/availability_types.py

"""
In-memory value types exchanged by the availability engine.

They are separate from the SQLAlchemy models: the engine works on
immutable snapshots handed to it and never touches a session.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, Dict, FrozenSet, Optional, Tuple

from ..enums import (
    ApplyStatus,
    ConflictSeverity,
    ConflictType,
    CustomerImpact,
    EvaluationStatus,
    ReservationStatus,
    ResolutionStrategy,
)
from ..exceptions import InvalidGuestCount
from ..utils.time_window import TimeWindow


@dataclass(frozen=True)
class Table:
    id: int
    number: str
    capacity: int
    room_id: Optional[int] = None
    is_active: bool = True


@dataclass(frozen=True)
class CombinedTable:
    """Two or more physical tables booked as one unit"""

    id: int
    name: str
    member_table_ids: FrozenSet[int]
    total_capacity: int
    is_active: bool = True


@dataclass(frozen=True)
class TableAssignment:
    """Either a single table or a combined table, never both."""

    table_id: Optional[int] = None
    combined_table_id: Optional[int] = None

    def __post_init__(self):
        if (self.table_id is None) == (self.combined_table_id is None):
            raise ValueError(
                "Exactly one of table_id and combined_table_id must be set"
            )

    @classmethod
    def single(cls, table_id: int) -> "TableAssignment":
        return cls(table_id=table_id)

    @classmethod
    def combined(cls, combined_table_id: int) -> "TableAssignment":
        return cls(combined_table_id=combined_table_id)

    @property
    def is_combined(self) -> bool:
        return self.combined_table_id is not None

    def __str__(self) -> str:
        if self.is_combined:
            return f"combined:{self.combined_table_id}"
        return f"table:{self.table_id}"


@dataclass(frozen=True)
class Reservation:
    """A booking as seen by the engine; ``id`` is None for unsaved requests."""

    id: Optional[int]
    date: date
    start_time: time
    end_time: time
    guest_count: int
    status: ReservationStatus = ReservationStatus.CONFIRMED
    table_id: Optional[int] = None
    combined_table_id: Optional[int] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    capacity_override: bool = False
    flagged_for_review: bool = False
    applied_resolutions: FrozenSet[str] = frozenset()

    def __post_init__(self):
        if self.guest_count < 1:
            raise InvalidGuestCount(self.guest_count)
        if self.table_id is not None and self.combined_table_id is not None:
            raise ValueError("A reservation cannot hold a table and a combined table")
        # Validates start < end
        TimeWindow.on(self.date, self.start_time, self.end_time)

    @property
    def window(self) -> TimeWindow:
        return TimeWindow.on(self.date, self.start_time, self.end_time)

    @property
    def assignment(self) -> Optional[TableAssignment]:
        if self.table_id is None and self.combined_table_id is None:
            return None
        return TableAssignment(self.table_id, self.combined_table_id)

    @property
    def is_active(self) -> bool:
        return self.status.occupies_table


@dataclass(frozen=True)
class OpeningHours:
    """Weekly opening hours; ``day_of_week`` uses 0 = Sunday."""

    day_of_week: int
    is_open: bool = True
    open_time: Optional[time] = None
    close_time: Optional[time] = None


@dataclass(frozen=True)
class SpecialPeriod:
    """A date range overriding the weekly opening hours"""

    start_date: date
    end_date: date
    is_closed: bool = False
    open_time: Optional[time] = None
    close_time: Optional[time] = None
    name: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


@dataclass(frozen=True)
class BookingPolicy:
    min_guests: int = 1
    max_guests: int = 20
    default_duration_minutes: int = 120
    turnaround_minutes: int = 0
    min_advance_notice_hours: int = 0
    max_advance_booking_days: int = 90
    # Indexed by day of week, 0 = Sunday; 0 or None means no cut-off
    cut_off_hours_by_day_of_week: Tuple[Optional[int], ...] = (0,) * 7
    allow_same_day_bookings: bool = True

    def __post_init__(self):
        if len(self.cut_off_hours_by_day_of_week) != 7:
            raise ValueError("cut_off_hours_by_day_of_week needs one entry per day")
        if self.min_guests < 1 or self.max_guests < self.min_guests:
            raise ValueError(
                f"Invalid guest limits {self.min_guests}-{self.max_guests}"
            )

    def cut_off_hours(self, day_of_week: int) -> int:
        return self.cut_off_hours_by_day_of_week[day_of_week] or 0


@dataclass(frozen=True)
class Conflict:
    type: ConflictType
    severity: ConflictSeverity
    affected: Optional[TableAssignment] = None
    conflicting_reservation_ids: Tuple[int, ...] = ()
    # Reservation the conflict was found for; None for an unsaved request
    subject_reservation_id: Optional[int] = None
    details: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)


@dataclass(frozen=True)
class ResolutionProposal:
    proposal_id: str
    strategy: ResolutionStrategy
    confidence: float
    impact: CustomerImpact
    description: str
    target_reservation_id: Optional[int] = None
    new_assignment: Optional[TableAssignment] = None
    new_window: Optional[TimeWindow] = None
    details: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def changes_booking(self) -> bool:
        return self.new_assignment is not None or self.new_window is not None


@dataclass(frozen=True)
class ResolutionPlan:
    """Ranked proposals for one conflict"""

    conflict: Conflict
    proposals: Tuple[ResolutionProposal, ...]
    auto_applied: Optional[ResolutionProposal] = None

    @property
    def recommended(self) -> Optional[ResolutionProposal]:
        return self.proposals[0] if self.proposals else None

    @property
    def is_resolved(self) -> bool:
        return self.auto_applied is not None


@dataclass(frozen=True)
class ApplyResult:
    status: ApplyStatus
    reservation: Reservation
    # None when only the proposal id was known, e.g. a repeated request
    proposal: Optional[ResolutionProposal] = None


@dataclass(frozen=True)
class BookingRequest:
    """
    A proposed booking. ``end_time`` wins over ``duration_minutes``; when
    neither is given the policy's default duration applies. Leaving both
    table fields empty asks the engine to pick a table.
    """

    date: date
    start_time: time
    guest_count: int
    end_time: Optional[time] = None
    duration_minutes: Optional[int] = None
    table_id: Optional[int] = None
    combined_table_id: Optional[int] = None
    # Set when rescheduling, so the booking does not collide with itself
    exclude_reservation_id: Optional[int] = None
    capacity_override: bool = False

    @property
    def requested_assignment(self) -> Optional[TableAssignment]:
        if self.table_id is None and self.combined_table_id is None:
            return None
        return TableAssignment(self.table_id, self.combined_table_id)


@dataclass(frozen=True)
class CustomerDetails:
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class BookingEvaluation:
    status: EvaluationStatus
    window: TimeWindow
    guest_count: int
    assignment: Optional[TableAssignment]
    conflicts: Tuple[Conflict, ...] = ()
    plans: Tuple[ResolutionPlan, ...] = ()
    candidates_checked: int = 0

    @property
    def accepted(self) -> bool:
        return self.status in (
            EvaluationStatus.ACCEPTED,
            EvaluationStatus.ACCEPTED_WITH_WARNINGS,
        )

    @property
    def highest_severity(self) -> Optional[ConflictSeverity]:
        if not self.conflicts:
            return None
        return max((c.severity for c in self.conflicts), key=lambda s: s.rank)


@dataclass(frozen=True)
class TimeSlot:
    start_time: time
    end_time: time
    available: bool
    tables_available: int = 0
    reason: Optional[str] = None


@dataclass(frozen=True)
class ResolutionContext:
    """Everything the resolver needs to search for alternatives"""

    window: TimeWindow
    guest_count: int
    assignment: Optional[TableAssignment]
    reservations: Tuple[Reservation, ...]
    now: Optional[datetime] = None
    exclude_reservation_id: Optional[int] = None
    subject_reservation_id: Optional[int] = None


@dataclass(frozen=True)
class RestaurantSnapshot:
    """All data the engine needs about one restaurant on one date"""

    restaurant_id: int
    policy: BookingPolicy
    opening_hours: Tuple[OpeningHours, ...] = ()
    special_periods: Tuple[SpecialPeriod, ...] = ()
    tables: Tuple[Table, ...] = ()
    combined_tables: Tuple[CombinedTable, ...] = ()
    reservations: Tuple[Reservation, ...] = ()


@dataclass(frozen=True)
class RescheduleSuggestion:
    """A free table at another time, possibly on a later date"""

    window: TimeWindow
    assignment: TableAssignment
    table_label: str
    capacity: int
    score: float
    days_difference: int
    time_difference_minutes: int

    @property
    def date(self) -> date:
        return self.window.date

    @property
    def start_time(self) -> time:
        return self.window.start_time

    @property
    def priority(self) -> int:
        """Score bucketed to 1 (weakest) .. 5 (strongest)"""
        return max(1, min(5, round(self.score)))
