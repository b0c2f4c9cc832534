# backend/modules/reservations/enums/reservation_enums.py

from enum import Enum


class ReservationStatus(str, Enum):
    """Reservation lifecycle status"""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"

    @property
    def occupies_table(self) -> bool:
        """Only pending and confirmed reservations block a table."""
        return self in (ReservationStatus.PENDING, ReservationStatus.CONFIRMED)


ACTIVE_STATUSES = frozenset({ReservationStatus.PENDING, ReservationStatus.CONFIRMED})


class ConflictType(str, Enum):
    DOUBLE_BOOKING = "double_booking"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    RUSH_OVERLAP = "rush_overlap"


class ConflictSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    ConflictSeverity.LOW: 0,
    ConflictSeverity.MEDIUM: 1,
    ConflictSeverity.HIGH: 2,
}


class CustomerImpact(str, Enum):
    """Estimated effect of a resolution on the guest"""

    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _IMPACT_RANK[self]


_IMPACT_RANK = {
    CustomerImpact.NONE: 0,
    CustomerImpact.LOW: 1,
    CustomerImpact.MEDIUM: 2,
    CustomerImpact.HIGH: 3,
}


class ResolutionStrategy(str, Enum):
    REASSIGN_TABLE = "reassign_table"
    SHIFT_TIME = "shift_time"
    SPLIT_PARTY = "split_party"
    ACCEPT_AS_IS = "accept_as_is"
    DENY = "deny"


class RuleViolationCode(str, Enum):
    RESTAURANT_CLOSED = "RESTAURANT_CLOSED"
    TOO_FAR_IN_ADVANCE = "TOO_FAR_IN_ADVANCE"
    INSUFFICIENT_NOTICE = "INSUFFICIENT_NOTICE"
    PAST_CUT_OFF = "PAST_CUT_OFF"
    SAME_DAY_DISABLED = "SAME_DAY_DISABLED"


class ApplyStatus(str, Enum):
    """Outcome of applying a resolution proposal"""

    APPLIED = "applied"
    ALREADY_RESOLVED = "already_resolved"


class EvaluationStatus(str, Enum):
    """Overall verdict of a booking evaluation"""

    ACCEPTED = "accepted"
    # Only low-risk conflicts, all resolved automatically
    ACCEPTED_WITH_WARNINGS = "accepted_with_warnings"
    # Medium/low conflicts that need a staff decision
    NEEDS_REVIEW = "needs_review"
    # An unresolved high-severity conflict
    BLOCKED = "blocked"
