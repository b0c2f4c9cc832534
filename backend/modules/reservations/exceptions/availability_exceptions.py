# backend/modules/reservations/exceptions/availability_exceptions.py

from datetime import date, datetime, time
from typing import TYPE_CHECKING, Dict, Optional

from core.exceptions import DomainError

from ..enums import ReservationStatus, RuleViolationCode

if TYPE_CHECKING:
    from ..models.availability_types import BookingEvaluation


class AvailabilityError(DomainError):
    """Base exception for every failure raised by the availability engine"""


class InvalidTimeRange(AvailabilityError):
    """Raised when a window is empty, inverted or crosses midnight"""

    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, "INVALID_TIME_RANGE", details)


class InvalidGuestCount(AvailabilityError):
    """Raised when the party size is outside the restaurant's limits"""

    def __init__(
        self, guest_count: int, min_guests: int = 1, max_guests: Optional[int] = None
    ):
        self.guest_count = guest_count
        allowed = f"{min_guests}-{max_guests}" if max_guests else f"at least {min_guests}"
        super().__init__(
            f"Party size {guest_count} is outside the allowed range ({allowed})",
            "INVALID_GUEST_COUNT",
            {
                "guest_count": guest_count,
                "min_guests": min_guests,
                "max_guests": max_guests,
            },
        )


class InvalidCombinedTable(AvailabilityError):
    """Raised when a combined table does not match its member tables"""

    def __init__(self, combined_table_id: int, reason: str):
        self.combined_table_id = combined_table_id
        super().__init__(
            f"Combined table {combined_table_id} is inconsistent: {reason}",
            "INVALID_COMBINED_TABLE",
            {"combined_table_id": combined_table_id},
        )


class RuleViolation(AvailabilityError):
    """A booking policy forbids the requested date/time"""

    code: RuleViolationCode

    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, self.code.value, details)


class RestaurantClosed(RuleViolation):
    code = RuleViolationCode.RESTAURANT_CLOSED

    def __init__(self, booking_date: date, booking_time: Optional[time] = None):
        when = booking_date.isoformat()
        if booking_time is not None:
            when = f"{when} {booking_time.strftime('%H:%M')}"
        super().__init__(
            f"Restaurant is closed on {when}",
            {"date": booking_date.isoformat()},
        )


class TooFarInAdvance(RuleViolation):
    code = RuleViolationCode.TOO_FAR_IN_ADVANCE

    def __init__(self, booking_date: date, max_advance_days: int):
        super().__init__(
            f"Bookings can be made at most {max_advance_days} days in advance",
            {"date": booking_date.isoformat(), "max_advance_days": max_advance_days},
        )


class InsufficientNotice(RuleViolation):
    code = RuleViolationCode.INSUFFICIENT_NOTICE

    def __init__(self, requested: datetime, min_notice_hours: int):
        super().__init__(
            f"Bookings require at least {min_notice_hours} hours notice",
            {"requested": requested.isoformat(), "min_notice_hours": min_notice_hours},
        )


class PastCutOff(RuleViolation):
    code = RuleViolationCode.PAST_CUT_OFF

    def __init__(self, requested: datetime, cut_off_hours: int):
        super().__init__(
            f"Same-day bookings close {cut_off_hours} hours before the slot",
            {"requested": requested.isoformat(), "cut_off_hours": cut_off_hours},
        )


class SameDayDisabled(RuleViolation):
    code = RuleViolationCode.SAME_DAY_DISABLED

    def __init__(self, booking_date: date):
        super().__init__(
            "Same-day bookings are not accepted",
            {"date": booking_date.isoformat()},
        )


class NoSuitableTable(AvailabilityError):
    """No active table or combined table can seat the party"""

    status_code = 409

    def __init__(self, guest_count: int):
        self.guest_count = guest_count
        super().__init__(
            f"No table can accommodate a party of {guest_count}",
            "NO_SUITABLE_TABLE",
            {"guest_count": guest_count},
        )


class TableUnavailable(AvailabilityError):
    """The requested table or combined table is unknown, inactive or too small"""

    status_code = 409

    def __init__(self, assignment: str, reason: Optional[str] = None):
        details = {"assignment": assignment}
        message = f"{assignment} is not available for booking"
        if reason:
            details["reason"] = reason
            message = f"{message}: {reason}"
        super().__init__(message, "TABLE_UNAVAILABLE", details)


class ReservationNotFound(AvailabilityError):
    status_code = 404

    def __init__(self, reservation_id: int):
        super().__init__(
            f"Reservation {reservation_id} not found",
            "RESERVATION_NOT_FOUND",
            {"reservation_id": reservation_id},
        )


class ReservationNotActive(AvailabilityError):
    """The reservation is cancelled or finished and holds no table"""

    status_code = 409

    def __init__(self, reservation_id: int, status: ReservationStatus):
        super().__init__(
            f"Reservation {reservation_id} is {status.value}",
            "RESERVATION_NOT_ACTIVE",
            {"reservation_id": reservation_id, "status": status.value},
        )


class InvalidStatusTransition(AvailabilityError):
    status_code = 409

    def __init__(self, current: ReservationStatus, requested: ReservationStatus):
        super().__init__(
            f"Cannot move reservation from {current.value} to {requested.value}",
            "INVALID_STATUS_TRANSITION",
            {"current": current.value, "requested": requested.value},
        )


class BookingConflictError(AvailabilityError):
    """
    Raised by the booking-submission flow when the fresh evaluation made
    inside the critical section refuses the write.
    """

    status_code = 409

    def __init__(self, evaluation: "BookingEvaluation"):
        self.evaluation = evaluation
        super().__init__(
            f"Booking refused: {evaluation.status.value}",
            "BOOKING_CONFLICT",
            {
                "status": evaluation.status.value,
                "conflicts": [c.type.value for c in evaluation.conflicts],
            },
        )


class ProposalNotFound(AvailabilityError):
    """The proposal id is not among the current proposals for the reservation"""

    status_code = 404

    def __init__(self, reservation_id: int, proposal_id: str):
        super().__init__(
            f"Proposal {proposal_id} does not apply to reservation {reservation_id}",
            "PROPOSAL_NOT_FOUND",
            {"reservation_id": reservation_id, "proposal_id": proposal_id},
        )
