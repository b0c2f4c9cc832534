from .availability_exceptions import (
    AvailabilityError,
    BookingConflictError,
    InsufficientNotice,
    InvalidCombinedTable,
    InvalidGuestCount,
    InvalidStatusTransition,
    InvalidTimeRange,
    NoSuitableTable,
    PastCutOff,
    ProposalNotFound,
    ReservationNotActive,
    ReservationNotFound,
    RestaurantClosed,
    RuleViolation,
    SameDayDisabled,
    TableUnavailable,
    TooFarInAdvance,
)

__all__ = [
    "AvailabilityError",
    "BookingConflictError",
    "InsufficientNotice",
    "InvalidCombinedTable",
    "InvalidGuestCount",
    "InvalidStatusTransition",
    "InvalidTimeRange",
    "NoSuitableTable",
    "PastCutOff",
    "ProposalNotFound",
    "ReservationNotActive",
    "ReservationNotFound",
    "RestaurantClosed",
    "RuleViolation",
    "SameDayDisabled",
    "TableUnavailable",
    "TooFarInAdvance",
]
