from .reservation_models import (
    Booking,
    CombinedTableConfiguration,
    OperatingHours,
    ReservationSettings,
    SpecialDate,
    TableConfiguration,
)
from .availability_types import (
    ApplyResult,
    BookingEvaluation,
    BookingPolicy,
    BookingRequest,
    CombinedTable,
    Conflict,
    CustomerDetails,
    OpeningHours,
    Reservation,
    ResolutionContext,
    ResolutionPlan,
    RescheduleSuggestion,
    ResolutionProposal,
    RestaurantSnapshot,
    SpecialPeriod,
    Table,
    TableAssignment,
    TimeSlot,
)

__all__ = [
    "Booking",
    "CombinedTableConfiguration",
    "OperatingHours",
    "ReservationSettings",
    "SpecialDate",
    "TableConfiguration",
    "ApplyResult",
    "BookingEvaluation",
    "BookingPolicy",
    "BookingRequest",
    "CombinedTable",
    "Conflict",
    "CustomerDetails",
    "OpeningHours",
    "Reservation",
    "ResolutionContext",
    "ResolutionPlan",
    "RescheduleSuggestion",
    "ResolutionProposal",
    "RestaurantSnapshot",
    "SpecialPeriod",
    "Table",
    "TableAssignment",
    "TimeSlot",
]
