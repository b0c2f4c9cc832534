from .reservation_schemas import (
    AssignmentSchema,
    AvailabilityResponse,
    BookingCreate,
    BookingRequestSchema,
    BookingResponse,
    ConflictScanResponse,
    ConflictSchema,
    CustomerInfo,
    EvaluationResponse,
    ProposalSchema,
    RescheduleResponse,
    RescheduleSuggestionSchema,
    ResolutionApplyRequest,
    ResolutionApplyResponse,
    ResolutionPlanSchema,
    StatusUpdate,
    TimeSlotResponse,
    WindowSchema,
)

__all__ = [
    "AssignmentSchema",
    "AvailabilityResponse",
    "BookingCreate",
    "BookingRequestSchema",
    "BookingResponse",
    "ConflictScanResponse",
    "ConflictSchema",
    "CustomerInfo",
    "EvaluationResponse",
    "ProposalSchema",
    "RescheduleResponse",
    "RescheduleSuggestionSchema",
    "ResolutionApplyRequest",
    "ResolutionApplyResponse",
    "ResolutionPlanSchema",
    "StatusUpdate",
    "TimeSlotResponse",
    "WindowSchema",
]
