# backend/modules/reservations/schemas/reservation_schemas.py

"""
Pydantic schemas for the availability and booking API.
"""

from pydantic import BaseModel, Field, field_validator, model_validator
from datetime import date, time, datetime
from typing import Any, Dict, List, Optional

from ..enums import (
    ApplyStatus,
    ConflictSeverity,
    ConflictType,
    CustomerImpact,
    EvaluationStatus,
    ReservationStatus,
    ResolutionStrategy,
)
from ..models.availability_types import (
    BookingEvaluation,
    BookingRequest,
    Conflict,
    CustomerDetails,
    RescheduleSuggestion,
    ResolutionPlan,
    ResolutionProposal,
    TableAssignment,
)
from ..utils.time_window import TimeWindow


class TimeSlotResponse(BaseModel):
    """One candidate start time"""

    start_time: time
    end_time: time
    available: bool
    tables_available: int = 0
    reason: Optional[str] = None

    class Config:
        from_attributes = True


class AvailabilityResponse(BaseModel):
    date: date
    guest_count: int
    slots: List[TimeSlotResponse]


class CustomerInfo(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: Optional[str] = Field(None, max_length=200)
    phone: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = Field(None, max_length=500)

    def to_domain(self) -> CustomerDetails:
        return CustomerDetails(
            name=self.name, email=self.email, phone=self.phone, notes=self.notes
        )


class BookingRequestSchema(BaseModel):
    """A proposed booking; leave both table fields empty to auto-assign"""

    date: date
    start_time: time
    guest_count: int = Field(..., ge=1)
    end_time: Optional[time] = None
    duration_minutes: Optional[int] = Field(None, gt=0, le=24 * 60)
    table_id: Optional[int] = None
    combined_table_id: Optional[int] = None
    exclude_reservation_id: Optional[int] = None
    capacity_override: bool = False

    @model_validator(mode="after")
    def validate_assignment(self):
        if self.table_id is not None and self.combined_table_id is not None:
            raise ValueError("Request either a table or a combined table, not both")
        return self

    def to_domain(self) -> BookingRequest:
        return BookingRequest(
            date=self.date,
            start_time=self.start_time,
            guest_count=self.guest_count,
            end_time=self.end_time,
            duration_minutes=self.duration_minutes,
            table_id=self.table_id,
            combined_table_id=self.combined_table_id,
            exclude_reservation_id=self.exclude_reservation_id,
            capacity_override=self.capacity_override,
        )


class BookingCreate(BookingRequestSchema):
    """Schema for submitting a booking"""

    customer: CustomerInfo
    # Staff may accept bookings that need review
    allow_warnings: bool = False


class AssignmentSchema(BaseModel):
    table_id: Optional[int] = None
    combined_table_id: Optional[int] = None

    @classmethod
    def from_domain(cls, assignment: Optional[TableAssignment]) -> Optional["AssignmentSchema"]:
        if assignment is None:
            return None
        return cls(table_id=assignment.table_id, combined_table_id=assignment.combined_table_id)


class WindowSchema(BaseModel):
    date: date
    start_time: time
    end_time: time

    @classmethod
    def from_domain(cls, window: Optional[TimeWindow]) -> Optional["WindowSchema"]:
        if window is None:
            return None
        return cls(date=window.date, start_time=window.start_time, end_time=window.end_time)


class ConflictSchema(BaseModel):
    type: ConflictType
    severity: ConflictSeverity
    affected: Optional[AssignmentSchema] = None
    conflicting_reservation_ids: List[int] = []
    subject_reservation_id: Optional[int] = None
    details: Dict[str, Any] = {}

    @classmethod
    def from_domain(cls, conflict: Conflict) -> "ConflictSchema":
        return cls(
            type=conflict.type,
            severity=conflict.severity,
            affected=AssignmentSchema.from_domain(conflict.affected),
            conflicting_reservation_ids=list(conflict.conflicting_reservation_ids),
            subject_reservation_id=conflict.subject_reservation_id,
            details=conflict.details,
        )


class ProposalSchema(BaseModel):
    proposal_id: str
    strategy: ResolutionStrategy
    confidence: float
    impact: CustomerImpact
    description: str
    target_reservation_id: Optional[int] = None
    new_assignment: Optional[AssignmentSchema] = None
    new_window: Optional[WindowSchema] = None
    details: Dict[str, Any] = {}

    @classmethod
    def from_domain(cls, proposal: ResolutionProposal) -> "ProposalSchema":
        return cls(
            proposal_id=proposal.proposal_id,
            strategy=proposal.strategy,
            confidence=proposal.confidence,
            impact=proposal.impact,
            description=proposal.description,
            target_reservation_id=proposal.target_reservation_id,
            new_assignment=AssignmentSchema.from_domain(proposal.new_assignment),
            new_window=WindowSchema.from_domain(proposal.new_window),
            details=proposal.details,
        )


class ResolutionPlanSchema(BaseModel):
    conflict: ConflictSchema
    proposals: List[ProposalSchema]
    auto_applied: Optional[ProposalSchema] = None

    @classmethod
    def from_domain(cls, plan: ResolutionPlan) -> "ResolutionPlanSchema":
        return cls(
            conflict=ConflictSchema.from_domain(plan.conflict),
            proposals=[ProposalSchema.from_domain(p) for p in plan.proposals],
            auto_applied=(
                ProposalSchema.from_domain(plan.auto_applied) if plan.auto_applied else None
            ),
        )


class EvaluationResponse(BaseModel):
    """Result of evaluating a booking request"""

    status: EvaluationStatus
    accepted: bool
    window: WindowSchema
    guest_count: int
    assignment: Optional[AssignmentSchema] = None
    conflicts: List[ConflictSchema] = []
    plans: List[ResolutionPlanSchema] = []
    candidates_checked: int = 0

    @classmethod
    def from_domain(cls, evaluation: BookingEvaluation) -> "EvaluationResponse":
        return cls(
            status=evaluation.status,
            accepted=evaluation.accepted,
            window=WindowSchema.from_domain(evaluation.window),
            guest_count=evaluation.guest_count,
            assignment=AssignmentSchema.from_domain(evaluation.assignment),
            conflicts=[ConflictSchema.from_domain(c) for c in evaluation.conflicts],
            plans=[ResolutionPlanSchema.from_domain(p) for p in evaluation.plans],
            candidates_checked=evaluation.candidates_checked,
        )


class BookingResponse(BaseModel):
    """Schema for booking response"""

    id: int
    restaurant_id: int
    table_id: Optional[int] = None
    combined_table_id: Optional[int] = None
    booking_date: date
    start_time: time
    end_time: time
    guest_count: int
    status: ReservationStatus

    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    notes: Optional[str] = None

    capacity_override: bool = False
    flagged_for_review: bool = False
    applied_resolutions: List[str] = []

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @field_validator("applied_resolutions", mode="before")
    @classmethod
    def default_resolutions(cls, v):
        return v or []


class ResolutionApplyRequest(BaseModel):
    proposal_id: str = Field(..., min_length=1)


class ResolutionApplyResponse(BaseModel):
    status: ApplyStatus
    proposal_id: str
    booking: BookingResponse


class StatusUpdate(BaseModel):
    status: ReservationStatus


class ConflictScanResponse(BaseModel):
    date: date
    plans: List[ResolutionPlanSchema]


class RescheduleSuggestionSchema(BaseModel):
    date: date
    start_time: time
    end_time: time
    assignment: AssignmentSchema
    table_label: str
    capacity: int
    score: float
    priority: int = Field(..., ge=1, le=5)
    days_difference: int
    time_difference_minutes: int

    @classmethod
    def from_domain(cls, suggestion: RescheduleSuggestion) -> "RescheduleSuggestionSchema":
        return cls(
            date=suggestion.date,
            start_time=suggestion.window.start_time,
            end_time=suggestion.window.end_time,
            assignment=AssignmentSchema.from_domain(suggestion.assignment),
            table_label=suggestion.table_label,
            capacity=suggestion.capacity,
            score=suggestion.score,
            priority=suggestion.priority,
            days_difference=suggestion.days_difference,
            time_difference_minutes=suggestion.time_difference_minutes,
        )


class RescheduleResponse(BaseModel):
    """Alternatives for a booking, best first"""

    original_date: date
    original_start_time: time
    guest_count: int
    suggestions: List[RescheduleSuggestionSchema]
