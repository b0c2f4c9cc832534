from .reservation_enums import (
    ACTIVE_STATUSES,
    ApplyStatus,
    ConflictSeverity,
    ConflictType,
    CustomerImpact,
    EvaluationStatus,
    ReservationStatus,
    ResolutionStrategy,
    RuleViolationCode,
)

__all__ = [
    "ACTIVE_STATUSES",
    "ApplyStatus",
    "ConflictSeverity",
    "ConflictType",
    "CustomerImpact",
    "EvaluationStatus",
    "ReservationStatus",
    "ResolutionStrategy",
    "RuleViolationCode",
]
