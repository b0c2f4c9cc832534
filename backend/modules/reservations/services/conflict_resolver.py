# backend/modules/reservations/services/conflict_resolver.py

"""
Turns detected conflicts into ranked resolution proposals, and applies
them idempotently.
"""

from dataclasses import replace
from typing import Dict, Iterable, List
import logging

from ..config import AvailabilityConfig
from ..enums import (
    ApplyStatus,
    ConflictSeverity,
    ConflictType,
    CustomerImpact,
    ResolutionStrategy,
)
from ..models.availability_types import (
    ApplyResult,
    Conflict,
    Reservation,
    ResolutionContext,
    ResolutionPlan,
    ResolutionProposal,
)
from ..utils.time_window import TimeWindow
from .availability_rules import AvailabilityRules
from .conflict_detector import ConflictDetector
from .table_allocator import TableAllocator, TableCandidate

logger = logging.getLogger(__name__)

_STRATEGY_ORDER: Dict[ResolutionStrategy, int] = {
    ResolutionStrategy.ACCEPT_AS_IS: 0,
    ResolutionStrategy.REASSIGN_TABLE: 1,
    ResolutionStrategy.SPLIT_PARTY: 2,
    ResolutionStrategy.SHIFT_TIME: 3,
    ResolutionStrategy.DENY: 4,
}


def _subject_key(context: ResolutionContext) -> str:
    if context.subject_reservation_id is None:
        return "new"
    return str(context.subject_reservation_id)


def _stamp(window: TimeWindow) -> str:
    return window.start.strftime("%Y%m%dT%H%M")


def shift_impact(minutes: int) -> CustomerImpact:
    distance = abs(minutes)
    if distance <= 15:
        return CustomerImpact.LOW
    if distance <= 30:
        return CustomerImpact.MEDIUM
    return CustomerImpact.HIGH


class ConflictResolver:
    def __init__(
        self,
        allocator: TableAllocator,
        detector: ConflictDetector,
        rules: AvailabilityRules,
        config: AvailabilityConfig,
    ):
        self.allocator = allocator
        self.detector = detector
        self.rules = rules
        self.config = config

    # Proposal generation

    def _is_free(
        self, assignment, candidate_window: TimeWindow, context: ResolutionContext
    ) -> bool:
        return (
            self.detector.find_double_booking(
                assignment,
                candidate_window,
                context.reservations,
                context.exclude_reservation_id,
                context.subject_reservation_id,
            )
            is None
        )

    def _reassign_proposals(self, context: ResolutionContext) -> List[ResolutionProposal]:
        index = self.allocator.index
        current_capacity = (
            index.capacity_of(context.assignment) if context.assignment else None
        )
        current_room = index.room_of(context.assignment) if context.assignment else None
        baseline = max(current_capacity or 0, context.guest_count)

        proposals = []
        for candidate in self.allocator.candidates(context.guest_count):
            if candidate.assignment == context.assignment:
                continue
            if not self._is_free(candidate.assignment, context.window, context):
                continue

            fit = context.guest_count / candidate.capacity
            comparable = candidate.capacity <= baseline + self.config.COMPARABLE_CAPACITY_SLACK
            if current_room is not None and candidate.room_id is not None:
                comparable = comparable and candidate.room_id == current_room

            proposals.append(
                ResolutionProposal(
                    proposal_id=(
                        f"reassign:{_subject_key(context)}:{candidate.assignment}:"
                        f"{_stamp(context.window)}"
                    ),
                    strategy=ResolutionStrategy.REASSIGN_TABLE,
                    confidence=round(0.5 + 0.5 * fit, 3),
                    impact=CustomerImpact.LOW if comparable else CustomerImpact.MEDIUM,
                    description=(
                        f"Move to {candidate.label} (seats {candidate.capacity})"
                    ),
                    target_reservation_id=context.subject_reservation_id,
                    new_assignment=candidate.assignment,
                    details={"capacity": candidate.capacity, "table": candidate.label},
                )
            )
            if len(proposals) >= self.config.MAX_REASSIGN_PROPOSALS:
                break
        return proposals

    def _shift_offsets(self) -> List[int]:
        offsets = []
        for offset in self.config.SHIFT_OFFSETS_MINUTES:
            offsets.extend([offset, -offset])
        return offsets

    def _shift_proposals(
        self, conflict: Conflict, context: ResolutionContext
    ) -> List[ResolutionProposal]:
        if context.assignment is None or not self.config.SHIFT_OFFSETS_MINUTES:
            return []

        max_offset = max(self.config.SHIFT_OFFSETS_MINUTES)
        proposals = []
        for minutes in self._shift_offsets():
            shifted = context.window.shifted(minutes)
            if shifted.date != context.window.date or not shifted.is_same_day():
                continue
            if not self.rules.fits_opening_hours(shifted):
                continue
            if context.now is not None and self.rules.booking_window_violation(
                shifted.date, shifted.start_time, context.now
            ):
                continue
            if not self._is_free(context.assignment, shifted, context):
                continue
            if conflict.type == ConflictType.RUSH_OVERLAP and self.detector.check_rush(
                shifted,
                context.guest_count,
                context.reservations,
                context.exclude_reservation_id,
                context.subject_reservation_id,
            ):
                continue

            direction = "later" if minutes > 0 else "earlier"
            proposals.append(
                ResolutionProposal(
                    proposal_id=(
                        f"shift:{_subject_key(context)}:{context.assignment}:{_stamp(shifted)}"
                    ),
                    strategy=ResolutionStrategy.SHIFT_TIME,
                    confidence=round(1 - abs(minutes) / (2 * max_offset), 3),
                    impact=shift_impact(minutes),
                    description=(
                        f"Move {abs(minutes)} minutes {direction} to "
                        f"{shifted.start.strftime('%H:%M')}-{shifted.end.strftime('%H:%M')}"
                    ),
                    target_reservation_id=context.subject_reservation_id,
                    new_window=shifted,
                    details={"shift_minutes": minutes},
                )
            )
        return proposals

    def _split_party_proposals(self, context: ResolutionContext) -> List[ResolutionProposal]:
        proposals = []
        for candidate in self.allocator.candidates(context.guest_count):
            if not candidate.assignment.is_combined:
                continue
            if candidate.assignment == context.assignment:
                continue
            if not self._is_free(candidate.assignment, context.window, context):
                continue
            proposals.append(self._split_proposal(candidate, context))
        return proposals

    def _split_proposal(
        self, candidate: TableCandidate, context: ResolutionContext
    ) -> ResolutionProposal:
        exact = candidate.capacity == context.guest_count
        return ResolutionProposal(
            proposal_id=(
                f"split:{_subject_key(context)}:{candidate.assignment}:{_stamp(context.window)}"
            ),
            strategy=ResolutionStrategy.SPLIT_PARTY,
            confidence=0.9 if exact else 0.7,
            impact=CustomerImpact.LOW if exact else CustomerImpact.MEDIUM,
            description=(
                f"Seat the party across {candidate.label} "
                f"({len(candidate.physical_table_ids)} tables, {candidate.capacity} seats)"
            ),
            target_reservation_id=context.subject_reservation_id,
            new_assignment=candidate.assignment,
            details={
                "capacity": candidate.capacity,
                "tables": sorted(candidate.physical_table_ids),
                "exact_fit": exact,
            },
        )

    def _accept_proposal(
        self, conflict: Conflict, context: ResolutionContext
    ) -> ResolutionProposal:
        utilization = conflict.details.get("utilization")
        threshold = conflict.details.get("threshold", self.config.RUSH_CAPACITY_RATIO)
        confidence = 1.0
        if utilization is not None:
            confidence -= max(utilization - threshold, 0.0)
        cap = self.config.RUSH_MAX_CONCURRENT_BOOKINGS
        if cap is not None:
            excess = conflict.details.get("concurrent_bookings", 0) - cap
            confidence -= 0.1 * max(excess, 0)

        return ResolutionProposal(
            proposal_id=f"accept:{_subject_key(context)}:{_stamp(context.window)}",
            strategy=ResolutionStrategy.ACCEPT_AS_IS,
            confidence=round(max(confidence, 0.0), 3),
            impact=CustomerImpact.NONE,
            description="Proceed as booked; the busy period is logged for staff",
            target_reservation_id=context.subject_reservation_id,
            details={"utilization": utilization},
        )

    def _deny_proposal(self, conflict: Conflict, context: ResolutionContext) -> ResolutionProposal:
        return ResolutionProposal(
            proposal_id=f"deny:{_subject_key(context)}:{conflict.type.value}",
            strategy=ResolutionStrategy.DENY,
            confidence=1.0,
            impact=CustomerImpact.HIGH,
            description="Not resolved automatically; flag for manual review",
            target_reservation_id=context.subject_reservation_id,
        )

    def rank(
        self, automated: Iterable[ResolutionProposal], fallback: ResolutionProposal
    ) -> List[ResolutionProposal]:
        """
        Order automated proposals by confidence (desc), then customer impact
        (asc). The deny/manual-review fallback is always offered: last when
        an automated proposal clears the minimum confidence, first otherwise.
        """
        ranked = sorted(
            automated,
            key=lambda p: (
                -p.confidence,
                p.impact.rank,
                _STRATEGY_ORDER[p.strategy],
                p.proposal_id,
            ),
        )
        if ranked and ranked[0].confidence >= self.config.MIN_PROPOSAL_CONFIDENCE:
            return ranked + [fallback]
        return [fallback] + ranked

    def propose(self, conflict: Conflict, context: ResolutionContext) -> List[ResolutionProposal]:
        automated: List[ResolutionProposal] = []

        if conflict.type == ConflictType.DOUBLE_BOOKING:
            automated += self._reassign_proposals(context)
            automated += self._shift_proposals(conflict, context)
        elif conflict.type == ConflictType.CAPACITY_EXCEEDED:
            if context.guest_count > self.allocator.index.largest_table_capacity:
                automated += self._split_party_proposals(context)
            else:
                automated += self._reassign_proposals(context)
        elif conflict.type == ConflictType.RUSH_OVERLAP:
            automated.append(self._accept_proposal(conflict, context))
            automated += self._shift_proposals(conflict, context)

        return self.rank(automated, self._deny_proposal(conflict, context))

    # Auto-resolution

    def can_auto_apply(self, conflict: Conflict, proposals: List[ResolutionProposal]) -> bool:
        """
        Only low-severity conflicts whose best proposal is confident enough
        and leaves the guest unaffected. High severity is never auto-applied.
        """
        if not self.config.ENABLE_AUTO_RESOLUTION or not proposals:
            return False
        top = proposals[0]
        return (
            conflict.severity == ConflictSeverity.LOW
            and top.strategy != ResolutionStrategy.DENY
            and top.confidence >= self.config.AUTO_RESOLVE_THRESHOLD
            and top.impact == CustomerImpact.NONE
        )

    def resolve(
        self, conflicts: Iterable[Conflict], context: ResolutionContext
    ) -> List[ResolutionPlan]:
        plans = []
        for conflict in conflicts:
            proposals = self.propose(conflict, context)
            auto_applied = None
            if self.can_auto_apply(conflict, proposals):
                auto_applied = proposals[0]
                logger.info(
                    f"Auto-applied {auto_applied.strategy.value} for {conflict.type.value} "
                    f"on {context.window} (confidence {auto_applied.confidence})"
                )
            plans.append(
                ResolutionPlan(
                    conflict=conflict,
                    proposals=tuple(proposals),
                    auto_applied=auto_applied,
                )
            )
        return plans

    # Application

    def _in_target_state(self, proposal: ResolutionProposal, reservation: Reservation) -> bool:
        if proposal.strategy == ResolutionStrategy.DENY:
            return reservation.flagged_for_review
        if not proposal.changes_booking:
            return False
        if proposal.new_assignment is not None and reservation.assignment != proposal.new_assignment:
            return False
        if proposal.new_window is not None and reservation.window != proposal.new_window:
            return False
        return True

    def apply(self, proposal: ResolutionProposal, reservation: Reservation) -> ApplyResult:
        """
        Apply ``proposal`` to ``reservation`` and return the new value.
        A proposal that was already applied, or whose target state already
        holds, yields ALREADY_RESOLVED and the reservation unchanged.
        """
        if (
            proposal.target_reservation_id is not None
            and reservation.id is not None
            and proposal.target_reservation_id != reservation.id
        ):
            raise ValueError(
                f"Proposal {proposal.proposal_id} targets reservation "
                f"{proposal.target_reservation_id}, not {reservation.id}"
            )

        if proposal.proposal_id in reservation.applied_resolutions or self._in_target_state(
            proposal, reservation
        ):
            return ApplyResult(ApplyStatus.ALREADY_RESOLVED, reservation, proposal)

        changes = {
            "applied_resolutions": reservation.applied_resolutions | {proposal.proposal_id}
        }
        if proposal.new_assignment is not None:
            changes["table_id"] = proposal.new_assignment.table_id
            changes["combined_table_id"] = proposal.new_assignment.combined_table_id
        if proposal.new_window is not None:
            changes["date"] = proposal.new_window.date
            changes["start_time"] = proposal.new_window.start_time
            changes["end_time"] = proposal.new_window.end_time
        if proposal.strategy == ResolutionStrategy.DENY:
            changes["flagged_for_review"] = True

        return ApplyResult(ApplyStatus.APPLIED, replace(reservation, **changes), proposal)
