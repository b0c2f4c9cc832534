# backend/modules/reservations/services/availability_service.py

"""
Service answering "which slots can N guests book on date D" and "is this
booking acceptable", composed from the rules, allocator, detector and
resolver. It works on a snapshot and performs no I/O.
"""

from datetime import date, datetime, timedelta
from typing import Dict, List, Mapping, Optional
import logging

from ..config import AvailabilityConfig
from ..enums import ConflictSeverity, EvaluationStatus
from ..exceptions import InvalidTimeRange, NoSuitableTable, TableUnavailable
from ..models.availability_types import (
    BookingEvaluation,
    BookingRequest,
    Conflict,
    Reservation,
    ResolutionContext,
    ResolutionPlan,
    ResolutionProposal,
    RescheduleSuggestion,
    RestaurantSnapshot,
    TableAssignment,
    TimeSlot,
)
from ..utils.time_window import TimeWindow
from .availability_rules import AvailabilityRules, day_of_week
from .conflict_detector import ConflictDetector
from .conflict_resolver import ConflictResolver
from .table_allocator import TableAllocator, TableCandidate, TableIndex

logger = logging.getLogger(__name__)

# Sunday and Saturday
WEEKEND = (0, 6)


class AvailabilityService:
    """Service for computing availability over one restaurant snapshot"""

    def __init__(self, snapshot: RestaurantSnapshot, config: AvailabilityConfig):
        self.snapshot = snapshot
        self.config = config
        self.rules = AvailabilityRules(
            snapshot.policy, snapshot.opening_hours, snapshot.special_periods
        )
        self.index = TableIndex(snapshot.tables, snapshot.combined_tables)
        self.allocator = TableAllocator(self.index, config.EMPTY_SEATS_BUFFER)
        self.detector = ConflictDetector(
            self.index,
            turnaround_minutes=snapshot.policy.turnaround_minutes,
            rush_capacity_ratio=config.RUSH_CAPACITY_RATIO,
            rush_max_concurrent_bookings=config.RUSH_MAX_CONCURRENT_BOOKINGS,
        )
        self.resolver = ConflictResolver(self.allocator, self.detector, self.rules, config)

    def build_window(self, request: BookingRequest) -> TimeWindow:
        if request.end_time is not None:
            return TimeWindow.on(request.date, request.start_time, request.end_time)
        duration = request.duration_minutes or self.snapshot.policy.default_duration_minutes
        return TimeWindow.from_duration(request.date, request.start_time, duration)

    def get_available_slots(
        self,
        target_date: date,
        guest_count: int,
        now: datetime,
        duration_minutes: Optional[int] = None,
    ) -> List[TimeSlot]:
        """
        Candidate start times across the opening window, each marked
        available when at least one suitable table is free for the whole
        stay. Slots ruled out by the booking horizon carry the rule's code.
        """
        self.rules.validate_guest_count(guest_count)

        opening = self.rules.opening_window(target_date)
        if opening is None:
            return []

        candidates = self.allocator.candidates(guest_count)
        if not candidates:
            raise NoSuitableTable(guest_count)

        duration = duration_minutes or self.snapshot.policy.default_duration_minutes
        step = timedelta(minutes=self.config.SLOT_INTERVAL_MINUTES)
        stay = timedelta(minutes=duration)

        slots = []
        cursor = opening.start
        while cursor + stay <= opening.end and cursor.date() == target_date:
            try:
                window = TimeWindow.from_duration(target_date, cursor.time(), duration)
            except InvalidTimeRange:
                break

            violation = self.rules.booking_window_violation(target_date, cursor.time(), now)
            if violation is not None:
                slots.append(
                    TimeSlot(
                        start_time=window.start_time,
                        end_time=window.end_time,
                        available=False,
                        reason=violation.error_code,
                    )
                )
            else:
                free = [
                    c
                    for c in candidates
                    if self.detector.find_double_booking(
                        c.assignment, window, self.snapshot.reservations
                    )
                    is None
                ]
                slots.append(
                    TimeSlot(
                        start_time=window.start_time,
                        end_time=window.end_time,
                        available=bool(free),
                        tables_available=len(free),
                        reason=None if free else "FULLY_BOOKED",
                    )
                )
            cursor += step

        return slots

    def _requested_assignment(self, request: BookingRequest) -> TableAssignment:
        """
        The table named in ``request``. A table too small for the party is
        refused unless staff set ``capacity_override``; the override is then
        reported as a capacity conflict.
        """
        assignment = request.requested_assignment
        if not self.index.is_bookable(assignment):
            raise TableUnavailable(str(assignment))

        capacity = self.index.capacity_of(assignment)
        if request.guest_count > capacity and not request.capacity_override:
            if not self.allocator.candidates(request.guest_count):
                raise NoSuitableTable(request.guest_count)
            raise TableUnavailable(
                str(assignment),
                f"seats {capacity}, party of {request.guest_count}",
            )
        return assignment

    def _choose_assignment(
        self, request: BookingRequest, window: TimeWindow
    ) -> tuple:
        """
        First conflict-free candidate, tightest fit first. When every
        candidate clashes, report the tightest one's conflicts.
        """
        candidates = self.allocator.candidates(request.guest_count)
        if not candidates:
            raise NoSuitableTable(request.guest_count)

        for checked, candidate in enumerate(candidates, start=1):
            found = self.detector.detect(
                candidate.assignment,
                window,
                request.guest_count,
                self.snapshot.reservations,
                exclude_reservation_id=request.exclude_reservation_id,
                include_rush=False,
            )
            if not found:
                return candidate.assignment, [], checked

        tightest = candidates[0].assignment
        found = self.detector.detect(
            tightest,
            window,
            request.guest_count,
            self.snapshot.reservations,
            exclude_reservation_id=request.exclude_reservation_id,
            include_rush=False,
        )
        return tightest, found, len(candidates)

    def evaluate_booking(self, request: BookingRequest, now: datetime) -> BookingEvaluation:
        """
        Decide whether ``request`` can be accepted.

        Malformed input and policy violations raise immediately. Conflicts
        are returned with ranked proposals: the evaluation is ACCEPTED when
        there are none, ACCEPTED_WITH_WARNINGS when all were auto-resolved,
        BLOCKED when a high-severity conflict remains and NEEDS_REVIEW
        otherwise.
        """
        window = self.build_window(request)
        self.rules.validate_booking(window, request.guest_count, now)

        if request.requested_assignment is not None:
            assignment = self._requested_assignment(request)
            conflicts = self.detector.detect(
                assignment,
                window,
                request.guest_count,
                self.snapshot.reservations,
                exclude_reservation_id=request.exclude_reservation_id,
                include_rush=False,
            )
            checked = 1
        else:
            assignment, conflicts, checked = self._choose_assignment(request, window)

        rush = self.detector.check_rush(
            window,
            request.guest_count,
            self.snapshot.reservations,
            exclude_reservation_id=request.exclude_reservation_id,
        )
        if rush:
            conflicts.append(rush)

        if not conflicts:
            return BookingEvaluation(
                status=EvaluationStatus.ACCEPTED,
                window=window,
                guest_count=request.guest_count,
                assignment=assignment,
                candidates_checked=checked,
            )

        context = ResolutionContext(
            window=window,
            guest_count=request.guest_count,
            assignment=assignment,
            reservations=self.snapshot.reservations,
            now=now,
            exclude_reservation_id=request.exclude_reservation_id,
            subject_reservation_id=request.exclude_reservation_id,
        )
        plans = self.resolver.resolve(conflicts, context)
        status = self._overall_status(plans)

        for plan in plans:
            if plan.auto_applied is not None:
                if plan.auto_applied.new_assignment is not None:
                    assignment = plan.auto_applied.new_assignment
                if plan.auto_applied.new_window is not None:
                    window = plan.auto_applied.new_window

        if status == EvaluationStatus.ACCEPTED_WITH_WARNINGS:
            logger.info(
                f"Booking for {request.guest_count} on {window} accepted with "
                f"{len(plans)} auto-resolved warning(s)"
            )
        else:
            logger.debug(
                f"Booking for {request.guest_count} on {window} is {status.value}: "
                f"{[c.type.value for c in conflicts]}"
            )

        return BookingEvaluation(
            status=status,
            window=window,
            guest_count=request.guest_count,
            assignment=assignment,
            conflicts=tuple(conflicts),
            plans=tuple(plans),
            candidates_checked=checked,
        )

    @staticmethod
    def _overall_status(plans: List[ResolutionPlan]) -> EvaluationStatus:
        unresolved = [p for p in plans if not p.is_resolved]
        if not unresolved:
            return EvaluationStatus.ACCEPTED_WITH_WARNINGS
        if any(p.conflict.severity == ConflictSeverity.HIGH for p in unresolved):
            return EvaluationStatus.BLOCKED
        return EvaluationStatus.NEEDS_REVIEW

    def _context_for(
        self,
        conflict: Conflict,
        by_id: Dict[int, Reservation],
        day_reservations,
        now: Optional[datetime],
    ) -> Optional[ResolutionContext]:
        subject = by_id.get(conflict.subject_reservation_id)
        if subject is None:
            # Rush periods have no single subject; the latest arrival is the one to move
            group = [by_id[i] for i in conflict.conflicting_reservation_ids if i in by_id]
            if not group:
                return None
            subject = max(group, key=lambda r: (r.start_time, r.id))
        return ResolutionContext(
            window=subject.window,
            guest_count=subject.guest_count,
            assignment=subject.assignment,
            reservations=day_reservations,
            now=now,
            subject_reservation_id=subject.id,
        )

    def scan_day(
        self, target_date: date, now: Optional[datetime] = None
    ) -> List[ResolutionPlan]:
        """
        Conflicts among the reservations already on the books for a date,
        each with ranked proposals for staff. Nothing is auto-applied.
        """
        day_reservations = tuple(
            r for r in self.snapshot.reservations if r.date == target_date
        )
        by_id = {r.id: r for r in day_reservations}

        plans = []
        for conflict in self.detector.scan_reservations(day_reservations):
            context = self._context_for(conflict, by_id, day_reservations, now)
            proposals = self.resolver.propose(conflict, context) if context else []
            plans.append(ResolutionPlan(conflict=conflict, proposals=tuple(proposals)))
        return plans

    def proposals_for(
        self, reservation_id: int, target_date: date, now: Optional[datetime] = None
    ) -> List[ResolutionProposal]:
        """Every proposal from the day scan that targets one reservation"""
        return [
            proposal
            for plan in self.scan_day(target_date, now)
            for proposal in plan.proposals
            if proposal.target_reservation_id == reservation_id
        ]

    def assign_table(
        self, reservation: Reservation, now: Optional[datetime] = None
    ) -> BookingEvaluation:
        """
        Tightest free table for an existing reservation that has none.

        The booking was accepted when it was made, so opening hours and the
        booking horizon are not checked again. When every suitable table is
        taken the evaluation carries the conflicts and ranked proposals.
        """
        request = BookingRequest(
            date=reservation.date,
            start_time=reservation.start_time,
            end_time=reservation.end_time,
            guest_count=reservation.guest_count,
            exclude_reservation_id=reservation.id,
        )
        window = reservation.window
        assignment, conflicts, checked = self._choose_assignment(request, window)
        if not conflicts:
            return BookingEvaluation(
                status=EvaluationStatus.ACCEPTED,
                window=window,
                guest_count=reservation.guest_count,
                assignment=assignment,
                candidates_checked=checked,
            )

        context = ResolutionContext(
            window=window,
            guest_count=reservation.guest_count,
            assignment=assignment,
            reservations=self.snapshot.reservations,
            now=now,
            subject_reservation_id=reservation.id,
        )
        plans = self.resolver.resolve(conflicts, context)
        return BookingEvaluation(
            status=self._overall_status(plans),
            window=window,
            guest_count=reservation.guest_count,
            assignment=assignment,
            conflicts=tuple(conflicts),
            plans=tuple(plans),
            candidates_checked=checked,
        )

    # Rescheduling

    def _first_free_candidate(
        self,
        window: TimeWindow,
        guest_count: int,
        exclude_reservation_id: Optional[int] = None,
    ) -> Optional[TableCandidate]:
        for candidate in self.allocator.candidates(guest_count):
            clash = self.detector.find_double_booking(
                candidate.assignment,
                window,
                self.snapshot.reservations,
                exclude_reservation_id=exclude_reservation_id,
            )
            if clash is None:
                return candidate
        return None

    def _nearby_windows(self, day: date, original: TimeWindow) -> List[TimeWindow]:
        """
        Windows on ``day`` of the original length starting within the
        configured hours of the original start time, inside opening hours.
        """
        step = self.config.RESCHEDULE_SLOT_INTERVAL_MINUTES
        reach = self.config.RESCHEDULE_TIME_RANGE_HOURS * 60
        anchor = datetime.combine(day, original.start_time)

        windows = []
        for offset in range(-(reach // step) * step, reach + 1, step):
            start = anchor + timedelta(minutes=offset)
            if start.date() != day:
                continue
            try:
                window = TimeWindow.from_duration(day, start.time(), original.duration_minutes)
            except InvalidTimeRange:
                continue
            if self.rules.fits_opening_hours(window):
                windows.append(window)
        return windows

    def reschedule_suggestions(
        self,
        request: BookingRequest,
        snapshots: Mapping[date, RestaurantSnapshot],
        now: datetime,
        max_suggestions: Optional[int] = None,
    ) -> List[RescheduleSuggestion]:
        """
        Free alternatives for ``request`` on its own date and the following
        days, best first.

        ``snapshots`` holds one snapshot per date to search; dates without
        one are skipped. Each start time gets the tightest free table, and
        the original window itself is never suggested.
        """
        self.rules.validate_guest_count(request.guest_count)
        if not self.allocator.candidates(request.guest_count):
            raise NoSuitableTable(request.guest_count)

        original = self.build_window(request)
        suggestions = []

        for offset in range(self.config.RESCHEDULE_DATE_RANGE_DAYS + 1):
            day = request.date + timedelta(days=offset)
            if not self.config.RESCHEDULE_INCLUDE_WEEKENDS and day_of_week(day) in WEEKEND:
                continue
            snapshot = snapshots.get(day)
            if snapshot is None:
                continue
            day_service = (
                self if snapshot is self.snapshot else AvailabilityService(snapshot, self.config)
            )

            for window in day_service._nearby_windows(day, original):
                if window == original:
                    continue
                if day_service.rules.booking_window_violation(day, window.start_time, now):
                    continue
                candidate = day_service._first_free_candidate(
                    window, request.guest_count, request.exclude_reservation_id
                )
                if candidate is None:
                    continue
                suggestions.append(
                    RescheduleSuggestion(
                        window=window,
                        assignment=candidate.assignment,
                        table_label=candidate.label,
                        capacity=candidate.capacity,
                        score=reschedule_score(
                            original, window, request.guest_count, candidate.capacity
                        ),
                        days_difference=(day - request.date).days,
                        time_difference_minutes=_minutes_apart(original, window),
                    )
                )

        suggestions.sort(
            key=lambda s: (-s.score, s.days_difference, s.time_difference_minutes, s.window.start)
        )
        limit = max_suggestions or self.config.RESCHEDULE_MAX_SUGGESTIONS
        logger.debug(
            f"{len(suggestions)} reschedule options for {request.guest_count} "
            f"from {original}, returning {min(limit, len(suggestions))}"
        )
        return suggestions[:limit]


def _minutes_apart(a: TimeWindow, b: TimeWindow) -> int:
    """Distance between the start times of day, ignoring the dates"""
    return abs(
        (a.start.hour * 60 + a.start.minute) - (b.start.hour * 60 + b.start.minute)
    )


def reschedule_score(
    original: TimeWindow, suggested: TimeWindow, guest_count: int, capacity: int
) -> float:
    """
    Base 5, plus up to 3 for a nearby date, up to 2 for a nearby time, 1
    for a snug table and 2 for staying on the same day. Moving a weekday
    booking to a weekend costs 1.
    """
    days = abs((suggested.start - original.start).total_seconds()) / 86400
    score = 5.0
    score += max(0.0, 3 - days)
    score += max(0.0, 2 - _minutes_apart(original, suggested) / 120)
    if guest_count / capacity > 0.7:
        score += 1
    if suggested.date == original.date:
        score += 2
    if day_of_week(original.date) not in WEEKEND and day_of_week(suggested.date) in WEEKEND:
        score -= 1
    return round(score, 3)
