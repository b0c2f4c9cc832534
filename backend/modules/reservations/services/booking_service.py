# backend/modules/reservations/services/booking_service.py

"""
Booking submission, table assignment and resolution application against
the database.

Writes for one restaurant and date are serialized: a process-level lock
per (restaurant, date), plus a transaction-scoped advisory lock on
PostgreSQL so separate workers agree too. The snapshot is reloaded and the
evaluation re-run inside that critical section, so two concurrent requests
for the same slot cannot both be written.
"""

from contextlib import contextmanager
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Tuple, Union
import logging
import threading

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import AvailabilityConfig, get_availability_config
from ..enums import ApplyStatus, EvaluationStatus, ReservationStatus
from ..exceptions import (
    BookingConflictError,
    InvalidStatusTransition,
    ProposalNotFound,
    ReservationNotActive,
    ReservationNotFound,
    TableUnavailable,
)
from ..models.reservation_models import Booking
from ..models.availability_types import (
    ApplyResult,
    BookingEvaluation,
    BookingRequest,
    CustomerDetails,
    RescheduleSuggestion,
    ResolutionPlan,
    ResolutionProposal,
    TimeSlot,
)
from .availability_service import AvailabilityService
from .reservation_store import ReservationStore, booking_to_reservation

logger = logging.getLogger(__name__)

_STATUS_TRANSITIONS = {
    ReservationStatus.PENDING: {ReservationStatus.CONFIRMED, ReservationStatus.CANCELLED},
    ReservationStatus.CONFIRMED: {
        ReservationStatus.CANCELLED,
        ReservationStatus.COMPLETED,
        ReservationStatus.NO_SHOW,
    },
}


class _DateLocks:
    """
    One lock per (restaurant, date). An entry is dropped as soon as nobody
    holds or waits on it, so the map only covers dates being written.
    """

    def __init__(self):
        self._guard = threading.Lock()
        # key -> [lock, holders and waiters]
        self._entries: Dict[Tuple[int, date], list] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)

    @contextmanager
    def hold(self, restaurant_id: int, booking_date: date):
        key = (restaurant_id, booking_date)
        with self._guard:
            entry = self._entries.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._entries[key]


_date_locks = _DateLocks()


def advisory_lock_key(restaurant_id: int, booking_date: date) -> int:
    """Stable signed 64-bit key for pg_advisory_xact_lock"""
    return restaurant_id * 1_000_000 + booking_date.toordinal()


class BookingService:
    """Service for evaluating and writing bookings"""

    def __init__(self, db: Session, config: Optional[AvailabilityConfig] = None):
        self.db = db
        self.config = config or get_availability_config()
        self.store = ReservationStore(db)

    def _availability(self, restaurant_id: int, booking_date: date) -> AvailabilityService:
        snapshot = self.store.load_snapshot(restaurant_id, booking_date)
        return AvailabilityService(snapshot, self.config)

    @contextmanager
    def _critical_section(self, restaurant_id: int, booking_date: date):
        """Hold the per-date lock until the transaction commits or rolls back"""
        with _date_locks.hold(restaurant_id, booking_date):
            try:
                if self.db.get_bind().dialect.name == "postgresql":
                    self.db.execute(
                        text("SELECT pg_advisory_xact_lock(:key)"),
                        {"key": advisory_lock_key(restaurant_id, booking_date)},
                    )
                yield
                self.db.commit()
            except SQLAlchemyError as e:
                logger.error(
                    f"Database error writing bookings for restaurant {restaurant_id} "
                    f"on {booking_date}: {str(e)}"
                )
                self.db.rollback()
                raise
            except Exception:
                self.db.rollback()
                raise

    # Read-only queries

    def get_available_slots(
        self,
        restaurant_id: int,
        booking_date: date,
        guest_count: int,
        now: datetime,
        duration_minutes: Optional[int] = None,
    ) -> List[TimeSlot]:
        service = self._availability(restaurant_id, booking_date)
        return service.get_available_slots(booking_date, guest_count, now, duration_minutes)

    def evaluate_booking(
        self, restaurant_id: int, request: BookingRequest, now: datetime
    ) -> BookingEvaluation:
        """What-if evaluation; nothing is written"""
        service = self._availability(restaurant_id, request.date)
        return service.evaluate_booking(request, now)

    def scan_conflicts(
        self, restaurant_id: int, booking_date: date, now: Optional[datetime] = None
    ) -> List[ResolutionPlan]:
        service = self._availability(restaurant_id, booking_date)
        return service.scan_day(booking_date, now)

    # Writes

    def create_reservation(
        self,
        restaurant_id: int,
        request: BookingRequest,
        customer: CustomerDetails,
        now: datetime,
        allow_warnings: bool = False,
        status: ReservationStatus = ReservationStatus.CONFIRMED,
    ) -> Booking:
        """
        Re-evaluate the request inside the critical section and write it.

        BLOCKED evaluations are always refused; NEEDS_REVIEW ones only go
        through when staff pass ``allow_warnings``. Auto-applied
        resolutions (a different table or time) are reflected in the row.
        """
        with self._critical_section(restaurant_id, request.date):
            service = self._availability(restaurant_id, request.date)
            evaluation = service.evaluate_booking(request, now)

            refused = evaluation.status == EvaluationStatus.BLOCKED or (
                evaluation.status == EvaluationStatus.NEEDS_REVIEW and not allow_warnings
            )
            if refused:
                logger.warning(
                    f"Refused booking for {request.guest_count} at restaurant {restaurant_id} "
                    f"on {evaluation.window}: {evaluation.status.value}"
                )
                raise BookingConflictError(evaluation)

            assignment = evaluation.assignment
            booking = Booking(
                restaurant_id=restaurant_id,
                table_id=assignment.table_id if assignment else None,
                combined_table_id=assignment.combined_table_id if assignment else None,
                booking_date=evaluation.window.date,
                start_time=evaluation.window.start_time,
                end_time=evaluation.window.end_time,
                guest_count=request.guest_count,
                status=status,
                customer_name=customer.name,
                customer_email=customer.email,
                customer_phone=customer.phone,
                notes=customer.notes,
                capacity_override=request.capacity_override,
                flagged_for_review=evaluation.status == EvaluationStatus.NEEDS_REVIEW,
                applied_resolutions=sorted(
                    plan.auto_applied.proposal_id
                    for plan in evaluation.plans
                    if plan.auto_applied is not None
                ),
            )
            self.db.add(booking)
            self.db.flush()

        self.db.refresh(booking)
        logger.info(
            f"Created booking {booking.id} for {booking.guest_count} guests at restaurant "
            f"{restaurant_id} on {booking.booking_date} {booking.start_time}"
        )
        return booking

    def _get_booking_or_raise(
        self, restaurant_id: int, reservation_id: int, lock: bool = False
    ) -> Booking:
        booking = self.store.get_booking(restaurant_id, reservation_id, lock=lock)
        if not booking:
            raise ReservationNotFound(reservation_id)
        return booking

    def apply_resolution(
        self,
        restaurant_id: int,
        reservation_id: int,
        proposal: Union[ResolutionProposal, str],
        now: Optional[datetime] = None,
    ) -> ApplyResult:
        """
        Persist a resolution proposal, given as a value or by its id.

        Repeating the call is harmless: a proposal already recorded on the
        booking, or whose target state already holds, reports
        ALREADY_RESOLVED and writes nothing.
        """
        booking_date = self._get_booking_or_raise(restaurant_id, reservation_id).booking_date

        with self._critical_section(restaurant_id, booking_date):
            booking = self._get_booking_or_raise(restaurant_id, reservation_id, lock=True)
            reservation = booking_to_reservation(booking)
            service = self._availability(restaurant_id, booking_date)

            if isinstance(proposal, str):
                if proposal in reservation.applied_resolutions:
                    return ApplyResult(ApplyStatus.ALREADY_RESOLVED, reservation)
                matches = [
                    p
                    for p in service.proposals_for(reservation_id, booking_date, now)
                    if p.proposal_id == proposal
                ]
                if not matches:
                    raise ProposalNotFound(reservation_id, proposal)
                proposal = matches[0]

            result = service.resolver.apply(proposal, reservation)
            if result.status == ApplyStatus.ALREADY_RESOLVED:
                logger.info(
                    f"Proposal {proposal.proposal_id} already resolved for booking {reservation_id}"
                )
                return result

            updated = result.reservation
            if proposal.changes_booking and updated.assignment is not None:
                clash = service.detector.find_double_booking(
                    updated.assignment,
                    updated.window,
                    service.snapshot.reservations,
                    exclude_reservation_id=reservation_id,
                )
                if clash:
                    raise TableUnavailable(str(updated.assignment))

            booking.table_id = updated.table_id
            booking.combined_table_id = updated.combined_table_id
            booking.booking_date = updated.date
            booking.start_time = updated.start_time
            booking.end_time = updated.end_time
            booking.flagged_for_review = updated.flagged_for_review
            booking.applied_resolutions = sorted(updated.applied_resolutions)

        logger.info(
            f"Applied {proposal.strategy.value} proposal {proposal.proposal_id} "
            f"to booking {reservation_id}"
        )
        return result

    def assign_table(
        self, restaurant_id: int, reservation_id: int, now: Optional[datetime] = None
    ) -> Booking:
        """
        Give an unassigned booking the tightest free table. A booking that
        already holds a table is returned unchanged.
        """
        booking_date = self._get_booking_or_raise(restaurant_id, reservation_id).booking_date

        with self._critical_section(restaurant_id, booking_date):
            booking = self._get_booking_or_raise(restaurant_id, reservation_id, lock=True)
            if booking.table_id is not None or booking.combined_table_id is not None:
                logger.info(f"Booking {reservation_id} already has a table")
                return booking

            reservation = booking_to_reservation(booking)
            if not reservation.is_active:
                raise ReservationNotActive(reservation_id, reservation.status)

            service = self._availability(restaurant_id, booking_date)
            evaluation = service.assign_table(reservation, now)
            if evaluation.status != EvaluationStatus.ACCEPTED:
                logger.warning(
                    f"No free table for booking {reservation_id} on {evaluation.window}: "
                    f"{[c.type.value for c in evaluation.conflicts]}"
                )
                raise BookingConflictError(evaluation)

            booking.table_id = evaluation.assignment.table_id
            booking.combined_table_id = evaluation.assignment.combined_table_id

        self.db.refresh(booking)
        logger.info(f"Assigned {evaluation.assignment} to booking {reservation_id}")
        return booking

    def reschedule_suggestions(
        self,
        restaurant_id: int,
        request: BookingRequest,
        now: datetime,
        max_suggestions: Optional[int] = None,
    ) -> List[RescheduleSuggestion]:
        """Free alternatives on the requested date and the days after it"""
        last = request.date + timedelta(days=self.config.RESCHEDULE_DATE_RANGE_DAYS)
        snapshots = self.store.load_snapshots(restaurant_id, request.date, last)
        service = AvailabilityService(snapshots[request.date], self.config)
        return service.reschedule_suggestions(request, snapshots, now, max_suggestions)

    def reschedule_suggestions_for_booking(
        self,
        restaurant_id: int,
        reservation_id: int,
        now: datetime,
        max_suggestions: Optional[int] = None,
    ) -> List[RescheduleSuggestion]:
        booking = self._get_booking_or_raise(restaurant_id, reservation_id)
        request = BookingRequest(
            date=booking.booking_date,
            start_time=booking.start_time,
            end_time=booking.end_time,
            guest_count=booking.guest_count,
            exclude_reservation_id=booking.id,
        )
        return self.reschedule_suggestions(restaurant_id, request, now, max_suggestions)

    def update_status(
        self, restaurant_id: int, reservation_id: int, status: ReservationStatus
    ) -> Booking:
        """Move a booking through its lifecycle; bookings are never deleted"""
        booking = self._get_booking_or_raise(restaurant_id, reservation_id, lock=True)

        allowed = _STATUS_TRANSITIONS.get(booking.status, set())
        if status not in allowed:
            self.db.rollback()
            raise InvalidStatusTransition(booking.status, status)

        try:
            booking.status = status
            if status == ReservationStatus.CANCELLED:
                booking.cancelled_at = datetime.utcnow()
            self.db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to update status of booking {reservation_id}: {str(e)}")
            self.db.rollback()
            raise

        self.db.refresh(booking)
        logger.info(f"Booking {reservation_id} is now {status.value}")
        return booking
