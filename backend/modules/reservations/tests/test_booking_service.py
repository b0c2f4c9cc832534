# backend/modules/reservations/tests/test_booking_service.py

"""
Tests for booking persistence: submission, concurrency, table assignment,
rescheduling, resolution application and status changes.
"""

import pytest
from concurrent.futures import ThreadPoolExecutor
from datetime import date, time

from ..enums import (
    ApplyStatus,
    ConflictType,
    CustomerImpact,
    EvaluationStatus,
    ReservationStatus,
    ResolutionStrategy,
)
from ..exceptions import (
    BookingConflictError,
    InvalidStatusTransition,
    NoSuitableTable,
    ProposalNotFound,
    ReservationNotActive,
    ReservationNotFound,
    RestaurantClosed,
    TableUnavailable,
)
from ..models.availability_types import (
    BookingRequest,
    CustomerDetails,
    ResolutionProposal,
    TableAssignment,
)
from ..models.reservation_models import Booking, SpecialDate
from ..services import BookingService, ReservationStore
from ..services.booking_service import _date_locks, advisory_lock_key
from .helpers import DAY, NOW, config

GUEST = CustomerDetails(name="Ada Lovelace", email="ada@example.com", phone="555-0100")


def request_at(start, guests=2, **kwargs):
    return BookingRequest(date=DAY, start_time=start, guest_count=guests, **kwargs)


@pytest.fixture
def service(db_session):
    return BookingService(db_session, config())


class TestCreateReservation:
    """Test booking submission"""

    def test_books_tightest_free_table(self, service, restaurant):
        booking = service.create_reservation(restaurant.id, request_at(time(19, 0)), GUEST, NOW)

        assert booking.id is not None
        assert booking.table_id == restaurant.tables["T1"]
        assert booking.status == ReservationStatus.CONFIRMED
        assert booking.end_time == time(21, 0)
        assert booking.customer_email == "ada@example.com"
        assert booking.applied_resolutions == []
        assert not booking.flagged_for_review

    def test_moves_on_when_tightest_table_is_taken(self, service, restaurant, add_booking):
        add_booking(time(19, 0), time(21, 0), table="T1")

        booking = service.create_reservation(restaurant.id, request_at(time(19, 0)), GUEST, NOW)

        assert booking.table_id == restaurant.tables["T2"]

    def test_turnaround_is_respected(self, service, restaurant, add_booking):
        """T1 is busy until 19:00 and needs 15 minutes to turn"""
        add_booking(time(17, 0), time(19, 0), table="T1")

        booking = service.create_reservation(restaurant.id, request_at(time(19, 0)), GUEST, NOW)

        assert booking.table_id == restaurant.tables["T2"]

    def test_taken_table_is_refused(self, service, restaurant, add_booking, db_session):
        add_booking(time(19, 0), time(21, 0), table="T1")

        with pytest.raises(BookingConflictError) as exc_info:
            service.create_reservation(
                restaurant.id,
                request_at(time(19, 30), table_id=restaurant.tables["T1"]),
                GUEST,
                NOW,
            )

        assert exc_info.value.evaluation.status == EvaluationStatus.BLOCKED
        assert exc_info.value.error_code == "BOOKING_CONFLICT"
        assert db_session.query(Booking).count() == 1

    def test_needs_review_requires_staff_approval(self, service, restaurant, add_booking):
        add_booking(time(19, 0), time(21, 0), table="T1", status=ReservationStatus.PENDING)
        request = request_at(time(19, 30), table_id=restaurant.tables["T1"])

        with pytest.raises(BookingConflictError) as exc_info:
            service.create_reservation(restaurant.id, request, GUEST, NOW)
        assert exc_info.value.evaluation.status == EvaluationStatus.NEEDS_REVIEW

        booking = service.create_reservation(
            restaurant.id, request, GUEST, NOW, allow_warnings=True
        )
        assert booking.flagged_for_review
        assert booking.table_id == restaurant.tables["T1"]

    def test_busy_period_records_auto_applied_resolution(self, service, restaurant, add_booking):
        """13 of 16 seats taken is over the rush ratio but close enough to accept"""
        add_booking(time(19, 0), time(21, 0), table="T4", guests=6)
        add_booking(time(19, 0), time(21, 0), table="T2", guests=4)

        booking = service.create_reservation(
            restaurant.id, request_at(time(19, 0), guests=3), GUEST, NOW
        )

        assert booking.table_id == restaurant.tables["T3"]
        assert booking.applied_resolutions == ["accept:new:20260605T1900"]

    def test_large_party_gets_combined_table(self, service, restaurant):
        booking = service.create_reservation(
            restaurant.id, request_at(time(19, 0), guests=8), GUEST, NOW
        )

        assert booking.table_id is None
        assert booking.combined_table_id == restaurant.combined_id

    def test_no_table_for_party(self, service, restaurant, db_session):
        with pytest.raises(NoSuitableTable):
            service.create_reservation(
                restaurant.id, request_at(time(19, 0), guests=12), GUEST, NOW
            )
        assert db_session.query(Booking).count() == 0

    def test_oversized_party_on_named_table_is_never_written(
        self, service, restaurant, db_session
    ):
        """12 guests on the 6-seat T4 with no combination large enough"""
        with pytest.raises(NoSuitableTable):
            service.create_reservation(
                restaurant.id,
                request_at(time(19, 0), guests=12, table_id=restaurant.tables["T4"]),
                GUEST,
                NOW,
                allow_warnings=True,
            )
        assert db_session.query(Booking).count() == 0

    def test_named_table_too_small_is_refused(self, service, restaurant, db_session):
        with pytest.raises(TableUnavailable):
            service.create_reservation(
                restaurant.id,
                request_at(time(19, 0), guests=6, table_id=restaurant.tables["T2"]),
                GUEST,
                NOW,
                allow_warnings=True,
            )
        assert db_session.query(Booking).count() == 0

    def test_capacity_override_writes_flagged_booking(self, service, restaurant):
        request = request_at(
            time(19, 0), guests=6, table_id=restaurant.tables["T2"], capacity_override=True
        )

        with pytest.raises(BookingConflictError) as exc_info:
            service.create_reservation(restaurant.id, request, GUEST, NOW)
        assert exc_info.value.evaluation.status == EvaluationStatus.NEEDS_REVIEW

        booking = service.create_reservation(
            restaurant.id, request, GUEST, NOW, allow_warnings=True
        )
        assert booking.table_id == restaurant.tables["T2"]
        assert booking.capacity_override
        assert booking.flagged_for_review

    def test_policy_violation_raised(self, service, restaurant):
        with pytest.raises(RestaurantClosed):
            service.create_reservation(restaurant.id, request_at(time(21, 30)), GUEST, NOW)


class TestConcurrentBooking:
    """Two submissions for the same table and time"""

    def test_only_one_of_two_concurrent_bookings_succeeds(self, restaurant, session_factory, db_session):
        request = request_at(time(19, 0), table_id=restaurant.tables["T1"])

        def book(_):
            session = session_factory()
            try:
                service = BookingService(session, config())
                return service.create_reservation(restaurant.id, request, GUEST, NOW).id
            except BookingConflictError as e:
                return e
            finally:
                session.close()

        with ThreadPoolExecutor(max_workers=2) as executor:
            results = list(executor.map(book, range(2)))

        created = [r for r in results if isinstance(r, int)]
        refused = [r for r in results if isinstance(r, BookingConflictError)]
        assert len(created) == 1
        assert len(refused) == 1
        assert refused[0].evaluation.conflicts[0].type == ConflictType.DOUBLE_BOOKING
        assert refused[0].evaluation.conflicts[0].conflicting_reservation_ids == (created[0],)
        assert db_session.query(Booking).count() == 1

    def test_lock_keys_differ_per_date(self):
        assert advisory_lock_key(1, DAY) == advisory_lock_key(1, DAY)
        assert advisory_lock_key(1, DAY) != advisory_lock_key(1, date(2026, 6, 6))
        assert advisory_lock_key(1, DAY) != advisory_lock_key(2, DAY)

    def test_lock_entries_are_released(self, service, restaurant):
        service.create_reservation(restaurant.id, request_at(time(19, 0)), GUEST, NOW)
        with pytest.raises(BookingConflictError):
            service.create_reservation(
                restaurant.id,
                request_at(time(19, 0), table_id=restaurant.tables["T1"]),
                GUEST,
                NOW,
            )

        assert len(_date_locks) == 0


class TestApplyResolution:
    """Test persisting resolution proposals"""

    @pytest.fixture
    def double_booked(self, add_booking):
        first = add_booking(time(19, 0), time(21, 0), table="T1")
        second = add_booking(time(20, 0), time(22, 0), table="T1")
        return first, second

    def test_scan_finds_the_later_booking(self, service, restaurant, double_booked):
        first, second = double_booked

        plans = service.scan_conflicts(restaurant.id, DAY, NOW)

        assert len(plans) == 1
        assert plans[0].conflict.subject_reservation_id == second.id
        assert plans[0].recommended.strategy == ResolutionStrategy.REASSIGN_TABLE

    def test_apply_by_id_is_idempotent(self, service, restaurant, double_booked, db_session):
        _, second = double_booked
        proposal_id = f"reassign:{second.id}:table:{restaurant.tables['T2']}:20260605T2000"

        first_result = service.apply_resolution(restaurant.id, second.id, proposal_id, NOW)
        assert first_result.status == ApplyStatus.APPLIED

        db_session.refresh(second)
        assert second.table_id == restaurant.tables["T2"]
        assert second.applied_resolutions == [proposal_id]

        again = service.apply_resolution(restaurant.id, second.id, proposal_id, NOW)
        assert again.status == ApplyStatus.ALREADY_RESOLVED

        db_session.refresh(second)
        assert second.applied_resolutions == [proposal_id]
        assert service.scan_conflicts(restaurant.id, DAY, NOW) == []

    def test_deny_flags_booking(self, service, restaurant, double_booked, db_session):
        _, second = double_booked

        result = service.apply_resolution(
            restaurant.id, second.id, f"deny:{second.id}:double_booking", NOW
        )

        assert result.status == ApplyStatus.APPLIED
        db_session.refresh(second)
        assert second.flagged_for_review
        assert second.table_id == restaurant.tables["T1"]

    def test_unknown_proposal(self, service, restaurant, double_booked):
        _, second = double_booked

        with pytest.raises(ProposalNotFound):
            service.apply_resolution(restaurant.id, second.id, "reassign:nowhere", NOW)

    def test_unknown_booking(self, service, restaurant):
        with pytest.raises(ReservationNotFound):
            service.apply_resolution(restaurant.id, 999, "deny:999:double_booking", NOW)

    def test_move_onto_occupied_table_is_refused(
        self, service, restaurant, double_booked, add_booking, db_session
    ):
        _, second = double_booked
        add_booking(time(19, 30), time(21, 30), table="T2")
        move = ResolutionProposal(
            proposal_id="manual-move",
            strategy=ResolutionStrategy.REASSIGN_TABLE,
            confidence=1.0,
            impact=CustomerImpact.LOW,
            description="Move to T2",
            target_reservation_id=second.id,
            new_assignment=TableAssignment.single(restaurant.tables["T2"]),
        )

        with pytest.raises(TableUnavailable):
            service.apply_resolution(restaurant.id, second.id, move, NOW)

        db_session.refresh(second)
        assert second.table_id == restaurant.tables["T1"]
        assert second.applied_resolutions in (None, [])


class TestUpdateStatus:
    """Test the booking lifecycle"""

    def test_confirm_then_complete(self, service, restaurant, add_booking):
        booking = add_booking(time(19, 0), time(21, 0), status=ReservationStatus.PENDING)

        assert service.update_status(restaurant.id, booking.id, ReservationStatus.CONFIRMED).status == ReservationStatus.CONFIRMED
        assert service.update_status(restaurant.id, booking.id, ReservationStatus.COMPLETED).status == ReservationStatus.COMPLETED

    def test_finished_booking_cannot_be_cancelled(self, service, restaurant, add_booking):
        booking = add_booking(time(19, 0), time(21, 0), status=ReservationStatus.COMPLETED)

        with pytest.raises(InvalidStatusTransition):
            service.update_status(restaurant.id, booking.id, ReservationStatus.CANCELLED)

    def test_pending_cannot_be_a_no_show(self, service, restaurant, add_booking):
        booking = add_booking(time(19, 0), time(21, 0), status=ReservationStatus.PENDING)

        with pytest.raises(InvalidStatusTransition):
            service.update_status(restaurant.id, booking.id, ReservationStatus.NO_SHOW)

    def test_cancelling_frees_the_table(self, service, restaurant, add_booking):
        booking = add_booking(time(19, 0), time(21, 0), table="T1")

        cancelled = service.update_status(restaurant.id, booking.id, ReservationStatus.CANCELLED)
        assert cancelled.cancelled_at is not None

        rebooked = service.create_reservation(
            restaurant.id, request_at(time(19, 0), table_id=restaurant.tables["T1"]), GUEST, NOW
        )
        assert rebooked.table_id == restaurant.tables["T1"]

    def test_missing_booking(self, service, restaurant):
        with pytest.raises(ReservationNotFound):
            service.update_status(restaurant.id, 999, ReservationStatus.CANCELLED)


class TestReservationStore:
    """Test loading snapshots from the database"""

    def test_snapshot_reflects_rows(self, db_session, restaurant, add_booking):
        add_booking(time(19, 0), time(21, 0), table="T1")
        add_booking(time(19, 0), time(21, 0), table="T1", day=date(2026, 6, 6))

        snapshot = ReservationStore(db_session).load_snapshot(restaurant.id, DAY)

        assert [t.number for t in snapshot.tables] == ["T1", "T2", "T3", "T4"]
        assert snapshot.combined_tables[0].member_table_ids == frozenset(
            {restaurant.tables["T2"], restaurant.tables["T3"]}
        )
        assert snapshot.policy.turnaround_minutes == 15
        assert snapshot.policy.max_guests == 12
        assert len(snapshot.opening_hours) == 7
        assert [r.date for r in snapshot.reservations] == [DAY]

    def test_active_only_skips_cancelled(self, db_session, restaurant, add_booking):
        add_booking(time(12, 0), time(14, 0), table="T1", status=ReservationStatus.CANCELLED)
        kept = add_booking(time(19, 0), time(21, 0), table="T1")
        store = ReservationStore(db_session)

        assert len(store.list_reservations(restaurant.id, DAY)) == 2
        assert [r.id for r in store.list_reservations(restaurant.id, DAY, active_only=True)] == [kept.id]

    def test_missing_settings_fall_back_to_defaults(self, db_session, restaurant):
        policy = ReservationStore(db_session).get_booking_policy(restaurant_id=2)

        assert policy.default_duration_minutes == 120
        assert policy.turnaround_minutes == 0

    def test_special_periods_filtered_by_date(self, db_session, restaurant):
        db_session.add(
            SpecialDate(
                restaurant_id=restaurant.id,
                start_date=date(2026, 12, 24),
                end_date=date(2026, 12, 26),
                name="Christmas",
                is_closed=True,
            )
        )
        db_session.commit()
        store = ReservationStore(db_session)

        assert store.get_special_periods(restaurant.id, covering=date(2026, 12, 25))[0].is_closed
        assert store.get_special_periods(restaurant.id, covering=DAY) == []
        assert len(store.get_special_periods(restaurant.id)) == 1

    def test_snapshots_for_a_date_range(self, db_session, restaurant, add_booking):
        first = add_booking(time(19, 0), time(21, 0), table="T1")
        second = add_booking(time(19, 0), time(21, 0), table="T1", day=date(2026, 6, 7))
        add_booking(time(19, 0), time(21, 0), table="T1", day=date(2026, 6, 12))

        snapshots = ReservationStore(db_session).load_snapshots(
            restaurant.id, DAY, date(2026, 6, 8)
        )

        assert sorted(snapshots) == [date(2026, 6, d) for d in range(5, 9)]
        assert [r.id for r in snapshots[DAY].reservations] == [first.id]
        assert snapshots[date(2026, 6, 6)].reservations == ()
        assert [r.id for r in snapshots[date(2026, 6, 7)].reservations] == [second.id]
        assert snapshots[DAY].tables == snapshots[date(2026, 6, 8)].tables


class TestAssignTable:
    """Test assigning tables to bookings made without one"""

    def test_assigns_tightest_free_table(self, service, restaurant, add_booking, db_session):
        add_booking(time(19, 0), time(21, 0), table="T1")
        unassigned = add_booking(time(19, 0), time(21, 0), table=None)

        booking = service.assign_table(restaurant.id, unassigned.id, NOW)

        assert booking.table_id == restaurant.tables["T2"]
        db_session.refresh(unassigned)
        assert unassigned.table_id == restaurant.tables["T2"]

    def test_repeat_keeps_the_assignment(self, service, restaurant, add_booking):
        unassigned = add_booking(time(19, 0), time(21, 0), table=None)

        first = service.assign_table(restaurant.id, unassigned.id, NOW)
        again = service.assign_table(restaurant.id, unassigned.id, NOW)

        assert first.table_id == restaurant.tables["T1"]
        assert again.table_id == restaurant.tables["T1"]
        assert again.combined_table_id is None

    def test_no_free_table_leaves_booking_unassigned(
        self, service, restaurant, add_booking, db_session
    ):
        """T4 is taken and the combined table shares T2"""
        add_booking(time(19, 0), time(21, 0), table="T4", guests=6)
        add_booking(time(19, 0), time(21, 0), table="T2", guests=4)
        unassigned = add_booking(time(19, 30), time(21, 0), table=None, guests=6)

        with pytest.raises(BookingConflictError) as exc_info:
            service.assign_table(restaurant.id, unassigned.id, NOW)

        assert exc_info.value.evaluation.status == EvaluationStatus.BLOCKED
        db_session.refresh(unassigned)
        assert unassigned.table_id is None
        assert unassigned.combined_table_id is None

    def test_cancelled_booking(self, service, restaurant, add_booking):
        cancelled = add_booking(
            time(19, 0), time(21, 0), table=None, status=ReservationStatus.CANCELLED
        )

        with pytest.raises(ReservationNotActive):
            service.assign_table(restaurant.id, cancelled.id, NOW)

    def test_missing_booking(self, service, restaurant):
        with pytest.raises(ReservationNotFound):
            service.assign_table(restaurant.id, 999, NOW)


class TestRescheduleSuggestions:
    """Test rescheduling suggestions across dates"""

    def test_full_evening_suggests_earlier_then_next_day(self, service, restaurant, add_booking):
        for table in ("T1", "T2", "T3", "T4"):
            add_booking(time(19, 0), time(21, 0), table=table)

        suggestions = service.reschedule_suggestions(restaurant.id, request_at(time(19, 0)), NOW)

        assert len(suggestions) == 5
        assert [(s.date, s.start_time) for s in suggestions[:3]] == [
            (DAY, time(16, 30)),
            (DAY, time(16, 0)),
            (date(2026, 6, 6), time(19, 0)),
        ]
        assert suggestions[0].assignment == TableAssignment.single(restaurant.tables["T1"])
        assert suggestions[0].score == pytest.approx(11.646)

    def test_existing_booking_moves_around_itself(self, service, restaurant, add_booking):
        booking = add_booking(time(19, 0), time(21, 0), table="T1")

        suggestions = service.reschedule_suggestions_for_booking(restaurant.id, booking.id, NOW)

        assert suggestions[0].start_time == time(18, 30)
        assert suggestions[0].assignment == TableAssignment.single(restaurant.tables["T1"])
        assert all(
            (s.date, s.start_time) != (DAY, time(19, 0)) for s in suggestions
        )

    def test_missing_booking(self, service, restaurant):
        with pytest.raises(ReservationNotFound):
            service.reschedule_suggestions_for_booking(restaurant.id, 999, NOW)
