# backend/modules/reservations/tests/test_conflict_detector.py

"""
Tests for double booking, capacity and rush detection.
"""

import pytest
from datetime import date, time

from ..enums import ConflictSeverity, ConflictType, ReservationStatus
from ..models.availability_types import TableAssignment
from ..services.conflict_detector import ConflictDetector
from ..services.table_allocator import TableIndex
from ..utils.time_window import TimeWindow
from .helpers import DAY, booking, combined, tables

TABLE_1 = TableAssignment.single(1)


def detector_for(inventory, combos=(), **kwargs) -> ConflictDetector:
    return ConflictDetector(TableIndex(inventory, combos), **kwargs)


def window(start: time, end: time) -> TimeWindow:
    return TimeWindow.on(DAY, start, end)


class TestDoubleBooking:
    """Test table collisions"""

    def test_overlapping_confirmed_booking_is_high_severity(self):
        """Table 1 booked 19:00-21:00, request 19:30-21:30"""
        detector = detector_for(tables(4))
        existing = [booking(1, time(19, 0), time(21, 0), table_id=1)]

        conflicts = detector.detect(
            TABLE_1, window(time(19, 30), time(21, 30)), 2, existing, include_rush=False
        )

        assert len(conflicts) == 1
        assert conflicts[0].type == ConflictType.DOUBLE_BOOKING
        assert conflicts[0].severity == ConflictSeverity.HIGH
        assert conflicts[0].conflicting_reservation_ids == (1,)
        assert conflicts[0].affected == TABLE_1

    def test_pending_booking_is_medium_severity(self):
        detector = detector_for(tables(4))
        existing = [
            booking(1, time(19, 0), time(21, 0), table_id=1, status=ReservationStatus.PENDING)
        ]

        conflict = detector.find_double_booking(TABLE_1, window(time(20, 0), time(22, 0)), existing)
        assert conflict.severity == ConflictSeverity.MEDIUM

    def test_back_to_back_bookings_do_not_conflict_without_buffer(self):
        detector = detector_for(tables(4))
        existing = [booking(1, time(17, 0), time(19, 0), table_id=1)]

        assert detector.find_double_booking(TABLE_1, window(time(19, 0), time(21, 0)), existing) is None

    def test_back_to_back_bookings_conflict_with_buffer(self):
        detector = detector_for(tables(4), turnaround_minutes=15)
        existing = [booking(1, time(17, 0), time(19, 0), table_id=1)]

        assert detector.find_double_booking(TABLE_1, window(time(19, 0), time(21, 0)), existing)

    def test_buffer_applies_to_both_windows(self):
        """Existing 19:00-20:00, request 20:15-21:15, 30 minute buffer"""
        detector = detector_for(tables(4), turnaround_minutes=30)
        existing = [booking(1, time(19, 0), time(20, 0), table_id=1)]

        conflict = detector.find_double_booking(
            TABLE_1, window(time(20, 15), time(21, 15)), existing
        )
        assert conflict is not None
        assert conflict.details["turnaround_minutes"] == 30

    @pytest.mark.parametrize("buffer_minutes", [0, 10, 20, 45, 90])
    def test_larger_buffer_never_finds_fewer_conflicts(self, buffer_minutes):
        inventory = tables(4, 4)
        existing = [
            booking(1, time(12, 0), time(13, 0), table_id=1),
            booking(2, time(17, 0), time(18, 30), table_id=1),
            booking(3, time(19, 0), time(20, 0), table_id=2),
        ]
        proposed = window(time(18, 45), time(19, 30))

        def found(minutes):
            detector = detector_for(inventory, turnaround_minutes=minutes)
            ids = set()
            for table_id in (1, 2):
                conflict = detector.find_double_booking(
                    TableAssignment.single(table_id), proposed, existing
                )
                if conflict:
                    ids.update(conflict.conflicting_reservation_ids)
            return ids

        assert found(buffer_minutes) <= found(buffer_minutes + 15)

    def test_inactive_statuses_never_block(self):
        detector = detector_for(tables(4))
        existing = [
            booking(1, time(19, 0), time(21, 0), table_id=1, status=status)
            for status in (
                ReservationStatus.CANCELLED,
                ReservationStatus.COMPLETED,
                ReservationStatus.NO_SHOW,
            )
        ]

        assert detector.find_double_booking(TABLE_1, window(time(19, 0), time(21, 0)), existing) is None

    def test_other_dates_ignored(self):
        detector = detector_for(tables(4))
        existing = [booking(1, time(19, 0), time(21, 0), table_id=1, day=date(2026, 6, 6))]

        assert detector.find_double_booking(TABLE_1, window(time(19, 0), time(21, 0)), existing) is None

    def test_excluded_reservation_does_not_collide_with_itself(self):
        detector = detector_for(tables(4))
        existing = [booking(1, time(19, 0), time(21, 0), table_id=1)]

        assert (
            detector.find_double_booking(
                TABLE_1, window(time(19, 30), time(21, 30)), existing, exclude_reservation_id=1
            )
            is None
        )

    def test_combined_table_blocks_members_and_back(self):
        inventory = tables(4, 4, 4)
        combo = combined(10, inventory[:2])
        detector = detector_for(inventory, [combo])

        on_member = [booking(1, time(19, 0), time(21, 0), table_id=2)]
        assert detector.find_double_booking(
            TableAssignment.combined(10), window(time(20, 0), time(22, 0)), on_member
        )

        on_combo = [booking(2, time(19, 0), time(21, 0), combined_table_id=10)]
        assert detector.find_double_booking(
            TableAssignment.single(1), window(time(20, 0), time(22, 0)), on_combo
        )
        assert (
            detector.find_double_booking(
                TableAssignment.single(3), window(time(20, 0), time(22, 0)), on_combo
            )
            is None
        )


class TestCapacityAndRush:
    """Test constraint and density conflicts"""

    def test_capacity_exceeded_without_competing_booking(self):
        detector = detector_for(tables(4))

        conflicts = detector.detect(
            TABLE_1, window(time(19, 0), time(21, 0)), 6, [], include_rush=False
        )

        assert [c.type for c in conflicts] == [ConflictType.CAPACITY_EXCEEDED]
        assert conflicts[0].severity == ConflictSeverity.MEDIUM
        assert conflicts[0].details == {"guest_count": 6, "capacity": 4}

    def test_rush_when_seating_ratio_exceeded(self):
        """10 seats total, 6 already seated, 3 more is 90%"""
        detector = detector_for(tables(4, 4, 2), rush_capacity_ratio=0.8)
        existing = [
            booking(1, time(19, 0), time(21, 0), table_id=1, guests=4),
            booking(2, time(19, 30), time(21, 0), table_id=3, guests=2),
        ]

        rush = detector.check_rush(window(time(19, 0), time(21, 0)), 3, existing)

        assert rush.type == ConflictType.RUSH_OVERLAP
        assert rush.severity == ConflictSeverity.LOW
        assert rush.details["requested_seats"] == 9
        assert rush.details["utilization"] == 0.9
        assert rush.conflicting_reservation_ids == (1, 2)

    def test_no_rush_below_ratio(self):
        detector = detector_for(tables(4, 4, 2), rush_capacity_ratio=0.8)
        existing = [booking(1, time(19, 0), time(21, 0), table_id=1, guests=4)]

        assert detector.check_rush(window(time(19, 0), time(21, 0)), 2, existing) is None

    def test_rush_uses_peak_not_sum_of_sequential_bookings(self):
        detector = detector_for(tables(4, 4, 2), rush_capacity_ratio=0.8)
        existing = [
            booking(1, time(17, 0), time(18, 0), table_id=1, guests=4),
            booking(2, time(18, 0), time(19, 0), table_id=2, guests=4),
        ]

        assert detector.check_rush(window(time(17, 0), time(19, 0)), 2, existing) is None

    def test_rush_on_concurrent_booking_cap(self):
        detector = detector_for(tables(10, 10), rush_max_concurrent_bookings=1)
        existing = [booking(1, time(19, 0), time(21, 0), table_id=1, guests=2)]

        rush = detector.check_rush(window(time(19, 0), time(21, 0)), 2, existing)
        assert rush is not None
        assert rush.details["concurrent_bookings"] == 2


class TestScanReservations:
    """Test the audit of existing bookings"""

    def test_scan_finds_pairwise_double_booking(self):
        detector = detector_for(tables(4, 4))
        existing = [
            booking(1, time(19, 0), time(21, 0), table_id=1),
            booking(2, time(20, 0), time(22, 0), table_id=1),
            booking(3, time(19, 0), time(21, 0), table_id=2),
        ]

        conflicts = detector.scan_reservations(existing)
        doubles = [c for c in conflicts if c.type == ConflictType.DOUBLE_BOOKING]

        assert len(doubles) == 1
        assert doubles[0].subject_reservation_id == 2
        assert doubles[0].conflicting_reservation_ids == (1,)

    def test_scan_flags_oversized_party(self):
        detector = detector_for(tables(4, 6))
        existing = [
            booking(1, time(12, 0), time(13, 0), table_id=1, guests=5),
            booking(2, time(12, 0), time(13, 0), guests=9),
        ]

        capacity = [
            c for c in detector.scan_reservations(existing)
            if c.type == ConflictType.CAPACITY_EXCEEDED
        ]

        assert {c.subject_reservation_id for c in capacity} == {1, 2}
        unassigned = next(c for c in capacity if c.subject_reservation_id == 2)
        assert unassigned.details["reason"] == "no_suitable_table"

    def test_scan_clean_day(self):
        detector = detector_for(tables(4, 4))
        existing = [
            booking(1, time(17, 0), time(19, 0), table_id=1),
            booking(2, time(19, 0), time(21, 0), table_id=1),
        ]

        assert detector.scan_reservations(existing) == []
