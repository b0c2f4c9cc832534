# backend/modules/reservations/services/conflict_detector.py

"""
Conflict detection for proposed and existing reservations.

Everything here is a pure function of the data handed in, so it can be
used for what-if previews and again inside the write transaction.
"""

from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Tuple
import logging

from ..enums import ConflictSeverity, ConflictType, ReservationStatus
from ..models.availability_types import Conflict, Reservation, TableAssignment
from ..utils.time_window import TimeWindow
from .table_allocator import TableIndex

logger = logging.getLogger(__name__)


def double_booking_severity(clashing: Iterable[Reservation]) -> ConflictSeverity:
    """High when a confirmed reservation is involved, medium for pending ones."""
    if any(r.status == ReservationStatus.CONFIRMED for r in clashing):
        return ConflictSeverity.HIGH
    return ConflictSeverity.MEDIUM


class ConflictDetector:
    def __init__(
        self,
        index: TableIndex,
        turnaround_minutes: int = 0,
        rush_capacity_ratio: float = 0.8,
        rush_max_concurrent_bookings: Optional[int] = None,
    ):
        self.index = index
        self.turnaround_minutes = turnaround_minutes
        self.rush_capacity_ratio = rush_capacity_ratio
        self.rush_max_concurrent_bookings = rush_max_concurrent_bookings

    def _active_on(
        self,
        window: TimeWindow,
        reservations: Iterable[Reservation],
        exclude_ids: Sequence[Optional[int]] = (),
    ) -> List[Reservation]:
        excluded = {i for i in exclude_ids if i is not None}
        return [
            r
            for r in reservations
            if r.is_active and r.date == window.date and r.id not in excluded
        ]

    def find_double_booking(
        self,
        assignment: TableAssignment,
        window: TimeWindow,
        reservations: Iterable[Reservation],
        exclude_reservation_id: Optional[int] = None,
        subject_reservation_id: Optional[int] = None,
    ) -> Optional[Conflict]:
        """
        Reservations on any shared physical table whose buffered window
        overlaps the buffered proposed window. Booking a combined table
        blocks its members and booking a member blocks the combination.
        """
        tables = self.index.physical_tables(assignment)
        proposed = window.with_buffer(self.turnaround_minutes)

        clashing = [
            r
            for r in self._active_on(
                window, reservations, (exclude_reservation_id, subject_reservation_id)
            )
            if tables & self.index.physical_tables(r.assignment)
            and proposed.overlaps(r.window.with_buffer(self.turnaround_minutes))
        ]
        if not clashing:
            return None

        return Conflict(
            type=ConflictType.DOUBLE_BOOKING,
            severity=double_booking_severity(clashing),
            affected=assignment,
            conflicting_reservation_ids=tuple(sorted(r.id for r in clashing)),
            subject_reservation_id=subject_reservation_id,
            details={
                "turnaround_minutes": self.turnaround_minutes,
                "tables": sorted(tables),
            },
        )

    def check_capacity(
        self,
        assignment: TableAssignment,
        guest_count: int,
        subject_reservation_id: Optional[int] = None,
    ) -> Optional[Conflict]:
        """
        A party larger than its table is a constraint violation even when
        nobody else is booked, e.g. after a staff override.
        """
        capacity = self.index.capacity_of(assignment)
        if capacity is None or guest_count <= capacity:
            return None
        return Conflict(
            type=ConflictType.CAPACITY_EXCEEDED,
            severity=ConflictSeverity.MEDIUM,
            affected=assignment,
            subject_reservation_id=subject_reservation_id,
            details={"guest_count": guest_count, "capacity": capacity},
        )

    def _peak_load(
        self, window: TimeWindow, others: List[Reservation]
    ) -> Tuple[int, List[Reservation]]:
        """Largest number of seated guests at any moment inside ``window``."""
        overlapping = [r for r in others if r.window.overlaps(window)]
        moments = {window.start} | {
            r.window.start for r in overlapping if window.contains(r.window.start)
        }
        best_seats, best_group = 0, []
        for moment in sorted(moments):
            group = [r for r in overlapping if r.window.contains(moment)]
            seats = sum(r.guest_count for r in group)
            if seats > best_seats or (seats == best_seats and len(group) > len(best_group)):
                best_seats, best_group = seats, group
        return best_seats, best_group

    def _rush_conflict(
        self,
        seats: int,
        group: List[Reservation],
        booking_count: int,
        subject_reservation_id: Optional[int],
        moment: datetime,
    ) -> Optional[Conflict]:
        total = self.index.total_seating_capacity
        over_seats = total > 0 and seats > self.rush_capacity_ratio * total
        over_count = (
            self.rush_max_concurrent_bookings is not None
            and booking_count > self.rush_max_concurrent_bookings
        )
        if not (over_seats or over_count):
            return None
        return Conflict(
            type=ConflictType.RUSH_OVERLAP,
            severity=ConflictSeverity.LOW,
            conflicting_reservation_ids=tuple(sorted(r.id for r in group)),
            subject_reservation_id=subject_reservation_id,
            details={
                "requested_seats": seats,
                "total_capacity": total,
                "utilization": round(seats / total, 3) if total else None,
                "threshold": self.rush_capacity_ratio,
                "concurrent_bookings": booking_count,
                "at": moment.strftime("%H:%M"),
            },
        )

    def check_rush(
        self,
        window: TimeWindow,
        guest_count: int,
        reservations: Iterable[Reservation],
        exclude_reservation_id: Optional[int] = None,
        subject_reservation_id: Optional[int] = None,
    ) -> Optional[Conflict]:
        """
        Restaurant-wide density: flag when the peak seated guests during the
        window, this party included, exceed the configured share of total
        seating (or the concurrent-booking cap).
        """
        others = self._active_on(
            window, reservations, (exclude_reservation_id, subject_reservation_id)
        )
        seats, group = self._peak_load(window, others)
        return self._rush_conflict(
            seats + guest_count,
            group,
            len(group) + 1,
            subject_reservation_id,
            window.start,
        )

    def detect(
        self,
        assignment: TableAssignment,
        window: TimeWindow,
        guest_count: int,
        reservations: Iterable[Reservation],
        exclude_reservation_id: Optional[int] = None,
        subject_reservation_id: Optional[int] = None,
        include_rush: bool = True,
    ) -> List[Conflict]:
        """All conflicts for placing a party at ``assignment`` during ``window``."""
        reservations = list(reservations)
        conflicts = []

        double_booking = self.find_double_booking(
            assignment, window, reservations, exclude_reservation_id, subject_reservation_id
        )
        if double_booking:
            conflicts.append(double_booking)

        capacity = self.check_capacity(assignment, guest_count, subject_reservation_id)
        if capacity:
            conflicts.append(capacity)

        if include_rush:
            rush = self.check_rush(
                window, guest_count, reservations, exclude_reservation_id, subject_reservation_id
            )
            if rush:
                conflicts.append(rush)

        return conflicts

    def scan_reservations(self, reservations: Iterable[Reservation]) -> List[Conflict]:
        """
        Audit existing reservations: double bookings between pairs,
        parties too large for their table (or for any table when
        unassigned), and rush periods.
        """
        active = sorted(
            (r for r in reservations if r.is_active),
            key=lambda r: (r.date, r.start_time, r.id or 0),
        )
        conflicts: List[Conflict] = []

        for i, first in enumerate(active):
            for second in active[i + 1:]:
                if second.date != first.date:
                    break
                if not self.index.shares_tables(first.assignment, second.assignment):
                    continue
                if first.window.with_buffer(self.turnaround_minutes).overlaps(
                    second.window.with_buffer(self.turnaround_minutes)
                ):
                    conflicts.append(
                        Conflict(
                            type=ConflictType.DOUBLE_BOOKING,
                            severity=double_booking_severity([first, second]),
                            affected=second.assignment,
                            conflicting_reservation_ids=(first.id,),
                            subject_reservation_id=second.id,
                            details={"turnaround_minutes": self.turnaround_minutes},
                        )
                    )

        largest = max(
            [self.index.largest_table_capacity]
            + [c.total_capacity for c in self.index.combined_tables.values() if c.is_active]
        )
        for reservation in active:
            if reservation.assignment is not None:
                capacity = self.check_capacity(
                    reservation.assignment, reservation.guest_count, reservation.id
                )
                if capacity:
                    conflicts.append(capacity)
            elif reservation.guest_count > largest:
                conflicts.append(
                    Conflict(
                        type=ConflictType.CAPACITY_EXCEEDED,
                        severity=ConflictSeverity.MEDIUM,
                        subject_reservation_id=reservation.id,
                        details={
                            "guest_count": reservation.guest_count,
                            "capacity": largest,
                            "reason": "no_suitable_table",
                        },
                    )
                )

        conflicts.extend(self._scan_rush(active))
        logger.debug(f"Scan of {len(active)} reservations found {len(conflicts)} conflicts")
        return conflicts

    def _scan_rush(self, active: List[Reservation]) -> List[Conflict]:
        seen = set()
        conflicts = []
        for reservation in active:
            moment = reservation.window.start
            group = [
                r for r in active if r.date == reservation.date and r.window.contains(moment)
            ]
            key = frozenset(r.id for r in group)
            if key in seen:
                continue
            seen.add(key)
            rush = self._rush_conflict(
                sum(r.guest_count for r in group), group, len(group), None, moment
            )
            if rush:
                conflicts.append(rush)
        return conflicts
