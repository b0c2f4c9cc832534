# backend/modules/reservations/services/reservation_store.py

"""
Read side of the persistence layer: loads rows and converts them into the
engine's immutable value types.
"""

from sqlalchemy.orm import Session
from collections import defaultdict
from datetime import date, timedelta
from typing import Dict, List, Optional
import logging

from ..enums import ACTIVE_STATUSES
from ..models.reservation_models import (
    Booking,
    CombinedTableConfiguration,
    OperatingHours as OperatingHoursRow,
    ReservationSettings,
    SpecialDate,
    TableConfiguration,
)
from ..models.availability_types import (
    BookingPolicy,
    CombinedTable,
    OpeningHours,
    Reservation,
    RestaurantSnapshot,
    SpecialPeriod,
    Table,
)

logger = logging.getLogger(__name__)


def booking_to_reservation(booking: Booking) -> Reservation:
    return Reservation(
        id=booking.id,
        date=booking.booking_date,
        start_time=booking.start_time,
        end_time=booking.end_time,
        guest_count=booking.guest_count,
        status=booking.status,
        table_id=booking.table_id,
        combined_table_id=booking.combined_table_id,
        customer_name=booking.customer_name,
        customer_email=booking.customer_email,
        customer_phone=booking.customer_phone,
        capacity_override=bool(booking.capacity_override),
        flagged_for_review=bool(booking.flagged_for_review),
        applied_resolutions=frozenset(booking.applied_resolutions or ()),
    )


class ReservationStore:
    """Loads restaurant data for the availability engine"""

    def __init__(self, db: Session):
        self.db = db

    def list_reservations(
        self,
        restaurant_id: int,
        booking_date: date,
        active_only: bool = False,
    ) -> List[Reservation]:
        query = self.db.query(Booking).filter(
            Booking.restaurant_id == restaurant_id,
            Booking.booking_date == booking_date,
        )
        if active_only:
            query = query.filter(Booking.status.in_(ACTIVE_STATUSES))
        return [booking_to_reservation(b) for b in query.order_by(Booking.start_time, Booking.id)]

    def get_booking(self, restaurant_id: int, booking_id: int, lock: bool = False) -> Optional[Booking]:
        query = self.db.query(Booking).filter(
            Booking.id == booking_id,
            Booking.restaurant_id == restaurant_id,
        )
        if lock:
            query = query.with_for_update()
        return query.first()

    def list_tables(self, restaurant_id: int) -> List[Table]:
        rows = (
            self.db.query(TableConfiguration)
            .filter(TableConfiguration.restaurant_id == restaurant_id)
            .order_by(TableConfiguration.id)
            .all()
        )
        return [
            Table(
                id=row.id,
                number=row.table_number,
                capacity=row.capacity,
                room_id=row.room_id,
                is_active=bool(row.is_active),
            )
            for row in rows
        ]

    def list_combined_tables(self, restaurant_id: int) -> List[CombinedTable]:
        rows = (
            self.db.query(CombinedTableConfiguration)
            .filter(CombinedTableConfiguration.restaurant_id == restaurant_id)
            .order_by(CombinedTableConfiguration.id)
            .all()
        )
        return [
            CombinedTable(
                id=row.id,
                name=row.name,
                member_table_ids=frozenset(row.table_ids or ()),
                total_capacity=row.total_capacity,
                is_active=bool(row.is_active),
            )
            for row in rows
        ]

    def get_booking_policy(self, restaurant_id: int) -> BookingPolicy:
        settings = self.db.query(ReservationSettings).filter_by(restaurant_id=restaurant_id).first()
        if not settings:
            logger.warning(f"No reservation settings for restaurant {restaurant_id}, using defaults")
            return BookingPolicy()

        return BookingPolicy(
            min_guests=settings.min_guests,
            max_guests=settings.max_guests,
            default_duration_minutes=settings.default_duration_minutes,
            turnaround_minutes=settings.turnaround_minutes,
            min_advance_notice_hours=settings.min_advance_notice_hours,
            max_advance_booking_days=settings.max_advance_booking_days,
            cut_off_hours_by_day_of_week=tuple(settings.cut_off_hours or [0] * 7),
            allow_same_day_bookings=settings.allow_same_day_bookings,
        )

    def get_opening_hours(self, restaurant_id: int) -> List[OpeningHours]:
        rows = self.db.query(OperatingHoursRow).filter_by(restaurant_id=restaurant_id).all()
        return [
            OpeningHours(
                day_of_week=row.day_of_week,
                is_open=bool(row.is_open),
                open_time=row.open_time,
                close_time=row.close_time,
            )
            for row in rows
        ]

    def get_special_periods(
        self, restaurant_id: int, covering: Optional[date] = None
    ) -> List[SpecialPeriod]:
        query = self.db.query(SpecialDate).filter(SpecialDate.restaurant_id == restaurant_id)
        if covering is not None:
            query = query.filter(
                SpecialDate.start_date <= covering,
                SpecialDate.end_date >= covering,
            )
        return [
            SpecialPeriod(
                start_date=row.start_date,
                end_date=row.end_date,
                is_closed=bool(row.is_closed),
                open_time=row.open_time,
                close_time=row.close_time,
                name=row.name,
                id=row.id,
                created_at=row.created_at,
            )
            for row in query.all()
        ]

    def load_snapshot(self, restaurant_id: int, booking_date: date) -> RestaurantSnapshot:
        """Everything needed to evaluate bookings for one restaurant on one date"""
        return RestaurantSnapshot(
            restaurant_id=restaurant_id,
            policy=self.get_booking_policy(restaurant_id),
            opening_hours=tuple(self.get_opening_hours(restaurant_id)),
            special_periods=tuple(self.get_special_periods(restaurant_id, covering=booking_date)),
            tables=tuple(self.list_tables(restaurant_id)),
            combined_tables=tuple(self.list_combined_tables(restaurant_id)),
            reservations=tuple(self.list_reservations(restaurant_id, booking_date)),
        )

    def load_snapshots(
        self, restaurant_id: int, first: date, last: date
    ) -> Dict[date, RestaurantSnapshot]:
        """One snapshot per date from ``first`` to ``last``, sharing the table and policy data"""
        policy = self.get_booking_policy(restaurant_id)
        opening_hours = tuple(self.get_opening_hours(restaurant_id))
        tables = tuple(self.list_tables(restaurant_id))
        combined_tables = tuple(self.list_combined_tables(restaurant_id))
        periods = [
            p
            for p in self.get_special_periods(restaurant_id)
            if p.start_date <= last and p.end_date >= first
        ]

        by_date = defaultdict(list)
        rows = (
            self.db.query(Booking)
            .filter(
                Booking.restaurant_id == restaurant_id,
                Booking.booking_date >= first,
                Booking.booking_date <= last,
            )
            .order_by(Booking.booking_date, Booking.start_time, Booking.id)
        )
        for row in rows:
            by_date[row.booking_date].append(booking_to_reservation(row))

        snapshots = {}
        for offset in range((last - first).days + 1):
            day = first + timedelta(days=offset)
            snapshots[day] = RestaurantSnapshot(
                restaurant_id=restaurant_id,
                policy=policy,
                opening_hours=opening_hours,
                special_periods=tuple(p for p in periods if p.covers(day)),
                tables=tables,
                combined_tables=combined_tables,
                reservations=tuple(by_date[day]),
            )
        return snapshots
