# backend/modules/reservations/tests/helpers.py

"""
Builders for engine value types shared by the reservation tests.
"""

from datetime import date, datetime, time
from typing import Iterable, Optional

from ..config import AvailabilityConfig
from ..enums import ReservationStatus
from ..models.availability_types import (
    BookingPolicy,
    CombinedTable,
    OpeningHours,
    Reservation,
    RestaurantSnapshot,
    SpecialPeriod,
    Table,
)

# A Friday; day_of_week() gives 5
DAY = date(2026, 6, 5)
NOW = datetime(2026, 6, 1, 9, 0)


def hours(open_time: time = time(11, 0), close_time: time = time(23, 0)):
    """Open every day of the week with the same hours"""
    return tuple(
        OpeningHours(day_of_week=d, is_open=True, open_time=open_time, close_time=close_time)
        for d in range(7)
    )


def tables(*capacities: int, room_id: Optional[int] = None):
    """Tables T1, T2, ... with ids 1, 2, ... and the given capacities"""
    return tuple(
        Table(id=i, number=f"T{i}", capacity=c, room_id=room_id)
        for i, c in enumerate(capacities, start=1)
    )


def combined(combo_id: int, members: Iterable[Table], name: Optional[str] = None) -> CombinedTable:
    members = list(members)
    return CombinedTable(
        id=combo_id,
        name=name or "+".join(t.number for t in members),
        member_table_ids=frozenset(t.id for t in members),
        total_capacity=sum(t.capacity for t in members),
    )


def booking(
    reservation_id: int,
    start: time,
    end: time,
    table_id: Optional[int] = None,
    combined_table_id: Optional[int] = None,
    guests: int = 2,
    status: ReservationStatus = ReservationStatus.CONFIRMED,
    day: date = DAY,
) -> Reservation:
    return Reservation(
        id=reservation_id,
        date=day,
        start_time=start,
        end_time=end,
        guest_count=guests,
        status=status,
        table_id=table_id,
        combined_table_id=combined_table_id,
    )


def snapshot(
    table_inventory=(),
    combined_tables=(),
    reservations=(),
    policy: Optional[BookingPolicy] = None,
    opening_hours=None,
    special_periods=(),
) -> RestaurantSnapshot:
    return RestaurantSnapshot(
        restaurant_id=1,
        policy=policy or BookingPolicy(),
        opening_hours=hours() if opening_hours is None else tuple(opening_hours),
        special_periods=tuple(special_periods),
        tables=tuple(table_inventory),
        combined_tables=tuple(combined_tables),
        reservations=tuple(reservations),
    )


def config(**overrides) -> AvailabilityConfig:
    return AvailabilityConfig(**overrides)


def closed_on(day: date, created_at: Optional[datetime] = None, period_id: int = 1) -> SpecialPeriod:
    return SpecialPeriod(
        start_date=day, end_date=day, is_closed=True, id=period_id, created_at=created_at
    )
