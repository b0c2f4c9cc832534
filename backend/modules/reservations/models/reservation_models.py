# backend/modules/reservations/models/reservation_models.py

"""
Persistent reservation models: tables, combined tables, bookings and the
per-restaurant opening hours and booking settings.
"""

from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Date, Time, Text,
    Enum, Boolean, JSON, UniqueConstraint, Index, CheckConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from core.database import Base

from ..enums import ReservationStatus


class TableConfiguration(Base):
    """A physical table that can be booked"""
    __tablename__ = "table_configurations"

    id = Column(Integer, primary_key=True)
    restaurant_id = Column(Integer, nullable=False, index=True)
    table_number = Column(String(20), nullable=False)
    capacity = Column(Integer, nullable=False)
    room_id = Column(Integer)  # floor / room grouping, optional

    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint('restaurant_id', 'table_number', name='uq_table_restaurant_number'),
        CheckConstraint('capacity > 0', name='ck_table_capacity_positive'),
    )

    def __repr__(self):
        return f"<TableConfiguration {self.table_number} seats {self.capacity}>"


class CombinedTableConfiguration(Base):
    """Two or more physical tables booked together as one unit"""
    __tablename__ = "combined_table_configurations"

    id = Column(Integer, primary_key=True)
    restaurant_id = Column(Integer, nullable=False, index=True)
    name = Column(String(50), nullable=False)
    table_ids = Column(JSON, nullable=False, default=list)  # member table ids
    total_capacity = Column(Integer, nullable=False)

    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<CombinedTableConfiguration {self.name} {self.table_ids}>"


class Booking(Base):
    """A reservation as stored; never deleted, only moved through statuses"""
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    restaurant_id = Column(Integer, nullable=False, index=True)

    # Table assignment, at most one of the two
    table_id = Column(Integer, ForeignKey("table_configurations.id"))
    combined_table_id = Column(Integer, ForeignKey("combined_table_configurations.id"))

    # Reservation details
    booking_date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    guest_count = Column(Integer, nullable=False)

    status = Column(
        Enum(ReservationStatus, name="booking_status"),
        default=ReservationStatus.PENDING,
        nullable=False,
        index=True,
    )

    # Customer
    customer_name = Column(String(200))
    customer_email = Column(String(200))
    customer_phone = Column(String(50))
    notes = Column(Text)

    # Conflict handling
    capacity_override = Column(Boolean, default=False, nullable=False)
    flagged_for_review = Column(Boolean, default=False, nullable=False)
    applied_resolutions = Column(JSON, default=list)  # proposal ids already applied

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    cancelled_at = Column(DateTime(timezone=True))

    table = relationship("TableConfiguration")
    combined_table = relationship("CombinedTableConfiguration")

    __table_args__ = (
        Index('idx_booking_restaurant_date', 'restaurant_id', 'booking_date'),
        Index('idx_booking_status_date', 'status', 'booking_date'),
        CheckConstraint('guest_count > 0', name='ck_booking_guest_count_positive'),
        CheckConstraint(
            'table_id IS NULL OR combined_table_id IS NULL',
            name='ck_booking_single_assignment',
        ),
    )

    def __repr__(self):
        return f"<Booking {self.id} - {self.guest_count} guests on {self.booking_date} at {self.start_time}>"


class OperatingHours(Base):
    """Weekly opening hours; day_of_week 0 = Sunday"""
    __tablename__ = "operating_hours"

    id = Column(Integer, primary_key=True)
    restaurant_id = Column(Integer, nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)
    is_open = Column(Boolean, default=True, nullable=False)
    open_time = Column(Time)
    close_time = Column(Time)  # 00:00 means end of day

    __table_args__ = (
        UniqueConstraint('restaurant_id', 'day_of_week', name='uq_operating_hours_day'),
        CheckConstraint('day_of_week BETWEEN 0 AND 6', name='ck_operating_hours_day'),
    )


class SpecialDate(Base):
    """Date range overriding the weekly hours (holidays, private events)"""
    __tablename__ = "special_dates"

    id = Column(Integer, primary_key=True)
    restaurant_id = Column(Integer, nullable=False, index=True)
    start_date = Column(Date, nullable=False, index=True)
    end_date = Column(Date, nullable=False)
    name = Column(String(100))  # "Valentine's Day", "New Year's Eve"

    # Modified hours
    is_closed = Column(Boolean, default=False, nullable=False)
    open_time = Column(Time)
    close_time = Column(Time)

    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class ReservationSettings(Base):
    """Restaurant-wide booking policy"""
    __tablename__ = "reservation_settings"

    id = Column(Integer, primary_key=True)
    restaurant_id = Column(Integer, nullable=False, unique=True)

    # Party size
    min_guests = Column(Integer, default=1, nullable=False)
    max_guests = Column(Integer, default=20, nullable=False)

    # Durations
    default_duration_minutes = Column(Integer, default=120, nullable=False)
    turnaround_minutes = Column(Integer, default=0, nullable=False)  # cleanup between parties

    # Booking horizon
    min_advance_notice_hours = Column(Integer, default=0, nullable=False)
    max_advance_booking_days = Column(Integer, default=90, nullable=False)
    cut_off_hours = Column(JSON, default=lambda: [0] * 7)  # by day of week, 0 = Sunday
    allow_same_day_bookings = Column(Boolean, default=True, nullable=False)

    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
