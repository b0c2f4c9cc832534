# backend/modules/reservations/routes/dependencies.py

from datetime import datetime

from fastapi import Depends
from sqlalchemy.orm import Session

from core.database import get_db
from ..config import AvailabilityConfig, get_availability_config
from ..services import BookingService


def get_now() -> datetime:
    """Current restaurant-local time; overridden in tests"""
    return datetime.now()


def get_booking_service(
    db: Session = Depends(get_db),
    config: AvailabilityConfig = Depends(get_availability_config),
) -> BookingService:
    return BookingService(db, config)
