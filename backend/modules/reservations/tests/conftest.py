import pytest
from datetime import time
from types import SimpleNamespace
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from core.database import Base, get_db
from app.main import app
from ..models.reservation_models import (
    Booking,
    CombinedTableConfiguration,
    OperatingHours,
    ReservationSettings,
    TableConfiguration,
)
from ..enums import ReservationStatus
from ..routes.dependencies import get_now
from .helpers import DAY, NOW

RESTAURANT_ID = 1


@pytest.fixture(scope="function")
def engine(tmp_path):
    """File-backed SQLite so separate sessions see each other's commits."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'reservations.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session(session_factory):
    """Create a fresh database session for each test."""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def restaurant(db_session):
    """
    Restaurant 1: T1 seats 2, T2 and T3 seat 4, T4 seats 6, and T2+T3 can
    be combined for 8. Open 11:00-23:00 every day, 15 minute turnaround.
    """
    tables = [
        TableConfiguration(restaurant_id=RESTAURANT_ID, table_number=f"T{i}", capacity=capacity)
        for i, capacity in enumerate([2, 4, 4, 6], start=1)
    ]
    db_session.add_all(tables)
    db_session.flush()

    combined = CombinedTableConfiguration(
        restaurant_id=RESTAURANT_ID,
        name="T2+T3",
        table_ids=[tables[1].id, tables[2].id],
        total_capacity=8,
    )
    db_session.add(combined)

    db_session.add_all(
        OperatingHours(
            restaurant_id=RESTAURANT_ID,
            day_of_week=day,
            is_open=True,
            open_time=time(11, 0),
            close_time=time(23, 0),
        )
        for day in range(7)
    )
    db_session.add(
        ReservationSettings(
            restaurant_id=RESTAURANT_ID,
            max_guests=12,
            turnaround_minutes=15,
        )
    )
    db_session.commit()

    return SimpleNamespace(
        id=RESTAURANT_ID,
        tables={t.table_number: t.id for t in tables},
        combined_id=combined.id,
    )


@pytest.fixture
def add_booking(db_session, restaurant):
    """Insert a booking row directly, bypassing the availability checks."""

    def _add(start, end, table="T1", guests=2, status=ReservationStatus.CONFIRMED, day=DAY):
        booking = Booking(
            restaurant_id=restaurant.id,
            table_id=restaurant.tables[table] if table else None,
            booking_date=day,
            start_time=start,
            end_time=end,
            guest_count=guests,
            status=status,
            customer_name="Walk In",
        )
        db_session.add(booking)
        db_session.commit()
        db_session.refresh(booking)
        return booking

    return _add


@pytest.fixture(scope="function")
def client(db_session):
    """Create a test client with database and clock overrides."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_now] = lambda: NOW
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
