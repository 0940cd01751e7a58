from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import salon_booking.models  # noqa: F401
from salon_booking.core.config import Settings
from salon_booking.core.dependencies import get_clock
from salon_booking.database import Base, get_db
from salon_booking.main import app
from salon_booking.schemas.reservation import ReservationCreate
from salon_booking.services import ReservationService, ReviewService

from helpers import Clock, at


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture
def clock():
    return Clock(at(8))


@pytest.fixture
def test_settings():
    return Settings(
        TRANSACTION_MAX_RETRIES=3,
        RESERVATION_ISOLATION_LEVEL="SERIALIZABLE",
        REVIEW_EDIT_WINDOW_HOURS=24,
        REVIEW_REQUIRE_COMPLETED_RESERVATION=True,
        SALON_OPENING_HOUR=9,
        SALON_CLOSING_HOUR=18,
        SALON_TIMEZONE="UTC",
    )


@pytest.fixture
def reservations(db, clock, test_settings):
    return ReservationService(db, clock=clock, config=test_settings)


@pytest.fixture
def reviews(db, clock, test_settings):
    return ReviewService(db, clock=clock, config=test_settings)


@pytest.fixture
def book(reservations):
    """Creates a pending reservation; times are hours on the test Monday."""

    def _book(start_hour, end_hour, staff_id=1, salon_id=1, customer_id=100, days=0, total_amount=10000):
        return reservations.create(
            ReservationCreate(
                salon_id=salon_id,
                customer_id=customer_id,
                staff_id=staff_id,
                service_id=7,
                start_time=at(0, days=days) + timedelta(hours=start_hour),
                end_time=at(0, days=days) + timedelta(hours=end_hour),
                total_amount=total_amount,
            ),
            actor="front-desk",
        )

    return _book


@pytest.fixture
def completed_reservation(book, reservations):
    """Books, confirms and completes a reservation so it can be reviewed."""
    counter = {"next": 0}

    def _completed(staff_id=1, salon_id=1, customer_id=100):
        counter["next"] += 1
        start = 8 + counter["next"]
        reservation = book(start, start + 1, staff_id=staff_id, salon_id=salon_id, customer_id=customer_id)
        reservations.confirm(reservation.id, actor="front-desk")
        return reservations.complete(reservation.id, actor="stylist")

    return _completed


@pytest.fixture
def client(db, clock):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
