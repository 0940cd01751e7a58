from datetime import datetime
from typing import Callable

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from salon_booking.core.config import settings
from salon_booking.database import get_db
from salon_booking.services import ReservationService, ReviewService
from salon_booking.utils.time import utcnow


def get_clock() -> Callable[[], datetime]:
    return utcnow


def get_actor(x_actor_id: str = Header("system", max_length=255)) -> str:
    """Caller identity as forwarded by the upstream gateway. Authentication happens there."""
    return x_actor_id.strip() or "system"


def get_reservation_service(
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> ReservationService:
    return ReservationService(db, clock=clock, config=settings)


def get_review_service(
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> ReviewService:
    return ReviewService(db, clock=clock, config=settings)
