"""Staff double-booking detection.

Intervals are half-open: a booking ending at 11:00 and one starting at
11:00 do not conflict.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from salon_booking.core.errors import DatabaseError
from salon_booking.models.reservation import Reservation, ACTIVE_STATUSES

logger = logging.getLogger(__name__)


def intervals_overlap(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    return start_a < end_b and start_b < end_a


def count_conflicts(
    db: Session,
    staff_id: int,
    start_time: datetime,
    end_time: datetime,
    exclude_reservation_id: Optional[int] = None,
) -> int:
    """Number of active bookings of ``staff_id`` overlapping the interval.

    Raises the driver error untouched so a surrounding transaction can tell
    serialization failures apart from other faults.
    """
    query = db.query(func.count(Reservation.id)).filter(
        Reservation.staff_id == staff_id,
        Reservation.status.in_(ACTIVE_STATUSES),
        Reservation.start_time < end_time,
        Reservation.end_time > start_time,
    )
    if exclude_reservation_id is not None:
        query = query.filter(Reservation.id != exclude_reservation_id)
    return int(query.scalar() or 0)


def has_conflict(
    db: Session,
    staff_id: int,
    start_time: datetime,
    end_time: datetime,
    exclude_reservation_id: Optional[int] = None,
) -> bool:
    """True if ``[start_time, end_time)`` overlaps an active booking of ``staff_id``."""
    try:
        count = count_conflicts(db, staff_id, start_time, end_time, exclude_reservation_id)
    except SQLAlchemyError as e:
        logger.error(f"Conflict check failed for staff {staff_id}: {str(e)}")
        raise DatabaseError(f"Conflict check failed: {str(e)}") from e

    return count > 0
