from .reservation import Reservation, ReservationStatus, ACTIVE_STATUSES, NO_OVERLAP_CONSTRAINT
from .review import Review, ReviewStatus, REVIEW_RESERVATION_CONSTRAINT, REVIEW_RESERVATION_MARKERS, SUB_RATING_FIELDS

from sqlalchemy.orm import configure_mappers
configure_mappers()

__all__ = [
    "Reservation", "ReservationStatus", "ACTIVE_STATUSES", "NO_OVERLAP_CONSTRAINT",
    "Review", "ReviewStatus", "REVIEW_RESERVATION_CONSTRAINT", "REVIEW_RESERVATION_MARKERS", "SUB_RATING_FIELDS",
]
