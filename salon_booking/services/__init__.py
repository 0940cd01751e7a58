from .reservation_service import ReservationService
from .review_service import ReviewService

__all__ = [
    "ReservationService",
    "ReviewService",
]
