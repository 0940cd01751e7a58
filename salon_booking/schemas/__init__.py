from .common import PaginationParams, Page, PageResult, ErrorResponse
from .reservation import (
    ReservationCreate, ReservationUpdate, ReservationCancel, PaymentStatusUpdate,
    ReservationSearchCriteria, ReservationResponse, ReservationState, AvailableSlot,
    ConflictCheckResponse, CancellationFeeResponse, DailyCount,
)
from .review import (
    ReviewCreate, ReviewUpdate, ReviewModeration, ReviewSearchCriteria,
    ReviewResponse, ReviewState, ReviewSummary,
)

__all__ = [
    "PaginationParams", "Page", "PageResult", "ErrorResponse",
    "ReservationCreate", "ReservationUpdate", "ReservationCancel", "PaymentStatusUpdate",
    "ReservationSearchCriteria", "ReservationResponse", "ReservationState", "AvailableSlot",
    "ConflictCheckResponse", "CancellationFeeResponse", "DailyCount",
    "ReviewCreate", "ReviewUpdate", "ReviewModeration", "ReviewSearchCriteria",
    "ReviewResponse", "ReviewState", "ReviewSummary",
]
