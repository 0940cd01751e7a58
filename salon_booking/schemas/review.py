from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Annotated, Dict, List, Optional, Union, Literal
from datetime import datetime

from salon_booking.models.review import Review, ReviewStatus
from salon_booking.utils.time import to_utc

MAX_COMMENT_LENGTH = 1000

# Ratings are range-checked by the review service so that an out-of-range
# value is reported as INVALID_RATING rather than a generic validation error.

class ReviewCreate(BaseModel):
    reservation_id: int
    rating: int
    service_rating: Optional[int] = None
    staff_rating: Optional[int] = None
    atmosphere_rating: Optional[int] = None
    comment: Optional[str] = Field(None, max_length=MAX_COMMENT_LENGTH)
    images: List[str] = []

class ReviewUpdate(BaseModel):
    rating: Optional[int] = None
    service_rating: Optional[int] = None
    staff_rating: Optional[int] = None
    atmosphere_rating: Optional[int] = None
    comment: Optional[str] = Field(None, max_length=MAX_COMMENT_LENGTH)
    images: Optional[List[str]] = None

class ReviewModeration(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)

class ReviewSearchCriteria(BaseModel):
    salon_id: Optional[int] = None
    customer_id: Optional[int] = None
    staff_id: Optional[int] = None
    status: Optional[ReviewStatus] = None
    is_verified: Optional[bool] = None
    min_rating: Optional[int] = Field(None, ge=1, le=5)
    max_rating: Optional[int] = Field(None, ge=1, le=5)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def normalise_to_utc(cls, v: Optional[datetime]):
        return to_utc(v) if v is not None else v


class DraftState(BaseModel):
    status: Literal["draft"] = "draft"

class PublishedState(BaseModel):
    status: Literal["published"] = "published"
    published_at: datetime

class HiddenState(BaseModel):
    status: Literal["hidden"] = "hidden"
    hidden_at: datetime
    hidden_by: Optional[str] = None
    reason: str

class DeletedState(BaseModel):
    status: Literal["deleted"] = "deleted"
    deleted_at: datetime
    deleted_by: Optional[str] = None
    reason: str

ReviewState = Annotated[
    Union[DraftState, PublishedState, HiddenState, DeletedState],
    Field(discriminator="status"),
]


def describe_review_state(review: Review) -> ReviewState:
    status = ReviewStatus(review.status)
    if status is ReviewStatus.DRAFT:
        return DraftState()
    if status is ReviewStatus.PUBLISHED:
        return PublishedState(published_at=review.published_at or review.created_at)
    if status is ReviewStatus.HIDDEN:
        return HiddenState(
            hidden_at=review.hidden_at or review.updated_at,
            hidden_by=review.hidden_by,
            reason=review.hidden_reason or "",
        )
    if status is ReviewStatus.DELETED:
        return DeletedState(
            deleted_at=review.deleted_at or review.updated_at,
            deleted_by=review.deleted_by,
            reason=review.deleted_reason or "",
        )
    raise ValueError(f"Unhandled review status: {status}")


class ReviewResponse(BaseModel):
    id: int
    salon_id: int
    customer_id: int
    reservation_id: int
    staff_id: Optional[int] = None
    rating: int
    service_rating: Optional[int] = None
    staff_rating: Optional[int] = None
    atmosphere_rating: Optional[int] = None
    comment: Optional[str] = None
    images: List[str] = []
    is_verified: bool
    helpful_count: int
    state: ReviewState
    created_at: datetime
    created_by: Optional[str] = None
    updated_at: datetime
    updated_by: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_model(cls, review: Review) -> "ReviewResponse":
        return cls(
            id=review.id,
            salon_id=review.salon_id,
            customer_id=review.customer_id,
            reservation_id=review.reservation_id,
            staff_id=review.staff_id,
            rating=review.rating,
            service_rating=review.service_rating,
            staff_rating=review.staff_rating,
            atmosphere_rating=review.atmosphere_rating,
            comment=review.comment,
            images=list(review.images or []),
            is_verified=review.is_verified,
            helpful_count=review.helpful_count,
            state=describe_review_state(review),
            created_at=review.created_at,
            created_by=review.created_by,
            updated_at=review.updated_at,
            updated_by=review.updated_by,
        )

class ReviewSummary(BaseModel):
    total_reviews: int = 0
    average_rating: float = 0.0
    average_service_rating: Optional[float] = None
    average_staff_rating: Optional[float] = None
    average_atmosphere_rating: Optional[float] = None
    rating_distribution: Dict[int, int] = Field(default_factory=lambda: {r: 0 for r in range(1, 6)})
