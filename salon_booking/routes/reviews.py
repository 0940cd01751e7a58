from fastapi import APIRouter, Depends, Query, status as http_status
from typing import List, Optional
from datetime import datetime

from salon_booking.core.dependencies import get_actor, get_review_service
from salon_booking.models.review import ReviewStatus
from salon_booking.schemas.common import Page, PaginationParams
from salon_booking.schemas.review import (
    ReviewCreate,
    ReviewModeration,
    ReviewResponse,
    ReviewSearchCriteria,
    ReviewSummary,
    ReviewUpdate,
)
from salon_booking.services import ReviewService

router = APIRouter()


def _page(result, pagination: PaginationParams) -> Page[ReviewResponse]:
    return Page[ReviewResponse](
        items=[ReviewResponse.from_model(r) for r in result.items],
        total=result.total,
        limit=pagination.limit,
        offset=pagination.offset,
    )


@router.post("/", response_model=ReviewResponse, status_code=http_status.HTTP_201_CREATED)
def create_review(
    review_data: ReviewCreate,
    actor: str = Depends(get_actor),
    service: ReviewService = Depends(get_review_service)
):
    """Review a completed reservation"""
    return ReviewResponse.from_model(service.create(review_data, actor))

@router.get("/", response_model=Page[ReviewResponse])
def search_reviews(
    salon_id: Optional[int] = Query(None),
    customer_id: Optional[int] = Query(None),
    staff_id: Optional[int] = Query(None),
    status: Optional[ReviewStatus] = Query(None),
    is_verified: Optional[bool] = Query(None),
    min_rating: Optional[int] = Query(None, ge=1, le=5),
    max_rating: Optional[int] = Query(None, ge=1, le=5),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    service: ReviewService = Depends(get_review_service)
):
    """Search reviews, newest first"""
    criteria = ReviewSearchCriteria(
        salon_id=salon_id,
        customer_id=customer_id,
        staff_id=staff_id,
        status=status,
        is_verified=is_verified,
        min_rating=min_rating,
        max_rating=max_rating,
        start_date=start_date,
        end_date=end_date,
    )
    pagination = PaginationParams(limit=limit, offset=offset)
    return _page(service.search(criteria, pagination), pagination)

@router.get("/salons/{salon_id}/summary", response_model=ReviewSummary)
def get_salon_summary(salon_id: int, service: ReviewService = Depends(get_review_service)):
    return service.get_salon_summary(salon_id)

@router.get("/salons/{salon_id}/recent", response_model=List[ReviewResponse])
def get_recent_reviews(
    salon_id: int,
    limit: int = Query(10, ge=1, le=50),
    service: ReviewService = Depends(get_review_service)
):
    return [ReviewResponse.from_model(r) for r in service.find_recent(salon_id, limit)]

@router.get("/salons/{salon_id}/top-rated", response_model=List[ReviewResponse])
def get_top_rated_reviews(
    salon_id: int,
    limit: int = Query(10, ge=1, le=50),
    min_rating: int = Query(4, ge=1, le=5),
    service: ReviewService = Depends(get_review_service)
):
    return [ReviewResponse.from_model(r) for r in service.find_top_rated(salon_id, limit, min_rating)]

@router.get("/staff/{staff_id}/summary", response_model=ReviewSummary)
def get_staff_summary(staff_id: int, service: ReviewService = Depends(get_review_service)):
    return service.get_staff_summary(staff_id)

@router.get("/{review_id}", response_model=ReviewResponse)
def get_review(review_id: int, service: ReviewService = Depends(get_review_service)):
    return ReviewResponse.from_model(service.get(review_id))

@router.patch("/{review_id}", response_model=ReviewResponse)
def update_review(
    review_id: int,
    review_data: ReviewUpdate,
    actor: str = Depends(get_actor),
    service: ReviewService = Depends(get_review_service)
):
    """Edit a published review while the edit window is open"""
    return ReviewResponse.from_model(service.update(review_id, review_data, actor))

@router.post("/{review_id}/publish", response_model=ReviewResponse)
def publish_review(
    review_id: int,
    actor: str = Depends(get_actor),
    service: ReviewService = Depends(get_review_service)
):
    return ReviewResponse.from_model(service.publish(review_id, actor))

@router.post("/{review_id}/hide", response_model=ReviewResponse)
def hide_review(
    review_id: int,
    moderation: ReviewModeration,
    actor: str = Depends(get_actor),
    service: ReviewService = Depends(get_review_service)
):
    """Hide a review from public listings (moderation)"""
    return ReviewResponse.from_model(service.hide(review_id, moderation.reason, actor))

@router.delete("/{review_id}", response_model=ReviewResponse)
def delete_review(
    review_id: int,
    moderation: ReviewModeration,
    actor: str = Depends(get_actor),
    service: ReviewService = Depends(get_review_service)
):
    """Soft-delete a review"""
    return ReviewResponse.from_model(service.delete(review_id, moderation.reason, actor))

@router.post("/{review_id}/verify", response_model=ReviewResponse)
def verify_review(
    review_id: int,
    actor: str = Depends(get_actor),
    service: ReviewService = Depends(get_review_service)
):
    return ReviewResponse.from_model(service.verify(review_id, actor))

@router.post("/{review_id}/helpful", response_model=ReviewResponse)
def mark_review_helpful(review_id: int, service: ReviewService = Depends(get_review_service)):
    return ReviewResponse.from_model(service.increment_helpful_count(review_id))
