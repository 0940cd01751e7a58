"""Review lifecycle and rating aggregation.

A review belongs to exactly one reservation. It is created published, may
be edited by its author for a limited window, and ends either hidden by a
moderator or soft-deleted. Only published reviews count towards summaries.
"""
import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from salon_booking.core.config import Settings, settings as default_settings
from salon_booking.core.errors import (
    BookingError,
    DatabaseError,
    DuplicateReview,
    InvalidRating,
    InvalidStatus,
    NotFound,
    ReservationNotCompleted,
    ReservationNotFound,
    ReviewAlreadyDeleted,
    ReviewAlreadyHidden,
    ReviewUpdateExpired,
)
from salon_booking.models.reservation import Reservation, ReservationStatus
from salon_booking.models.review import Review, ReviewStatus, REVIEW_RESERVATION_MARKERS, SUB_RATING_FIELDS
from salon_booking.schemas.common import PageResult, PaginationParams
from salon_booking.schemas.review import ReviewCreate, ReviewSearchCriteria, ReviewSummary, ReviewUpdate
from salon_booking.utils.time import to_utc, utcnow
from salon_booking.utils.transaction import RetriesExhausted, run_in_transaction, violated_constraint

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


def validate_rating(value: Optional[int], field: str = "rating", required: bool = True) -> None:
    if value is None:
        if required:
            raise InvalidRating(f"{field} is required")
        return
    if isinstance(value, bool) or not MIN_RATING <= value <= MAX_RATING:
        raise InvalidRating(f"{field} must be between {MIN_RATING} and {MAX_RATING}, got {value}")


def _ensure_not_removed(review: Review) -> None:
    status = ReviewStatus(review.status)
    if status is ReviewStatus.DELETED:
        raise ReviewAlreadyDeleted()
    if status is ReviewStatus.HIDDEN:
        raise ReviewAlreadyHidden()


class ReviewService:
    def __init__(
        self,
        db: Session,
        clock: Callable[[], datetime] = utcnow,
        config: Settings = default_settings,
    ):
        self.db = db
        self.clock = clock
        self.config = config

    def _run(self, work: Callable[[], Review], operation: str) -> Review:
        try:
            return run_in_transaction(self.db, work, max_retries=self.config.TRANSACTION_MAX_RETRIES)
        except BookingError:
            raise
        except IntegrityError as e:
            if violated_constraint(e, REVIEW_RESERVATION_MARKERS) in REVIEW_RESERVATION_MARKERS:
                logger.warning(f"Concurrent review {operation} hit the one-review-per-reservation constraint")
                raise DuplicateReview() from e
            logger.error(f"Integrity error during review {operation}: {str(e.orig)}")
            raise DatabaseError(f"Could not {operation} review: {str(e.orig)}") from e
        except RetriesExhausted as e:
            logger.error(f"Review {operation} failed after {e.attempts} attempts")
            raise DatabaseError(f"Could not {operation} review: {str(e)}") from e
        except SQLAlchemyError as e:
            logger.error(f"Database error during review {operation}: {str(e)}")
            raise DatabaseError(f"Could not {operation} review: {str(e)}") from e

    def _locked(self, review_id: int) -> Review:
        review = (
            self.db.query(Review)
            .filter(Review.id == review_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if review is None:
            raise NotFound("Review", review_id)
        return review

    def _existing_review_id(self, reservation_id: int) -> Optional[int]:
        row = self.db.query(Review.id).filter(Review.reservation_id == reservation_id).first()
        return row[0] if row else None

    def _touch(self, review: Review, actor: str, now: datetime) -> None:
        review.updated_at = now
        review.updated_by = actor

    # Lifecycle

    def create(self, data: ReviewCreate, actor: str = "system") -> Review:
        validate_rating(data.rating)
        for field in SUB_RATING_FIELDS:
            validate_rating(getattr(data, field), field, required=False)

        try:
            reservation = self.db.get(Reservation, data.reservation_id)
        except SQLAlchemyError as e:
            logger.error(f"Error loading reservation {data.reservation_id}: {str(e)}")
            raise DatabaseError(f"Error loading reservation: {str(e)}") from e
        if reservation is None:
            raise ReservationNotFound(f"Reservation {data.reservation_id} not found")
        if (
            self.config.REVIEW_REQUIRE_COMPLETED_RESERVATION
            and ReservationStatus(reservation.status) is not ReservationStatus.COMPLETED
        ):
            raise ReservationNotCompleted()

        def work():
            if self._existing_review_id(reservation.id) is not None:
                raise DuplicateReview()

            now = self.clock()
            review = Review(
                salon_id=reservation.salon_id,
                customer_id=reservation.customer_id,
                reservation_id=reservation.id,
                staff_id=reservation.staff_id,
                rating=data.rating,
                service_rating=data.service_rating,
                staff_rating=data.staff_rating,
                atmosphere_rating=data.atmosphere_rating,
                comment=data.comment,
                images=list(data.images),
                is_verified=False,
                helpful_count=0,
                status=ReviewStatus.PUBLISHED,
                published_at=now,
                created_at=now,
                created_by=actor,
                updated_at=now,
                updated_by=actor,
            )
            self.db.add(review)
            self.db.flush()
            return review

        review = self._run(work, "create")
        logger.info(f"Review {review.id} created for reservation {review.reservation_id} by {actor}")
        return review

    def update(self, review_id: int, data: ReviewUpdate, actor: str = "system") -> Review:
        changes = data.model_fields_set
        if "rating" in changes:
            validate_rating(data.rating)
        for field in SUB_RATING_FIELDS:
            if field in changes:
                validate_rating(getattr(data, field), field, required=False)

        def work():
            review = self._locked(review_id)
            _ensure_not_removed(review)
            if ReviewStatus(review.status) is not ReviewStatus.PUBLISHED:
                raise InvalidStatus("Only published reviews can be edited")

            now = self.clock()
            window = timedelta(hours=self.config.REVIEW_EDIT_WINDOW_HOURS)
            if to_utc(now) - to_utc(review.created_at) > window:
                raise ReviewUpdateExpired(
                    f"Reviews can only be edited within {self.config.REVIEW_EDIT_WINDOW_HOURS} hours of creation"
                )

            for field in ("rating", "comment", *SUB_RATING_FIELDS):
                if field in changes:
                    setattr(review, field, getattr(data, field))
            if "images" in changes:
                review.images = list(data.images or [])
            self._touch(review, actor, now)
            self.db.flush()
            return review

        review = self._run(work, "update")
        logger.info(f"Review {review.id} updated by {actor}")
        return review

    def publish(self, review_id: int, actor: str = "system") -> Review:
        def work():
            review = self._locked(review_id)
            _ensure_not_removed(review)
            if ReviewStatus(review.status) is ReviewStatus.PUBLISHED:
                return review

            now = self.clock()
            review.status = ReviewStatus.PUBLISHED
            review.published_at = now
            self._touch(review, actor, now)
            self.db.flush()
            return review

        review = self._run(work, "publish")
        logger.info(f"Review {review.id} published")
        return review

    def hide(self, review_id: int, reason: str, actor: str = "system") -> Review:
        def work():
            review = self._locked(review_id)
            _ensure_not_removed(review)

            now = self.clock()
            review.status = ReviewStatus.HIDDEN
            review.hidden_at = now
            review.hidden_by = actor
            review.hidden_reason = reason
            self._touch(review, actor, now)
            self.db.flush()
            return review

        review = self._run(work, "hide")
        logger.info(f"Review {review.id} hidden by {actor}: {reason}")
        return review

    def delete(self, review_id: int, reason: str, actor: str = "system") -> Review:
        """Soft-deletes a review. The row stays for audit."""
        def work():
            review = self._locked(review_id)
            _ensure_not_removed(review)

            now = self.clock()
            review.status = ReviewStatus.DELETED
            review.deleted_at = now
            review.deleted_by = actor
            review.deleted_reason = reason
            self._touch(review, actor, now)
            self.db.flush()
            return review

        review = self._run(work, "delete")
        logger.info(f"Review {review.id} deleted by {actor}: {reason}")
        return review

    def verify(self, review_id: int, actor: str = "system") -> Review:
        def work():
            review = self._locked(review_id)
            if ReviewStatus(review.status) is ReviewStatus.DELETED:
                raise ReviewAlreadyDeleted()

            now = self.clock()
            review.is_verified = True
            review.verified_at = now
            review.verified_by = actor
            self._touch(review, actor, now)
            self.db.flush()
            return review

        review = self._run(work, "verify")
        logger.info(f"Review {review.id} verified by {actor}")
        return review

    def increment_helpful_count(self, review_id: int) -> Review:
        def work():
            updated = (
                self.db.query(Review)
                .filter(Review.id == review_id)
                .update(
                    {Review.helpful_count: Review.helpful_count + 1, Review.updated_at: self.clock()},
                    synchronize_session=False,
                )
            )
            if not updated:
                raise NotFound("Review", review_id)
            return self.db.get(Review, review_id, populate_existing=True)

        return self._run(work, "mark helpful")

    # Queries

    def get(self, review_id: int) -> Review:
        try:
            review = self.db.get(Review, review_id)
        except SQLAlchemyError as e:
            logger.error(f"Error loading review {review_id}: {str(e)}")
            raise DatabaseError(f"Error loading review: {str(e)}") from e
        if review is None:
            raise NotFound("Review", review_id)
        return review

    def search(self, criteria: ReviewSearchCriteria, pagination: Optional[PaginationParams] = None) -> PageResult:
        pagination = pagination or PaginationParams()
        query = self.db.query(Review)

        if criteria.salon_id is not None:
            query = query.filter(Review.salon_id == criteria.salon_id)
        if criteria.customer_id is not None:
            query = query.filter(Review.customer_id == criteria.customer_id)
        if criteria.staff_id is not None:
            query = query.filter(Review.staff_id == criteria.staff_id)
        if criteria.status is not None:
            query = query.filter(Review.status == criteria.status)
        if criteria.is_verified is not None:
            query = query.filter(Review.is_verified == criteria.is_verified)
        if criteria.min_rating is not None:
            query = query.filter(Review.rating >= criteria.min_rating)
        if criteria.max_rating is not None:
            query = query.filter(Review.rating <= criteria.max_rating)
        if criteria.start_date is not None:
            query = query.filter(Review.created_at >= criteria.start_date)
        if criteria.end_date is not None:
            query = query.filter(Review.created_at <= criteria.end_date)

        try:
            total = query.count()
            items = (
                query.order_by(Review.created_at.desc(), Review.id.desc())
                .offset(pagination.offset)
                .limit(pagination.limit)
                .all()
            )
        except SQLAlchemyError as e:
            logger.error(f"Error searching reviews: {str(e)}")
            raise DatabaseError(f"Error searching reviews: {str(e)}") from e

        return PageResult(items=items, total=total)

    def find_by_salon(self, salon_id: int, pagination: Optional[PaginationParams] = None) -> PageResult:
        return self.search(ReviewSearchCriteria(salon_id=salon_id), pagination)

    def find_by_staff(self, staff_id: int, pagination: Optional[PaginationParams] = None) -> PageResult:
        return self.search(ReviewSearchCriteria(staff_id=staff_id), pagination)

    def find_by_customer(self, customer_id: int, pagination: Optional[PaginationParams] = None) -> PageResult:
        return self.search(ReviewSearchCriteria(customer_id=customer_id), pagination)

    def find_recent(self, salon_id: int, limit: int = 10) -> List[Review]:
        try:
            return (
                self.db.query(Review)
                .filter(Review.salon_id == salon_id, Review.status == ReviewStatus.PUBLISHED)
                .order_by(Review.created_at.desc(), Review.id.desc())
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as e:
            logger.error(f"Error loading recent reviews for salon {salon_id}: {str(e)}")
            raise DatabaseError(f"Error loading recent reviews: {str(e)}") from e

    def find_top_rated(self, salon_id: int, limit: int = 10, min_rating: int = 4) -> List[Review]:
        try:
            return (
                self.db.query(Review)
                .filter(
                    Review.salon_id == salon_id,
                    Review.status == ReviewStatus.PUBLISHED,
                    Review.rating >= min_rating,
                )
                .order_by(Review.rating.desc(), Review.helpful_count.desc(), Review.created_at.desc())
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as e:
            logger.error(f"Error loading top rated reviews for salon {salon_id}: {str(e)}")
            raise DatabaseError(f"Error loading top rated reviews: {str(e)}") from e

    # Aggregation

    def get_salon_summary(self, salon_id: int) -> ReviewSummary:
        return self._summarize(Review.salon_id == salon_id, f"salon {salon_id}")

    def get_staff_summary(self, staff_id: int) -> ReviewSummary:
        return self._summarize(Review.staff_id == staff_id, f"staff {staff_id}")

    def _summarize(self, scope, label: str) -> ReviewSummary:
        published = (scope, Review.status == ReviewStatus.PUBLISHED)
        try:
            total, average, service_avg, staff_avg, atmosphere_avg = (
                self.db.query(
                    func.count(Review.id),
                    func.avg(Review.rating),
                    func.avg(Review.service_rating),
                    func.avg(Review.staff_rating),
                    func.avg(Review.atmosphere_rating),
                )
                .filter(*published)
                .one()
            )
            buckets = (
                self.db.query(Review.rating, func.count(Review.id))
                .filter(*published)
                .group_by(Review.rating)
                .all()
            )
        except SQLAlchemyError as e:
            logger.error(f"Error summarising reviews for {label}: {str(e)}")
            raise DatabaseError(f"Error summarising reviews: {str(e)}") from e

        distribution = {rating: 0 for rating in range(MIN_RATING, MAX_RATING + 1)}
        for rating, count in buckets:
            distribution[int(rating)] = int(count)

        def as_float(value):
            return float(value) if value is not None else None

        return ReviewSummary(
            total_reviews=int(total or 0),
            average_rating=as_float(average) or 0.0,
            average_service_rating=as_float(service_avg),
            average_staff_rating=as_float(staff_avg),
            average_atmosphere_rating=as_float(atmosphere_avg),
            rating_distribution=distribution,
        )
