from sqlalchemy import Column, Integer, String, Boolean, Text, Enum, JSON, ForeignKey, CheckConstraint, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
from salon_booking.database import Base, UTCDateTime

class ReviewStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    HIDDEN = "hidden"
    DELETED = "deleted"

REVIEW_RESERVATION_CONSTRAINT = "uq_reviews_reservation_id"
# How the violation reads on drivers that do not report constraint names
REVIEW_RESERVATION_MARKERS = (REVIEW_RESERVATION_CONSTRAINT, "reviews.reservation_id")

SUB_RATING_FIELDS = ("service_rating", "staff_rating", "atmosphere_rating")

class Review(Base):
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, index=True)
    salon_id = Column(Integer, nullable=False, index=True)
    customer_id = Column(Integer, nullable=False, index=True)
    reservation_id = Column(Integer, ForeignKey("reservations.id"), nullable=False)
    staff_id = Column(Integer, index=True)
    rating = Column(Integer, nullable=False)
    service_rating = Column(Integer)
    staff_rating = Column(Integer)
    atmosphere_rating = Column(Integer)
    comment = Column(Text)
    images = Column(JSON, nullable=False, default=list)
    is_verified = Column(Boolean, nullable=False, default=False)
    helpful_count = Column(Integer, nullable=False, default=0)
    status = Column(
        Enum(ReviewStatus, name="review_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=ReviewStatus.PUBLISHED,
    )

    published_at = Column(UTCDateTime)
    verified_at = Column(UTCDateTime)
    verified_by = Column(String(255))
    hidden_at = Column(UTCDateTime)
    hidden_by = Column(String(255))
    hidden_reason = Column(Text)
    deleted_at = Column(UTCDateTime)
    deleted_by = Column(String(255))
    deleted_reason = Column(Text)

    created_at = Column(UTCDateTime, nullable=False, server_default=func.now())
    created_by = Column(String(255))
    updated_at = Column(UTCDateTime, nullable=False, server_default=func.now())
    updated_by = Column(String(255))

    reservation = relationship("Reservation")

    __table_args__ = (
        UniqueConstraint("reservation_id", name=REVIEW_RESERVATION_CONSTRAINT),
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_reviews_rating"),
        CheckConstraint("service_rating IS NULL OR service_rating BETWEEN 1 AND 5", name="ck_reviews_service_rating"),
        CheckConstraint("staff_rating IS NULL OR staff_rating BETWEEN 1 AND 5", name="ck_reviews_staff_rating"),
        CheckConstraint(
            "atmosphere_rating IS NULL OR atmosphere_rating BETWEEN 1 AND 5", name="ck_reviews_atmosphere_rating"
        ),
        CheckConstraint("helpful_count >= 0", name="ck_reviews_helpful_count"),
    )

    def __repr__(self):
        return f"<Review {self.id} reservation={self.reservation_id} - {self.rating} stars ({self.status})>"
