import pytest

from salon_booking.core.errors import (
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
from salon_booking.models.review import Review, ReviewStatus
from salon_booking.schemas.review import ReviewCreate, ReviewResponse, ReviewSearchCriteria, ReviewUpdate
from salon_booking.services import ReviewService


def review_for(reservation, rating=5, **extra):
    return ReviewCreate(reservation_id=reservation.id, rating=rating, **extra)


def test_review_copies_ids_from_reservation(completed_reservation, reviews, clock):
    reservation = completed_reservation(staff_id=4, salon_id=2, customer_id=55)

    review = reviews.create(review_for(reservation, comment="Lovely cut"), actor="customer-55")

    assert review.salon_id == 2
    assert review.customer_id == 55
    assert review.staff_id == 4
    assert review.status == ReviewStatus.PUBLISHED
    assert review.published_at == clock.now
    assert review.helpful_count == 0
    assert review.is_verified is False


def test_missing_reservation(reviews):
    with pytest.raises(ReservationNotFound):
        reviews.create(ReviewCreate(reservation_id=999, rating=4))


def test_only_completed_reservations_can_be_reviewed(book, reviews):
    reservation = book(10, 11)

    with pytest.raises(ReservationNotCompleted) as exc_info:
        reviews.create(review_for(reservation))
    assert isinstance(exc_info.value, InvalidStatus)


def test_completion_requirement_can_be_disabled(db, book, clock, test_settings):
    relaxed = test_settings.model_copy(update={"REVIEW_REQUIRE_COMPLETED_RESERVATION": False})
    service = ReviewService(db, clock=clock, config=relaxed)

    review = service.create(review_for(book(10, 11)))

    assert review.id is not None


@pytest.mark.parametrize(
    "payload",
    [
        {"rating": 0},
        {"rating": 6},
        {"rating": 5, "service_rating": 0},
        {"rating": 5, "atmosphere_rating": 7},
    ],
)
def test_out_of_range_ratings(completed_reservation, reviews, payload):
    reservation = completed_reservation()

    with pytest.raises(InvalidRating):
        reviews.create(ReviewCreate(reservation_id=reservation.id, **payload))


def test_one_review_per_reservation(db, completed_reservation, reviews):
    reservation = completed_reservation()
    reviews.create(review_for(reservation))

    with pytest.raises(DuplicateReview):
        reviews.create(review_for(reservation, rating=1))

    assert db.query(Review).count() == 1


def test_concurrent_duplicate_hits_unique_constraint(db, completed_reservation, reviews, monkeypatch):
    reservation = completed_reservation()
    reviews.create(review_for(reservation))

    # Simulates a second writer that passed the pre-check before the first committed
    monkeypatch.setattr(reviews, "_existing_review_id", lambda reservation_id: None)

    with pytest.raises(DuplicateReview):
        reviews.create(review_for(reservation, rating=2))

    assert db.query(Review).count() == 1


def test_edit_window(completed_reservation, reviews, clock):
    review = reviews.create(review_for(completed_reservation(), rating=3))

    clock.advance(hours=23, minutes=59)
    updated = reviews.update(review.id, ReviewUpdate(rating=4, comment="Better on reflection"), actor="customer")
    assert updated.rating == 4
    assert updated.comment == "Better on reflection"
    assert updated.updated_by == "customer"

    clock.advance(minutes=2)
    with pytest.raises(ReviewUpdateExpired):
        reviews.update(review.id, ReviewUpdate(rating=5))


def test_update_only_touches_given_fields(completed_reservation, reviews):
    review = reviews.create(review_for(completed_reservation(), rating=4, staff_rating=5, comment="Great"))

    updated = reviews.update(review.id, ReviewUpdate(staff_rating=None))

    assert updated.rating == 4
    assert updated.comment == "Great"
    assert updated.staff_rating is None


def test_update_revalidates_ratings(completed_reservation, reviews):
    review = reviews.create(review_for(completed_reservation()))

    with pytest.raises(InvalidRating):
        reviews.update(review.id, ReviewUpdate(rating=9))


def test_hidden_and_deleted_reviews_are_not_editable(completed_reservation, reviews):
    hidden = reviews.create(review_for(completed_reservation()))
    deleted = reviews.create(review_for(completed_reservation()))
    reviews.hide(hidden.id, "offensive language", actor="moderator")
    reviews.delete(deleted.id, "requested by customer", actor="moderator")

    with pytest.raises(ReviewAlreadyHidden) as hidden_info:
        reviews.update(hidden.id, ReviewUpdate(rating=1))
    assert not isinstance(hidden_info.value, ReviewAlreadyDeleted)

    with pytest.raises(ReviewAlreadyDeleted) as deleted_info:
        reviews.update(deleted.id, ReviewUpdate(rating=1))
    assert isinstance(deleted_info.value, ReviewAlreadyHidden)


def test_hide_and_delete_are_terminal(completed_reservation, reviews):
    review = reviews.create(review_for(completed_reservation()))

    hidden = reviews.hide(review.id, "spam", actor="moderator")
    assert hidden.status == ReviewStatus.HIDDEN
    assert hidden.hidden_reason == "spam"
    assert hidden.hidden_by == "moderator"

    with pytest.raises(ReviewAlreadyHidden):
        reviews.hide(review.id, "spam again")
    with pytest.raises(ReviewAlreadyHidden):
        reviews.delete(review.id, "cleanup")
    with pytest.raises(ReviewAlreadyHidden):
        reviews.publish(review.id)


def test_delete_is_soft(db, completed_reservation, reviews):
    review = reviews.create(review_for(completed_reservation()))

    deleted = reviews.delete(review.id, "duplicate account")

    assert deleted.status == ReviewStatus.DELETED
    assert deleted.deleted_reason == "duplicate account"
    assert db.query(Review).count() == 1
    with pytest.raises(ReviewAlreadyDeleted):
        reviews.delete(review.id, "again")
    with pytest.raises(ReviewAlreadyDeleted):
        reviews.hide(review.id, "too late")


def test_draft_reviews_publish_but_do_not_edit(db, completed_reservation, reviews, clock):
    review = reviews.create(review_for(completed_reservation()))
    review.status = ReviewStatus.DRAFT
    review.published_at = None
    db.commit()

    with pytest.raises(InvalidStatus):
        reviews.update(review.id, ReviewUpdate(rating=2))

    clock.advance(hours=1)
    published = reviews.publish(review.id, actor="customer")
    assert published.status == ReviewStatus.PUBLISHED
    assert published.published_at == clock.now

    clock.advance(hours=1)
    again = reviews.publish(review.id)
    assert again.published_at == published.published_at


def test_verify_ignores_edit_window_but_not_deletion(completed_reservation, reviews, clock):
    review = reviews.create(review_for(completed_reservation()))
    clock.advance(days=10)

    verified = reviews.verify(review.id, actor="manager")
    assert verified.is_verified is True
    assert verified.verified_by == "manager"

    hidden = reviews.create(review_for(completed_reservation()))
    reviews.hide(hidden.id, "under investigation")
    assert reviews.verify(hidden.id).is_verified is True

    deleted = reviews.create(review_for(completed_reservation()))
    reviews.delete(deleted.id, "spam")
    with pytest.raises(ReviewAlreadyDeleted):
        reviews.verify(deleted.id)


def test_helpful_count(completed_reservation, reviews):
    review = reviews.create(review_for(completed_reservation()))

    reviews.increment_helpful_count(review.id)
    updated = reviews.increment_helpful_count(review.id)

    assert updated.helpful_count == 2
    assert reviews.get(review.id).helpful_count == 2


def test_helpful_count_on_missing_review(reviews):
    with pytest.raises(NotFound):
        reviews.increment_helpful_count(404)


def test_salon_summary(completed_reservation, reviews):
    for rating in [5, 4, 3, 3, 5]:
        reviews.create(review_for(completed_reservation(salon_id=1), rating=rating, service_rating=4))
    hidden = reviews.create(review_for(completed_reservation(salon_id=1), rating=1))
    reviews.hide(hidden.id, "spam")
    reviews.create(review_for(completed_reservation(salon_id=2), rating=1))

    summary = reviews.get_salon_summary(1)

    assert summary.total_reviews == 5
    assert summary.average_rating == 4.0
    assert summary.rating_distribution == {1: 0, 2: 0, 3: 2, 4: 1, 5: 2}
    assert summary.average_service_rating == 4.0
    assert summary.average_staff_rating is None
    assert summary.average_atmosphere_rating is None


def test_staff_summary(completed_reservation, reviews):
    reviews.create(review_for(completed_reservation(staff_id=8), rating=2, staff_rating=3))
    reviews.create(review_for(completed_reservation(staff_id=8), rating=4, staff_rating=5))
    reviews.create(review_for(completed_reservation(staff_id=9), rating=5))

    summary = reviews.get_staff_summary(8)

    assert summary.total_reviews == 2
    assert summary.average_rating == 3.0
    assert summary.average_staff_rating == 4.0


def test_empty_summary_is_zeroed(reviews):
    summary = reviews.get_salon_summary(12345)

    assert summary.total_reviews == 0
    assert summary.average_rating == 0.0
    assert summary.rating_distribution == {1: 0, 2: 0, 3: 0, 4: 0, 5: 0}


def test_listing_queries(completed_reservation, reviews, clock):
    low = reviews.create(review_for(completed_reservation(customer_id=1), rating=2))
    clock.advance(minutes=5)
    high = reviews.create(review_for(completed_reservation(customer_id=1), rating=5))
    clock.advance(minutes=5)
    gone = reviews.create(review_for(completed_reservation(customer_id=2), rating=5))
    reviews.delete(gone.id, "spam")
    reviews.increment_helpful_count(high.id)

    assert [r.id for r in reviews.find_recent(1)] == [high.id, low.id]
    assert [r.id for r in reviews.find_top_rated(1)] == [high.id]
    assert reviews.find_by_customer(1).total == 2
    assert reviews.find_by_salon(1).total == 3

    page = reviews.search(ReviewSearchCriteria(salon_id=1, min_rating=3, status=ReviewStatus.PUBLISHED))
    assert [r.id for r in page.items] == [high.id]


def test_response_exposes_state_variant(completed_reservation, reviews):
    review = reviews.create(review_for(completed_reservation()))
    reviews.hide(review.id, "offensive", actor="moderator")

    response = ReviewResponse.from_model(reviews.get(review.id))

    assert response.state.status == "hidden"
    assert response.state.reason == "offensive"
    assert response.state.hidden_by == "moderator"
