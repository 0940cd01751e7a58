"""Domain errors raised by the scheduling and review services.

Every expected business failure is one of the classes below. Storage
failures that are not a known constraint violation surface as
``DatabaseError`` with the original exception chained as ``__cause__``.
Routes translate ``code`` into an HTTP status; services never format
user-facing responses themselves.
"""
from typing import Optional, Union


class BookingError(Exception):
    code = "BOOKING_ERROR"
    default_message = "Booking operation failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFound(BookingError):
    code = "NOT_FOUND"

    def __init__(self, entity: str, id: Union[int, str]):
        self.entity = entity
        self.id = id
        super().__init__(f"{entity} not found with id {id}")


class DatabaseError(BookingError):
    code = "DATABASE_ERROR"
    default_message = "Unknown database error"


# Reservation errors

class InvalidTimeRange(BookingError):
    code = "INVALID_TIME_RANGE"
    default_message = "End time must be after start time"


class SlotNotAvailable(BookingError):
    code = "SLOT_NOT_AVAILABLE"
    default_message = "The time slot is already booked"


class InvalidStatus(BookingError):
    code = "INVALID_STATUS"
    default_message = "Operation is not allowed in the current status"


class AlreadyConfirmed(InvalidStatus):
    code = "RESERVATION_ALREADY_CONFIRMED"
    default_message = "Reservation is already confirmed"


class AlreadyCancelled(InvalidStatus):
    code = "RESERVATION_ALREADY_CANCELLED"
    default_message = "Reservation is already cancelled"


class NotConfirmed(InvalidStatus):
    code = "RESERVATION_NOT_CONFIRMED"
    default_message = "Reservation is not confirmed"


class NotYetPassed(InvalidStatus):
    code = "RESERVATION_NOT_YET_PASSED"
    default_message = "Cannot mark future reservations as no-show"


class NotModifiable(InvalidStatus):
    code = "RESERVATION_NOT_MODIFIABLE"
    default_message = "Reservation can no longer be modified"


# Review errors

class InvalidRating(BookingError):
    code = "INVALID_RATING"
    default_message = "Rating must be between 1 and 5"


class ReservationNotFound(BookingError):
    code = "RESERVATION_NOT_FOUND"
    default_message = "Reservation not found"


class ReservationNotCompleted(InvalidStatus):
    code = "RESERVATION_NOT_COMPLETED"
    default_message = "Only completed reservations can be reviewed"


class DuplicateReview(BookingError):
    code = "DUPLICATE_REVIEW"
    default_message = "A review already exists for this reservation"


class ReviewUpdateExpired(BookingError):
    code = "REVIEW_UPDATE_EXPIRED"
    default_message = "Review can no longer be edited"


class ReviewAlreadyHidden(InvalidStatus):
    code = "REVIEW_ALREADY_HIDDEN"
    default_message = "Review is already hidden"


class ReviewAlreadyDeleted(ReviewAlreadyHidden):
    code = "REVIEW_ALREADY_DELETED"
    default_message = "Review has been deleted"
