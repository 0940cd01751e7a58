import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from salon_booking.models.reservation import NO_OVERLAP_CONSTRAINT, Reservation
from salon_booking.utils.transaction import (
    PendingChanges,
    RetriesExhausted,
    is_retryable,
    run_in_transaction,
    violated_constraint,
)


class DriverError(Exception):
    def __init__(self, message, pgcode=None):
        super().__init__(message)
        self.pgcode = pgcode


class Diag:
    def __init__(self, constraint_name):
        self.constraint_name = constraint_name


def serialization_failure():
    return OperationalError("UPDATE", {}, DriverError("could not serialize access", pgcode="40001"))


def test_retries_until_success(db):
    attempts = []

    def work():
        attempts.append(1)
        if len(attempts) < 3:
            raise serialization_failure()
        return "booked"

    assert run_in_transaction(db, work, max_retries=3) == "booked"
    assert len(attempts) == 3


def test_gives_up_after_max_retries(db):
    attempts = []

    def work():
        attempts.append(1)
        raise serialization_failure()

    with pytest.raises(RetriesExhausted) as exc_info:
        run_in_transaction(db, work, max_retries=2)
    assert exc_info.value.attempts == 2
    assert len(attempts) == 2


def test_other_driver_errors_are_not_retried(db):
    attempts = []

    def work():
        attempts.append(1)
        raise OperationalError("SELECT", {}, DriverError("server closed the connection", pgcode="08006"))

    with pytest.raises(OperationalError):
        run_in_transaction(db, work, max_retries=3)
    assert len(attempts) == 1


def test_domain_errors_pass_through(db):
    def work():
        raise ValueError("nope")

    with pytest.raises(ValueError):
        run_in_transaction(db, work)


def test_retryable_classification():
    assert is_retryable(serialization_failure())
    assert is_retryable(OperationalError("UPDATE", {}, DriverError("deadlock detected", pgcode="40P01")))
    assert is_retryable(OperationalError("UPDATE", {}, DriverError("ERROR: deadlock detected")))
    assert not is_retryable(OperationalError("UPDATE", {}, DriverError("disk full", pgcode="53100")))


def test_violated_constraint_prefers_driver_diagnostics():
    orig = DriverError("conflicting key value violates exclusion constraint")
    orig.diag = Diag(NO_OVERLAP_CONSTRAINT)

    assert violated_constraint(IntegrityError("INSERT", {}, orig)) == NO_OVERLAP_CONSTRAINT


def test_violated_constraint_falls_back_to_message():
    error = IntegrityError("INSERT", {}, DriverError("UNIQUE constraint failed: reviews.reservation_id"))

    assert violated_constraint(error, ("uq_reviews_reservation_id", "reviews.reservation_id")) == (
        "reviews.reservation_id"
    )
    assert violated_constraint(error, ("something_else",)) == ""


def test_unflushed_changes_are_refused_not_committed(db, book):
    reservation = book(10, 11)
    reservation.notes = "never saved"

    with pytest.raises(PendingChanges):
        run_in_transaction(db, lambda: "booked")

    db.rollback()
    assert db.get(Reservation, reservation.id).notes is None


def test_open_read_transaction_is_closed_before_work(db, book):
    book(10, 11)
    assert db.query(Reservation).count() == 1
    assert db.in_transaction()

    assert run_in_transaction(db, lambda: "booked") == "booked"
