import logging
from typing import Callable, Iterable, Optional, TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

T = TypeVar("T")

SERIALIZATION_FAILURE = "40001"
DEADLOCK_DETECTED = "40P01"
RETRYABLE_SQLSTATES = {SERIALIZATION_FAILURE, DEADLOCK_DETECTED}


class PendingChanges(RuntimeError):
    """The session held unflushed changes that a new unit of work would commit."""

    def __init__(self):
        super().__init__("Commit or roll back pending session changes before starting a unit of work")


class RetriesExhausted(Exception):
    """The unit of work kept losing serialization races."""

    def __init__(self, attempts: int, last_error: DBAPIError):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Transaction failed after {attempts} attempts: {last_error}")


def sqlstate(error: DBAPIError) -> Optional[str]:
    orig = getattr(error, "orig", None)
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def is_retryable(error: DBAPIError) -> bool:
    if sqlstate(error) in RETRYABLE_SQLSTATES:
        return True
    message = str(getattr(error, "orig", error)).lower()
    return "could not serialize access" in message or "deadlock detected" in message


def violated_constraint(error: IntegrityError, known: Iterable[str] = ()) -> str:
    """Name of the constraint behind an IntegrityError, or "" when unknown.

    psycopg exposes it through ``diag``; other drivers only put it in the
    message text, so the known names are searched there as a fallback.
    """
    orig = getattr(error, "orig", None)
    diag = getattr(orig, "diag", None)
    name = getattr(diag, "constraint_name", "") if diag is not None else ""
    if name:
        return name

    text = str(orig if orig is not None else error)
    for candidate in known:
        if candidate in text:
            return candidate
    return ""


def run_in_transaction(
    db: Session,
    work: Callable[[], T],
    max_retries: int = 3,
    isolation_level: Optional[str] = None,
) -> T:
    """Run ``work`` as one committed unit, retrying serialization failures.

    ``work`` must be safe to call again from scratch: every attempt starts
    with a fresh transaction and everything from a failed attempt is rolled
    back. Non-retryable errors are re-raised after the rollback. The session
    must not carry unflushed changes on entry, they raise ``PendingChanges``.
    """
    attempt = 0
    while True:
        attempt += 1
        if db.new or db.dirty or db.deleted:
            raise PendingChanges()
        # A read may have auto-begun a transaction; the isolation level can
        # only be chosen before the first statement of a new one.
        if db.in_transaction():
            db.commit()
        if isolation_level and db.get_bind().dialect.name == "postgresql":
            db.connection(execution_options={"isolation_level": isolation_level})

        try:
            result = work()
            db.commit()
            return result
        except DBAPIError as e:
            db.rollback()
            if not is_retryable(e):
                raise
            if attempt >= max_retries:
                logger.error(f"Giving up after {attempt} serialization failures: {e.orig}")
                raise RetriesExhausted(attempt, e) from e
            logger.warning(f"Serialization failure on attempt {attempt}/{max_retries}, retrying")
        except Exception:
            db.rollback()
            raise
