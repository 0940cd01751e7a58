"""Reservation status transitions.

    pending ──confirm──> confirmed ──complete──> completed
       │                    │ └──mark_no_show──> no_show
       └──────cancel────────┴──────────────────> cancelled

Each guard raises the matching domain error and otherwise applies the
transition to the row in place. Persistence is the caller's job.
"""
from datetime import datetime
from typing import Dict, FrozenSet

from salon_booking.core.errors import (
    AlreadyCancelled,
    AlreadyConfirmed,
    InvalidStatus,
    NotConfirmed,
    NotModifiable,
    NotYetPassed,
)
from salon_booking.models.reservation import Reservation, ReservationStatus
from salon_booking.utils.time import to_utc

ALLOWED_TRANSITIONS: Dict[ReservationStatus, FrozenSet[ReservationStatus]] = {
    ReservationStatus.PENDING: frozenset({ReservationStatus.CONFIRMED, ReservationStatus.CANCELLED}),
    ReservationStatus.CONFIRMED: frozenset(
        {ReservationStatus.COMPLETED, ReservationStatus.NO_SHOW, ReservationStatus.CANCELLED}
    ),
    ReservationStatus.CANCELLED: frozenset(),
    ReservationStatus.COMPLETED: frozenset(),
    ReservationStatus.NO_SHOW: frozenset(),
}

TERMINAL_STATUSES = frozenset({ReservationStatus.CANCELLED, ReservationStatus.COMPLETED})


def can_transition(current: ReservationStatus, target: ReservationStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[ReservationStatus(current)]


def is_terminal(status: ReservationStatus) -> bool:
    return ReservationStatus(status) in TERMINAL_STATUSES


def _touch(reservation: Reservation, actor: str, now: datetime) -> None:
    reservation.updated_at = now
    reservation.updated_by = actor


def ensure_modifiable(reservation: Reservation) -> None:
    status = ReservationStatus(reservation.status)
    if status is ReservationStatus.CANCELLED:
        raise NotModifiable("Cancelled reservations cannot be modified")
    if status is ReservationStatus.COMPLETED:
        raise NotModifiable("Completed reservations cannot be modified")


def confirm(reservation: Reservation, actor: str, now: datetime) -> Reservation:
    status = ReservationStatus(reservation.status)
    if status is ReservationStatus.CONFIRMED:
        raise AlreadyConfirmed()
    if status is not ReservationStatus.PENDING:
        raise InvalidStatus("Only pending reservations can be confirmed")

    reservation.status = ReservationStatus.CONFIRMED
    reservation.confirmed_at = now
    reservation.confirmed_by = actor
    _touch(reservation, actor, now)
    return reservation


def cancel(reservation: Reservation, reason: str, actor: str, now: datetime) -> Reservation:
    status = ReservationStatus(reservation.status)
    if status is ReservationStatus.CANCELLED:
        raise AlreadyCancelled()
    if not can_transition(status, ReservationStatus.CANCELLED):
        raise InvalidStatus("Only pending or confirmed reservations can be cancelled")

    reservation.status = ReservationStatus.CANCELLED
    reservation.cancelled_at = now
    reservation.cancelled_by = actor
    reservation.cancellation_reason = reason
    _touch(reservation, actor, now)
    return reservation


def complete(reservation: Reservation, actor: str, now: datetime) -> Reservation:
    if ReservationStatus(reservation.status) is not ReservationStatus.CONFIRMED:
        raise NotConfirmed("Only confirmed reservations can be completed")

    reservation.status = ReservationStatus.COMPLETED
    reservation.completed_at = now
    reservation.completed_by = actor
    _touch(reservation, actor, now)
    return reservation


def mark_no_show(reservation: Reservation, actor: str, now: datetime) -> Reservation:
    if ReservationStatus(reservation.status) is not ReservationStatus.CONFIRMED:
        raise NotConfirmed("Only confirmed reservations can be marked as no-show")
    if not to_utc(reservation.start_time) < to_utc(now):
        raise NotYetPassed()

    reservation.status = ReservationStatus.NO_SHOW
    reservation.no_show_at = now
    reservation.no_show_by = actor
    _touch(reservation, actor, now)
    return reservation
