import logging
from collections import Counter
from datetime import date, datetime, time, timedelta
from typing import Callable, Dict, List, Optional, Sequence

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from salon_booking.core.config import Settings, settings as default_settings
from salon_booking.core.errors import (
    BookingError,
    DatabaseError,
    InvalidTimeRange,
    NotFound,
    SlotNotAvailable,
)
from salon_booking.models.reservation import (
    Reservation,
    ReservationStatus,
    ACTIVE_STATUSES,
    NO_OVERLAP_CONSTRAINT,
)
from salon_booking.schemas.common import PageResult, PaginationParams
from salon_booking.schemas.reservation import (
    AvailableSlot,
    ReservationCreate,
    ReservationSearchCriteria,
    ReservationUpdate,
)
from salon_booking.services import reservation_state
from salon_booking.services.conflict_checker import count_conflicts, has_conflict, intervals_overlap
from salon_booking.utils.time import hours_between, to_utc, utcnow
from salon_booking.utils.transaction import RetriesExhausted, run_in_transaction, violated_constraint

logger = logging.getLogger(__name__)


# (hours before start, percent of total kept), checked in order
CANCELLATION_FEE_TIERS = ((48, 0), (24, 30), (12, 50))


def cancellation_fee(total_amount: int, hours_before_start: float) -> int:
    """Fee charged for cancelling ``hours_before_start`` hours ahead, floored to minor units."""
    for threshold, percent in CANCELLATION_FEE_TIERS:
        if hours_before_start >= threshold:
            return total_amount * percent // 100
    return total_amount


class ReservationService:
    def __init__(
        self,
        db: Session,
        clock: Callable[[], datetime] = utcnow,
        config: Settings = default_settings,
    ):
        self.db = db
        self.clock = clock
        self.config = config

    # Transaction plumbing

    def _run(self, work: Callable[[], Reservation], operation: str, contended: bool = False):
        """Runs ``work`` in a retried transaction and translates storage errors.

        ``contended`` marks operations that compete for a time slot; their
        exhausted retries and overlap violations read as an unavailable slot.
        """
        try:
            return run_in_transaction(
                self.db,
                work,
                max_retries=self.config.TRANSACTION_MAX_RETRIES,
                isolation_level=self.config.RESERVATION_ISOLATION_LEVEL,
            )
        except BookingError:
            raise
        except RetriesExhausted as e:
            if contended:
                logger.warning(f"Reservation {operation} lost {e.attempts} serialization races")
                raise SlotNotAvailable("The time slot could not be secured, please try again") from e
            logger.error(f"Reservation {operation} failed after {e.attempts} attempts")
            raise DatabaseError(f"Could not {operation} reservation: {str(e)}") from e
        except IntegrityError as e:
            if violated_constraint(e, (NO_OVERLAP_CONSTRAINT,)) == NO_OVERLAP_CONSTRAINT:
                logger.warning(f"Reservation {operation} rejected by overlap constraint")
                raise SlotNotAvailable() from e
            logger.error(f"Integrity error during reservation {operation}: {str(e.orig)}")
            raise DatabaseError(f"Could not {operation} reservation: {str(e.orig)}") from e
        except SQLAlchemyError as e:
            logger.error(f"Database error during reservation {operation}: {str(e)}")
            raise DatabaseError(f"Could not {operation} reservation: {str(e)}") from e

    def _locked(self, reservation_id: int) -> Reservation:
        reservation = (
            self.db.query(Reservation)
            .filter(Reservation.id == reservation_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if reservation is None:
            raise NotFound("Reservation", reservation_id)
        return reservation

    def _transition(self, reservation_id: int, operation: str, apply: Callable[[Reservation, datetime], None]):
        def work():
            reservation = self._locked(reservation_id)
            apply(reservation, self.clock())
            self.db.flush()
            return reservation

        reservation = self._run(work, operation)
        logger.info(f"Reservation {reservation.id} is now {ReservationStatus(reservation.status).value}")
        return reservation

    # Commands

    def create(self, data: ReservationCreate, actor: str = "system") -> Reservation:
        """Books a pending reservation for a free staff interval."""
        start_time, end_time = to_utc(data.start_time), to_utc(data.end_time)
        if start_time >= end_time:
            raise InvalidTimeRange()

        def work():
            if count_conflicts(self.db, data.staff_id, start_time, end_time):
                logger.warning(f"Staff {data.staff_id} already booked between {start_time} and {end_time}")
                raise SlotNotAvailable()

            now = self.clock()
            reservation = Reservation(
                salon_id=data.salon_id,
                customer_id=data.customer_id,
                staff_id=data.staff_id,
                service_id=data.service_id,
                start_time=start_time,
                end_time=end_time,
                status=ReservationStatus.PENDING,
                notes=data.notes,
                total_amount=data.total_amount,
                deposit_amount=data.deposit_amount,
                is_paid=False,
                created_at=now,
                created_by=actor,
                updated_at=now,
                updated_by=actor,
            )
            self.db.add(reservation)
            self.db.flush()
            return reservation

        reservation = self._run(work, "create", contended=True)
        logger.info(f"Reservation {reservation.id} created for staff {reservation.staff_id} by {actor}")
        return reservation

    def update(self, reservation_id: int, data: ReservationUpdate, actor: str = "system") -> Reservation:
        def work():
            reservation = self._locked(reservation_id)
            reservation_state.ensure_modifiable(reservation)

            start_time = data.start_time if data.start_time is not None else reservation.start_time
            end_time = data.end_time if data.end_time is not None else reservation.end_time
            staff_id = data.staff_id if data.staff_id is not None else reservation.staff_id
            start_time, end_time = to_utc(start_time), to_utc(end_time)
            if start_time >= end_time:
                raise InvalidTimeRange()

            if data.reschedules() and count_conflicts(
                self.db, staff_id, start_time, end_time, exclude_reservation_id=reservation.id
            ):
                logger.warning(f"Reschedule of reservation {reservation.id} overlaps staff {staff_id}")
                raise SlotNotAvailable()

            reservation.start_time = start_time
            reservation.end_time = end_time
            reservation.staff_id = staff_id
            if "notes" in data.model_fields_set:
                reservation.notes = data.notes
            reservation.updated_at = self.clock()
            reservation.updated_by = actor
            self.db.flush()
            return reservation

        reservation = self._run(work, "update", contended=True)
        logger.info(f"Reservation {reservation.id} updated by {actor}")
        return reservation

    def confirm(self, reservation_id: int, actor: str = "system") -> Reservation:
        return self._transition(
            reservation_id, "confirm", lambda r, now: reservation_state.confirm(r, actor, now)
        )

    def cancel(self, reservation_id: int, reason: str, actor: str = "system") -> Reservation:
        return self._transition(
            reservation_id, "cancel", lambda r, now: reservation_state.cancel(r, reason, actor, now)
        )

    def complete(self, reservation_id: int, actor: str = "system") -> Reservation:
        return self._transition(
            reservation_id, "complete", lambda r, now: reservation_state.complete(r, actor, now)
        )

    def mark_no_show(self, reservation_id: int, actor: str = "system") -> Reservation:
        return self._transition(
            reservation_id, "mark as no-show", lambda r, now: reservation_state.mark_no_show(r, actor, now)
        )

    def update_payment_status(self, reservation_id: int, is_paid: bool, actor: str = "system") -> Reservation:
        def apply(reservation: Reservation, now: datetime):
            reservation_state.ensure_modifiable(reservation)
            reservation.is_paid = is_paid
            reservation.updated_at = now
            reservation.updated_by = actor

        reservation = self._transition(reservation_id, "update payment of", apply)
        logger.info(f"Reservation {reservation.id} payment status set to {is_paid}")
        return reservation

    # Queries

    def get(self, reservation_id: int) -> Reservation:
        try:
            reservation = self.db.get(Reservation, reservation_id)
        except SQLAlchemyError as e:
            logger.error(f"Error loading reservation {reservation_id}: {str(e)}")
            raise DatabaseError(f"Error loading reservation: {str(e)}") from e
        if reservation is None:
            raise NotFound("Reservation", reservation_id)
        return reservation

    def search(
        self,
        criteria: ReservationSearchCriteria,
        pagination: Optional[PaginationParams] = None,
    ) -> PageResult:
        """Filters reservations by any combination of criteria, newest start first."""
        pagination = pagination or PaginationParams()
        query = self.db.query(Reservation)

        if criteria.salon_id is not None:
            query = query.filter(Reservation.salon_id == criteria.salon_id)
        if criteria.customer_id is not None:
            query = query.filter(Reservation.customer_id == criteria.customer_id)
        if criteria.staff_id is not None:
            query = query.filter(Reservation.staff_id == criteria.staff_id)
        if criteria.service_id is not None:
            query = query.filter(Reservation.service_id == criteria.service_id)
        if criteria.status is not None:
            query = query.filter(Reservation.status == criteria.status)
        if criteria.is_paid is not None:
            query = query.filter(Reservation.is_paid == criteria.is_paid)

        if criteria.start_date is not None and criteria.end_date is not None:
            query = query.filter(Reservation.start_time.between(criteria.start_date, criteria.end_date))
        elif criteria.start_date is not None:
            query = query.filter(Reservation.start_time >= criteria.start_date)
        elif criteria.end_date is not None:
            query = query.filter(Reservation.end_time <= criteria.end_date)

        try:
            total = query.count()
            items = (
                query.order_by(Reservation.start_time.desc(), Reservation.id.desc())
                .offset(pagination.offset)
                .limit(pagination.limit)
                .all()
            )
        except SQLAlchemyError as e:
            logger.error(f"Error searching reservations: {str(e)}")
            raise DatabaseError(f"Error searching reservations: {str(e)}") from e

        return PageResult(items=items, total=total)

    def find_by_customer(self, customer_id: int, pagination: Optional[PaginationParams] = None) -> PageResult:
        return self.search(ReservationSearchCriteria(customer_id=customer_id), pagination)

    def find_by_staff_and_date_range(self, staff_id: int, start: datetime, end: datetime) -> List[Reservation]:
        try:
            return (
                self.db.query(Reservation)
                .filter(
                    Reservation.staff_id == staff_id,
                    Reservation.start_time.between(to_utc(start), to_utc(end)),
                )
                .order_by(Reservation.start_time.asc())
                .all()
            )
        except SQLAlchemyError as e:
            logger.error(f"Error loading schedule for staff {staff_id}: {str(e)}")
            raise DatabaseError(f"Error loading staff schedule: {str(e)}") from e

    def count_by_date(self, salon_id: int, start: datetime, end: datetime) -> Dict[date, int]:
        """Reservations per local salon day whose start falls in ``[start, end]``."""
        try:
            rows = (
                self.db.query(Reservation.start_time)
                .filter(
                    Reservation.salon_id == salon_id,
                    Reservation.start_time.between(to_utc(start), to_utc(end)),
                )
                .all()
            )
        except SQLAlchemyError as e:
            logger.error(f"Error counting reservations for salon {salon_id}: {str(e)}")
            raise DatabaseError(f"Error counting reservations: {str(e)}") from e

        zone = self.config.salon_zone
        counts = Counter(to_utc(start_time).astimezone(zone).date() for (start_time,) in rows)
        return dict(sorted(counts.items()))

    def check_time_slot_conflict(
        self,
        staff_id: int,
        start_time: datetime,
        end_time: datetime,
        exclude_reservation_id: Optional[int] = None,
    ) -> bool:
        start_time, end_time = to_utc(start_time), to_utc(end_time)
        if start_time >= end_time:
            raise InvalidTimeRange()
        return has_conflict(self.db, staff_id, start_time, end_time, exclude_reservation_id)

    def find_available_slots(
        self,
        salon_id: int,
        service_id: int,
        day: date,
        duration_minutes: int,
        staff_ids: Optional[Sequence[int]] = None,
    ) -> List[AvailableSlot]:
        """Enumerates back-to-back slots of ``duration_minutes`` within opening hours.

        With ``staff_ids`` each slot is offered per staff member that is free
        for it. Without staff the bare grid is returned.
        """
        if duration_minutes <= 0:
            raise InvalidTimeRange("Slot duration must be positive")

        zone = self.config.salon_zone
        midnight = datetime.combine(day, time(0), tzinfo=zone)
        opening = to_utc(midnight + timedelta(hours=self.config.SALON_OPENING_HOUR))
        closing = to_utc(midnight + timedelta(hours=self.config.SALON_CLOSING_HOUR))
        step = timedelta(minutes=duration_minutes)

        grid = []
        slot_start = opening
        while slot_start + step <= closing:
            grid.append((slot_start, slot_start + step))
            slot_start += step

        logger.debug(
            f"Slot grid for salon {salon_id} service {service_id} on {day}: {len(grid)} slots of {duration_minutes}m"
        )
        if not staff_ids:
            return [AvailableSlot(staff_id=None, start_time=s, end_time=e) for s, e in grid]

        slots = []
        for staff_id in staff_ids:
            booked = self._active_bookings(staff_id, opening, closing)
            for s, e in grid:
                if not any(intervals_overlap(s, e, b_start, b_end) for b_start, b_end in booked):
                    slots.append(AvailableSlot(staff_id=staff_id, start_time=s, end_time=e))
        return slots

    def _active_bookings(self, staff_id: int, window_start: datetime, window_end: datetime):
        try:
            rows = (
                self.db.query(Reservation.start_time, Reservation.end_time)
                .filter(
                    Reservation.staff_id == staff_id,
                    Reservation.status.in_(ACTIVE_STATUSES),
                    Reservation.start_time < window_end,
                    Reservation.end_time > window_start,
                )
                .all()
            )
        except SQLAlchemyError as e:
            logger.error(f"Error loading bookings for staff {staff_id}: {str(e)}")
            raise DatabaseError(f"Error loading staff bookings: {str(e)}") from e
        return [(to_utc(start), to_utc(end)) for start, end in rows]

    def calculate_cancellation_fee(self, reservation: Reservation, now: Optional[datetime] = None):
        """Returns ``(hours_before_start, fee)`` for cancelling ``reservation`` at ``now``."""
        now = now or self.clock()
        hours = hours_between(now, reservation.start_time)
        return hours, cancellation_fee(reservation.total_amount or 0, hours)
