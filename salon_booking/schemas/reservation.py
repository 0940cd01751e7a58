from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Annotated, Optional, Union, Literal
from datetime import datetime, date

from salon_booking.models.reservation import Reservation, ReservationStatus
from salon_booking.utils.time import to_utc


class ReservationCreate(BaseModel):
    salon_id: int
    customer_id: int
    staff_id: int
    service_id: int
    start_time: datetime
    end_time: datetime
    notes: Optional[str] = None
    total_amount: int = Field(0, ge=0)
    deposit_amount: Optional[int] = Field(None, ge=0)

    @field_validator("start_time", "end_time")
    @classmethod
    def normalise_to_utc(cls, v: datetime):
        return to_utc(v)

class ReservationUpdate(BaseModel):
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    staff_id: Optional[int] = None
    notes: Optional[str] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def normalise_to_utc(cls, v: Optional[datetime]):
        return to_utc(v) if v is not None else v

    def reschedules(self) -> bool:
        """True when the change touches the booked interval or the staff member."""
        fields = self.model_fields_set
        return bool(fields & {"start_time", "end_time", "staff_id"})

class ReservationCancel(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)

class PaymentStatusUpdate(BaseModel):
    is_paid: bool

class ReservationSearchCriteria(BaseModel):
    salon_id: Optional[int] = None
    customer_id: Optional[int] = None
    staff_id: Optional[int] = None
    service_id: Optional[int] = None
    status: Optional[ReservationStatus] = None
    is_paid: Optional[bool] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def normalise_to_utc(cls, v: Optional[datetime]):
        return to_utc(v) if v is not None else v


# Status variants. Each carries only the metadata of the transition that produced it.

class PendingState(BaseModel):
    status: Literal["pending"] = "pending"

class ConfirmedState(BaseModel):
    status: Literal["confirmed"] = "confirmed"
    confirmed_at: datetime
    confirmed_by: Optional[str] = None

class CancelledState(BaseModel):
    status: Literal["cancelled"] = "cancelled"
    cancelled_at: datetime
    cancelled_by: Optional[str] = None
    reason: str

class CompletedState(BaseModel):
    status: Literal["completed"] = "completed"
    completed_at: datetime
    completed_by: Optional[str] = None

class NoShowState(BaseModel):
    status: Literal["no_show"] = "no_show"
    marked_no_show_at: datetime
    marked_no_show_by: Optional[str] = None

ReservationState = Annotated[
    Union[PendingState, ConfirmedState, CancelledState, CompletedState, NoShowState],
    Field(discriminator="status"),
]


def describe_state(reservation: Reservation) -> ReservationState:
    """Builds the tagged status variant for a stored reservation."""
    status = ReservationStatus(reservation.status)
    if status is ReservationStatus.PENDING:
        return PendingState()
    if status is ReservationStatus.CONFIRMED:
        return ConfirmedState(
            confirmed_at=reservation.confirmed_at or reservation.updated_at,
            confirmed_by=reservation.confirmed_by,
        )
    if status is ReservationStatus.CANCELLED:
        return CancelledState(
            cancelled_at=reservation.cancelled_at or reservation.updated_at,
            cancelled_by=reservation.cancelled_by,
            reason=reservation.cancellation_reason or "",
        )
    if status is ReservationStatus.COMPLETED:
        return CompletedState(
            completed_at=reservation.completed_at or reservation.updated_at,
            completed_by=reservation.completed_by,
        )
    if status is ReservationStatus.NO_SHOW:
        return NoShowState(
            marked_no_show_at=reservation.no_show_at or reservation.updated_at,
            marked_no_show_by=reservation.no_show_by,
        )
    raise ValueError(f"Unhandled reservation status: {status}")


class ReservationResponse(BaseModel):
    id: int
    salon_id: int
    customer_id: int
    staff_id: int
    service_id: int
    start_time: datetime
    end_time: datetime
    notes: Optional[str] = None
    total_amount: int
    deposit_amount: Optional[int] = None
    is_paid: bool
    cancellation_reason: Optional[str] = None
    state: ReservationState
    created_at: datetime
    created_by: Optional[str] = None
    updated_at: datetime
    updated_by: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_model(cls, reservation: Reservation) -> "ReservationResponse":
        return cls(
            id=reservation.id,
            salon_id=reservation.salon_id,
            customer_id=reservation.customer_id,
            staff_id=reservation.staff_id,
            service_id=reservation.service_id,
            start_time=reservation.start_time,
            end_time=reservation.end_time,
            notes=reservation.notes,
            total_amount=reservation.total_amount,
            deposit_amount=reservation.deposit_amount,
            is_paid=reservation.is_paid,
            cancellation_reason=reservation.cancellation_reason,
            state=describe_state(reservation),
            created_at=reservation.created_at,
            created_by=reservation.created_by,
            updated_at=reservation.updated_at,
            updated_by=reservation.updated_by,
        )

class AvailableSlot(BaseModel):
    staff_id: Optional[int] = None
    start_time: datetime
    end_time: datetime

class ConflictCheckResponse(BaseModel):
    staff_id: int
    start_time: datetime
    end_time: datetime
    has_conflict: bool

class CancellationFeeResponse(BaseModel):
    reservation_id: int
    hours_before_start: float
    fee: int

class DailyCount(BaseModel):
    day: date
    count: int
