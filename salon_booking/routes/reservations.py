from fastapi import APIRouter, Depends, HTTPException, Query, status as http_status
from typing import List, Optional
from datetime import date, datetime

from salon_booking.core.dependencies import get_actor, get_reservation_service
from salon_booking.models.reservation import ReservationStatus
from salon_booking.schemas.common import Page, PaginationParams
from salon_booking.schemas.reservation import (
    AvailableSlot,
    CancellationFeeResponse,
    ConflictCheckResponse,
    DailyCount,
    PaymentStatusUpdate,
    ReservationCancel,
    ReservationCreate,
    ReservationResponse,
    ReservationSearchCriteria,
    ReservationUpdate,
)
from salon_booking.services import ReservationService
from salon_booking.utils.time import to_utc

router = APIRouter()


def _page(result, pagination: PaginationParams) -> Page[ReservationResponse]:
    return Page[ReservationResponse](
        items=[ReservationResponse.from_model(r) for r in result.items],
        total=result.total,
        limit=pagination.limit,
        offset=pagination.offset,
    )


def _check_range(start: datetime, end: datetime):
    if to_utc(start) > to_utc(end):
        raise HTTPException(
            status_code=http_status.HTTP_400_BAD_REQUEST,
            detail="start must not be after end"
        )


@router.post("/", response_model=ReservationResponse, status_code=http_status.HTTP_201_CREATED)
def create_reservation(
    reservation_data: ReservationCreate,
    actor: str = Depends(get_actor),
    service: ReservationService = Depends(get_reservation_service)
):
    """Book a reservation"""
    return ReservationResponse.from_model(service.create(reservation_data, actor))

@router.get("/", response_model=Page[ReservationResponse])
def search_reservations(
    salon_id: Optional[int] = Query(None),
    customer_id: Optional[int] = Query(None),
    staff_id: Optional[int] = Query(None),
    service_id: Optional[int] = Query(None),
    status: Optional[ReservationStatus] = Query(None),
    is_paid: Optional[bool] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    service: ReservationService = Depends(get_reservation_service)
):
    """Search reservations, newest start first"""
    criteria = ReservationSearchCriteria(
        salon_id=salon_id,
        customer_id=customer_id,
        staff_id=staff_id,
        service_id=service_id,
        status=status,
        is_paid=is_paid,
        start_date=start_date,
        end_date=end_date,
    )
    pagination = PaginationParams(limit=limit, offset=offset)
    return _page(service.search(criteria, pagination), pagination)

@router.get("/slots", response_model=List[AvailableSlot])
def get_available_slots(
    salon_id: int = Query(...),
    service_id: int = Query(...),
    day: date = Query(...),
    duration_minutes: int = Query(..., ge=1, le=24 * 60),
    staff_ids: Optional[List[int]] = Query(None),
    service: ReservationService = Depends(get_reservation_service)
):
    """List bookable slots for a day"""
    return service.find_available_slots(salon_id, service_id, day, duration_minutes, staff_ids)

@router.get("/conflicts", response_model=ConflictCheckResponse)
def check_conflict(
    staff_id: int = Query(...),
    start_time: datetime = Query(...),
    end_time: datetime = Query(...),
    exclude_reservation_id: Optional[int] = Query(None),
    service: ReservationService = Depends(get_reservation_service)
):
    """Check whether a staff member is free for an interval without booking it"""
    conflict = service.check_time_slot_conflict(staff_id, start_time, end_time, exclude_reservation_id)
    return ConflictCheckResponse(
        staff_id=staff_id,
        start_time=to_utc(start_time),
        end_time=to_utc(end_time),
        has_conflict=conflict,
    )

@router.get("/daily-counts", response_model=List[DailyCount])
def get_daily_counts(
    salon_id: int = Query(...),
    start: datetime = Query(...),
    end: datetime = Query(...),
    service: ReservationService = Depends(get_reservation_service)
):
    """Number of reservations per day for a salon"""
    _check_range(start, end)
    counts = service.count_by_date(salon_id, start, end)
    return [DailyCount(day=day, count=count) for day, count in counts.items()]

@router.get("/customers/{customer_id}", response_model=Page[ReservationResponse])
def get_customer_reservations(
    customer_id: int,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    service: ReservationService = Depends(get_reservation_service)
):
    """Reservations of a customer"""
    pagination = PaginationParams(limit=limit, offset=offset)
    return _page(service.find_by_customer(customer_id, pagination), pagination)

@router.get("/staff/{staff_id}/schedule", response_model=List[ReservationResponse])
def get_staff_schedule(
    staff_id: int,
    start: datetime = Query(...),
    end: datetime = Query(...),
    service: ReservationService = Depends(get_reservation_service)
):
    """Reservations of a staff member starting within a range"""
    _check_range(start, end)
    return [ReservationResponse.from_model(r) for r in service.find_by_staff_and_date_range(staff_id, start, end)]

@router.get("/{reservation_id}", response_model=ReservationResponse)
def get_reservation(
    reservation_id: int,
    service: ReservationService = Depends(get_reservation_service)
):
    """Get reservation by ID"""
    return ReservationResponse.from_model(service.get(reservation_id))

@router.patch("/{reservation_id}", response_model=ReservationResponse)
def update_reservation(
    reservation_id: int,
    reservation_data: ReservationUpdate,
    actor: str = Depends(get_actor),
    service: ReservationService = Depends(get_reservation_service)
):
    """Reschedule a reservation or edit its notes"""
    return ReservationResponse.from_model(service.update(reservation_id, reservation_data, actor))

@router.post("/{reservation_id}/confirm", response_model=ReservationResponse)
def confirm_reservation(
    reservation_id: int,
    actor: str = Depends(get_actor),
    service: ReservationService = Depends(get_reservation_service)
):
    return ReservationResponse.from_model(service.confirm(reservation_id, actor))

@router.post("/{reservation_id}/cancel", response_model=ReservationResponse)
def cancel_reservation(
    reservation_id: int,
    cancel_data: ReservationCancel,
    actor: str = Depends(get_actor),
    service: ReservationService = Depends(get_reservation_service)
):
    return ReservationResponse.from_model(service.cancel(reservation_id, cancel_data.reason, actor))

@router.post("/{reservation_id}/complete", response_model=ReservationResponse)
def complete_reservation(
    reservation_id: int,
    actor: str = Depends(get_actor),
    service: ReservationService = Depends(get_reservation_service)
):
    return ReservationResponse.from_model(service.complete(reservation_id, actor))

@router.post("/{reservation_id}/no-show", response_model=ReservationResponse)
def mark_reservation_no_show(
    reservation_id: int,
    actor: str = Depends(get_actor),
    service: ReservationService = Depends(get_reservation_service)
):
    return ReservationResponse.from_model(service.mark_no_show(reservation_id, actor))

@router.put("/{reservation_id}/payment", response_model=ReservationResponse)
def update_payment_status(
    reservation_id: int,
    payment_data: PaymentStatusUpdate,
    actor: str = Depends(get_actor),
    service: ReservationService = Depends(get_reservation_service)
):
    return ReservationResponse.from_model(
        service.update_payment_status(reservation_id, payment_data.is_paid, actor)
    )

@router.get("/{reservation_id}/cancellation-fee", response_model=CancellationFeeResponse)
def get_cancellation_fee(
    reservation_id: int,
    service: ReservationService = Depends(get_reservation_service)
):
    """Fee the customer would pay if the reservation were cancelled now"""
    reservation = service.get(reservation_id)
    hours, fee = service.calculate_cancellation_fee(reservation)
    return CancellationFeeResponse(reservation_id=reservation.id, hours_before_start=hours, fee=fee)
