# backend/modules/reservations/routes/booking_routes.py

"""
Booking write routes: submission, table assignment, resolution application
and status changes.
"""

from fastapi import APIRouter, Depends, status
from datetime import datetime

from core.exceptions import ConflictError
from ..exceptions import BookingConflictError
from ..services import BookingService
from ..schemas import (
    BookingCreate,
    BookingResponse,
    EvaluationResponse,
    ResolutionApplyRequest,
    ResolutionApplyResponse,
    StatusUpdate,
)
from .dependencies import get_booking_service, get_now

router = APIRouter()


@router.post(
    "/bookings", response_model=BookingResponse, status_code=status.HTTP_201_CREATED
)
def create_booking(
    restaurant_id: int,
    booking_data: BookingCreate,
    service: BookingService = Depends(get_booking_service),
    now: datetime = Depends(get_now),
):
    """
    Submit a booking.

    - Re-checks availability under a per-date lock
    - Assigns a table when none is requested
    - Returns 409 with the full evaluation when refused
    """
    try:
        booking = service.create_reservation(
            restaurant_id,
            booking_data.to_domain(),
            booking_data.customer.to_domain(),
            now,
            allow_warnings=booking_data.allow_warnings,
        )
    except BookingConflictError as e:
        raise ConflictError(
            detail=EvaluationResponse.from_domain(e.evaluation).model_dump(mode="json"),
            error_code=e.error_code,
        )
    return BookingResponse.model_validate(booking)


@router.post(
    "/bookings/{booking_id}/resolutions", response_model=ResolutionApplyResponse
)
def apply_resolution(
    restaurant_id: int,
    booking_id: int,
    body: ResolutionApplyRequest,
    service: BookingService = Depends(get_booking_service),
    now: datetime = Depends(get_now),
):
    """Apply a proposal from the conflict scan; repeating it is harmless"""
    result = service.apply_resolution(restaurant_id, booking_id, body.proposal_id, now)
    booking = service.store.get_booking(restaurant_id, booking_id)
    return ResolutionApplyResponse(
        status=result.status,
        proposal_id=body.proposal_id,
        booking=BookingResponse.model_validate(booking),
    )


@router.post("/bookings/{booking_id}/assign-table", response_model=BookingResponse)
def assign_table(
    restaurant_id: int,
    booking_id: int,
    service: BookingService = Depends(get_booking_service),
    now: datetime = Depends(get_now),
):
    """Give an unassigned booking the tightest free table; repeating it is harmless"""
    try:
        booking = service.assign_table(restaurant_id, booking_id, now)
    except BookingConflictError as e:
        raise ConflictError(
            detail=EvaluationResponse.from_domain(e.evaluation).model_dump(mode="json"),
            error_code=e.error_code,
        )
    return BookingResponse.model_validate(booking)


@router.patch("/bookings/{booking_id}/status", response_model=BookingResponse)
def update_booking_status(
    restaurant_id: int,
    booking_id: int,
    body: StatusUpdate,
    service: BookingService = Depends(get_booking_service),
):
    booking = service.update_status(restaurant_id, booking_id, body.status)
    return BookingResponse.model_validate(booking)
