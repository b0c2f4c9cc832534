# backend/modules/reservations/routes/availability_routes.py

"""
Read-only availability routes: open slots, what-if evaluation, the daily
conflict scan and rescheduling suggestions.
"""

from fastapi import APIRouter, Depends, Query
from typing import Optional
from datetime import date, datetime

from ..services import BookingService
from ..schemas import (
    AvailabilityResponse,
    BookingRequestSchema,
    ConflictScanResponse,
    EvaluationResponse,
    RescheduleResponse,
    RescheduleSuggestionSchema,
    ResolutionPlanSchema,
    TimeSlotResponse,
)
from .dependencies import get_booking_service, get_now

router = APIRouter()


@router.get("/availability", response_model=AvailabilityResponse)
def get_availability(
    restaurant_id: int,
    booking_date: date = Query(..., alias="date", description="Date to check"),
    guests: int = Query(..., ge=1, description="Party size"),
    duration: Optional[int] = Query(None, gt=0, description="Stay in minutes"),
    service: BookingService = Depends(get_booking_service),
    now: datetime = Depends(get_now),
):
    """
    Start times on ``booking_date`` for a party of ``guests``.

    A closed day returns an empty list. Unavailable slots carry the reason,
    e.g. ``FULLY_BOOKED`` or the booking rule that excludes them.
    """
    slots = service.get_available_slots(restaurant_id, booking_date, guests, now, duration)
    return AvailabilityResponse(
        date=booking_date,
        guest_count=guests,
        slots=[TimeSlotResponse.model_validate(slot) for slot in slots],
    )


@router.post("/bookings/evaluate", response_model=EvaluationResponse)
def evaluate_booking(
    restaurant_id: int,
    request: BookingRequestSchema,
    service: BookingService = Depends(get_booking_service),
    now: datetime = Depends(get_now),
):
    """Conflicts and ranked resolution proposals for a booking; nothing is saved"""
    evaluation = service.evaluate_booking(restaurant_id, request.to_domain(), now)
    return EvaluationResponse.from_domain(evaluation)


@router.get("/conflicts", response_model=ConflictScanResponse)
def scan_conflicts(
    restaurant_id: int,
    booking_date: date = Query(..., alias="date", description="Date to audit"),
    service: BookingService = Depends(get_booking_service),
    now: datetime = Depends(get_now),
):
    """Conflicts among existing bookings on a date, with proposals for staff"""
    plans = service.scan_conflicts(restaurant_id, booking_date, now)
    return ConflictScanResponse(
        date=booking_date, plans=[ResolutionPlanSchema.from_domain(p) for p in plans]
    )


@router.post("/bookings/reschedule-suggestions", response_model=RescheduleResponse)
def suggest_reschedule(
    restaurant_id: int,
    request: BookingRequestSchema,
    limit: Optional[int] = Query(None, ge=1, le=50, description="Maximum suggestions"),
    service: BookingService = Depends(get_booking_service),
    now: datetime = Depends(get_now),
):
    """Free alternatives on the requested date and the following days"""
    suggestions = service.reschedule_suggestions(restaurant_id, request.to_domain(), now, limit)
    return RescheduleResponse(
        original_date=request.date,
        original_start_time=request.start_time,
        guest_count=request.guest_count,
        suggestions=[RescheduleSuggestionSchema.from_domain(s) for s in suggestions],
    )


@router.get(
    "/bookings/{booking_id}/reschedule-suggestions", response_model=RescheduleResponse
)
def suggest_booking_reschedule(
    restaurant_id: int,
    booking_id: int,
    limit: Optional[int] = Query(None, ge=1, le=50, description="Maximum suggestions"),
    service: BookingService = Depends(get_booking_service),
    now: datetime = Depends(get_now),
):
    """Alternatives for an existing booking, which never collides with itself"""
    suggestions = service.reschedule_suggestions_for_booking(
        restaurant_id, booking_id, now, limit
    )
    booking = service.store.get_booking(restaurant_id, booking_id)
    return RescheduleResponse(
        original_date=booking.booking_date,
        original_start_time=booking.start_time,
        guest_count=booking.guest_count,
        suggestions=[RescheduleSuggestionSchema.from_domain(s) for s in suggestions],
    )
