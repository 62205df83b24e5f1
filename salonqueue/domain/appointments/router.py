"""Booking router - FastAPI endpoints for scheduled appointments"""

import logging
from datetime import date, datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...database import get_db
from ..queue.schemas import AppointmentResponse
from .schemas import BookingCreate, PedicureAvailabilityResponse, TimeSlotsResponse
from .service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/facilities/{facility_id}", tags=["Bookings"])


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db)


@router.get("/appointments", response_model=list[AppointmentResponse])
async def list_appointments(
    facility_id: int,
    day: Optional[date] = Query(None),
    status: Optional[str] = Query(None),
    service: BookingService = Depends(get_booking_service),
):
    """Appointments of one day (today by default)"""
    return service.list_appointments(facility_id, day, status)


@router.post("/bookings", response_model=list[AppointmentResponse])
async def create_booking(
    facility_id: int,
    data: BookingCreate,
    service: BookingService = Depends(get_booking_service),
):
    """Book a service, or a combo of two services back to back"""
    return service.create_booking(data, facility_id)


@router.get("/bookings/slots", response_model=TimeSlotsResponse)
async def available_slots(
    facility_id: int,
    day: date = Query(...),
    service_id: int = Query(...),
    employee_id: Optional[int] = Query(None),
    service: BookingService = Depends(get_booking_service),
):
    slots = service.get_available_time_slots(facility_id, day, service_id, employee_id)
    return TimeSlotsResponse(
        date=day.isoformat(), service_id=service_id, employee_id=employee_id, slots=slots
    )


@router.get("/bookings/search", response_model=AppointmentResponse)
async def search_booking(
    facility_id: int,
    q: str = Query(..., min_length=1),
    service: BookingService = Depends(get_booking_service),
):
    """Find today's booking by email or phone (kiosk check-in)"""
    return service.find_todays_booking(facility_id, q)


@router.post("/bookings/{appointment_id}/arrive", response_model=AppointmentResponse)
async def mark_arrival(
    facility_id: int,
    appointment_id: int,
    service: BookingService = Depends(get_booking_service),
):
    return service.mark_arrival(appointment_id, facility_id)


@router.post("/bookings/{appointment_id}/cancel", response_model=AppointmentResponse)
async def cancel_booking(
    facility_id: int,
    appointment_id: int,
    service: BookingService = Depends(get_booking_service),
):
    return service.cancel_booking(appointment_id, facility_id)


@router.get("/pedicure/availability", response_model=PedicureAvailabilityResponse)
async def pedicure_availability(
    facility_id: int,
    start_time: datetime = Query(...),
    duration: int = Query(..., gt=0),
    service: BookingService = Depends(get_booking_service),
):
    return service.check_pedicure_availability(facility_id, start_time, timedelta(minutes=duration))
