"""Booking service - Business logic for scheduled appointments"""

import logging
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...config import QueueSettings
from ...database import transaction
from ...models import (
    CANCELLED,
    COMPLETED,
    IN_PROGRESS,
    PENDING_CHECK_IN,
    SCHEDULED,
    Appointment,
    Employee,
    Service,
)
from ...utils.combo import generate_combo_id
from ..queue.repository import QueueRepository
from .repository import AppointmentRepository
from .schemas import BookingCreate

logger = logging.getLogger(__name__)


class BookingService:
    """Service layer for booking business logic"""

    def __init__(
        self,
        db: Session,
        settings: Optional[QueueSettings] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.db = db
        self.settings = settings or QueueSettings.from_env()
        self.clock = clock
        self.repo = AppointmentRepository()
        self.queue_repo = QueueRepository()

    def _get_service(self, service_id: int) -> Service:
        service = self.queue_repo.get_service(self.db, service_id)
        if not service:
            raise HTTPException(status_code=404, detail="Service not found")
        return service

    def _get_facility(self, facility_id: int):
        facility = self.repo.get_facility(self.db, facility_id)
        if not facility:
            raise HTTPException(status_code=404, detail="Facility not found")
        return facility

    def _duration(self, service: Service) -> timedelta:
        return timedelta(minutes=service.duration or self.settings.default_service_duration)

    def _employee_is_free(self, employee_id: int, start: datetime, end: datetime) -> bool:
        return not self.queue_repo.get_overlapping_appointments(self.db, employee_id, start, end)

    def _pick_employee(
        self, facility_id: int, employee_id: Optional[int], start: datetime, end: datetime
    ) -> Employee:
        """Requested employee if free, otherwise the first free approved employee"""
        if employee_id is not None:
            employee = self.queue_repo.get_employee(self.db, employee_id)
            if not employee or employee.facility_id != facility_id or employee.status != "approved":
                raise HTTPException(status_code=404, detail="Employee not found")
            if not self._employee_is_free(employee.id, start, end):
                raise HTTPException(status_code=409, detail="Employee is not available at this time")
            return employee

        for employee in self.repo.get_approved_employees(self.db, facility_id):
            if self._employee_is_free(employee.id, start, end):
                return employee
        raise HTTPException(status_code=409, detail="No employee is available at this time")

    # ------------------------------------------------------------------
    # Booking
    # ------------------------------------------------------------------

    def create_booking(self, data: BookingCreate, facility_id: int) -> list[Appointment]:
        """
        Book a service (and optionally a combo second leg) for a customer.

        The second leg starts when the first ends and shares its combo id.
        Either every leg is booked or none is.
        """
        logger.info(f"📅 Booking {data.service_id} for {data.customer_name} at facility {facility_id}")
        facility = self._get_facility(facility_id)

        if data.start_time < self.clock():
            raise HTTPException(status_code=400, detail="Cannot book a time in the past")
        if not data.email and not data.phone:
            raise HTTPException(status_code=400, detail="Email or phone is required")

        service_ids = [data.service_id]
        if data.combo_service_id:
            service_ids.append(data.combo_service_id)
        combo_id = generate_combo_id() if len(service_ids) > 1 else None

        booked = []
        with transaction(self.db):
            start = data.start_time
            for index, service_id in enumerate(service_ids):
                service = self._get_service(service_id)
                end = start + self._duration(service)
                employee = self._pick_employee(
                    facility_id, data.employee_id if index == 0 else None, start, end
                )

                chair_number = None
                if service.needs_pedicure_chair:
                    chairs = self.check_pedicure_availability(facility.id, start, end - start)
                    if not chairs["is_available"]:
                        raise HTTPException(status_code=409, detail="No pedicure chair is free at this time")
                    chair_number = chairs["available_chair_number"]

                booked.append(
                    self.queue_repo.create_appointment(
                        self.db,
                        customer_name=data.customer_name,
                        email=data.email,
                        phone=data.phone,
                        service_id=service.id,
                        employee_id=employee.id,
                        facility_id=facility_id,
                        start_time=start,
                        end_time=end,
                        status=SCHEDULED,
                        combo_id=combo_id,
                        chair_number=chair_number,
                    )
                )
                start = end

        logger.info(f"✅ Booked {len(booked)} appointment(s) for {data.customer_name}")
        return booked

    def cancel_booking(self, appointment_id: int, facility_id: int) -> Appointment:
        appointment = self.get_appointment(appointment_id, facility_id)
        if appointment.status in (IN_PROGRESS, COMPLETED, CANCELLED):
            raise HTTPException(
                status_code=400, detail=f"Appointment in status {appointment.status} cannot be cancelled"
            )
        with transaction(self.db):
            appointment.status = CANCELLED
        return appointment

    def get_appointment(self, appointment_id: int, facility_id: int) -> Appointment:
        appointment = self.queue_repo.get_appointment(self.db, appointment_id, facility_id)
        if not appointment:
            raise HTTPException(status_code=404, detail="Appointment not found")
        return appointment

    def list_appointments(
        self, facility_id: int, day: Optional[date] = None, status: Optional[str] = None
    ) -> list[Appointment]:
        day = day or self.clock().date()
        start = datetime.combine(day, datetime.min.time())
        return self.repo.get_appointments(self.db, facility_id, start, start + timedelta(days=1), status)

    # ------------------------------------------------------------------
    # Availability
    # ------------------------------------------------------------------

    def get_available_time_slots(
        self, facility_id: int, day: date, service_id: int, employee_id: Optional[int] = None
    ) -> list[datetime]:
        """Slot starts within business hours where the service fits"""
        self._get_facility(facility_id)
        duration = self._duration(self._get_service(service_id))

        if employee_id is not None:
            employee = self.queue_repo.get_employee(self.db, employee_id)
            if not employee or employee.facility_id != facility_id:
                raise HTTPException(status_code=404, detail="Employee not found")
            employee_ids = [employee.id]
        else:
            employee_ids = [e.id for e in self.repo.get_approved_employees(self.db, facility_id)]

        day_start = datetime.combine(day, self.settings.day_start)
        day_end = datetime.combine(day, self.settings.day_end)
        busy: dict[int, list[tuple[datetime, datetime]]] = {eid: [] for eid in employee_ids}
        for appointment in self.repo.get_blocking_appointments_between(
            self.db, facility_id, day_start, day_end
        ):
            if appointment.employee_id in busy:
                busy[appointment.employee_id].append((appointment.start_time, appointment.end_time))

        now = self.clock()
        slots = []
        slot = day_start
        step = timedelta(minutes=self.settings.slot_minutes)
        while slot + duration <= day_end:
            if slot >= now and any(
                all(not (start < slot + duration and end > slot) for start, end in busy[eid])
                for eid in employee_ids
            ):
                slots.append(slot)
            slot += step
        return slots

    def check_pedicure_availability(self, facility_id: int, start: datetime, duration: timedelta) -> dict:
        """First free pedicure chair for [start, start + duration)"""
        facility = self._get_facility(facility_id)
        end = start + duration
        occupying = self.repo.get_chair_appointments(self.db, facility_id, start, end)
        occupied = {a.chair_number for a in occupying}

        free_chair = next(
            (number for number in range(1, facility.pedicure_chairs + 1) if number not in occupied),
            None,
        )
        return {
            "is_available": free_chair is not None,
            "available_chair_number": free_chair,
            "total_chairs": facility.pedicure_chairs,
            "occupied_count": len(occupied),
            "next_available_time": (
                min((a.end_time for a in occupying), default=None) if free_chair is None else None
            ),
        }

    # ------------------------------------------------------------------
    # Kiosk check-in for booked customers
    # ------------------------------------------------------------------

    def find_todays_booking(self, facility_id: int, search: str) -> Appointment:
        if not search or len(search.strip()) < 3:
            raise HTTPException(status_code=400, detail="Search needs at least 3 characters")

        now = self.clock()
        start = datetime.combine(now.date(), datetime.min.time())
        matches = self.repo.search_bookings(self.db, facility_id, search, start, start + timedelta(days=1))
        open_matches = [a for a in matches if a.status in (SCHEDULED, PENDING_CHECK_IN)]
        if not open_matches:
            raise HTTPException(status_code=404, detail="No booking found for today")
        return open_matches[0]

    def mark_arrival(self, appointment_id: int, facility_id: int) -> Appointment:
        """Record the customer's arrival; staff then confirm it to start the service"""
        appointment = self.get_appointment(appointment_id, facility_id)
        if appointment.status not in (SCHEDULED, PENDING_CHECK_IN):
            raise HTTPException(
                status_code=400, detail=f"Appointment in status {appointment.status} cannot be checked in"
            )
        with transaction(self.db):
            appointment.arrival_time = self.clock()
            appointment.status = PENDING_CHECK_IN
        logger.info(f"✅ Customer arrived for appointment {appointment_id}")
        return appointment
