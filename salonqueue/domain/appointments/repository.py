"""Appointment repository - Database operations for bookings"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import BLOCKING_STATUSES, Appointment, Employee, Facility


class AppointmentRepository:
    """Repository for booking database operations"""

    @staticmethod
    def get_facility(db: Session, facility_id: int) -> Optional[Facility]:
        return db.query(Facility).filter(Facility.id == facility_id).first()

    @staticmethod
    def get_approved_employees(db: Session, facility_id: int) -> list[Employee]:
        return (
            db.query(Employee)
            .filter(Employee.facility_id == facility_id, Employee.status == "approved")
            .order_by(Employee.table_number.asc(), Employee.id.asc())
            .all()
        )

    @staticmethod
    def get_appointments(
        db: Session,
        facility_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        status: Optional[str] = None,
    ) -> list[Appointment]:
        query = (
            db.query(Appointment)
            .options(joinedload(Appointment.service), joinedload(Appointment.employee))
            .filter(Appointment.facility_id == facility_id)
        )
        if start:
            query = query.filter(Appointment.start_time >= start)
        if end:
            query = query.filter(Appointment.start_time < end)
        if status:
            query = query.filter(Appointment.status == status)
        return query.order_by(Appointment.start_time.asc()).all()

    @staticmethod
    def get_blocking_appointments_between(
        db: Session, facility_id: int, start: datetime, end: datetime
    ) -> list[Appointment]:
        """Blocking appointments in the facility that overlap [start, end)"""
        return (
            db.query(Appointment)
            .filter(
                Appointment.facility_id == facility_id,
                Appointment.status.in_(BLOCKING_STATUSES),
                Appointment.start_time < end,
                Appointment.end_time > start,
            )
            .all()
        )

    @staticmethod
    def get_chair_appointments(
        db: Session, facility_id: int, start: datetime, end: datetime
    ) -> list[Appointment]:
        """Blocking appointments holding a pedicure chair during [start, end)"""
        return (
            db.query(Appointment)
            .filter(
                Appointment.facility_id == facility_id,
                Appointment.status.in_(BLOCKING_STATUSES),
                Appointment.chair_number.isnot(None),
                Appointment.start_time < end,
                Appointment.end_time > start,
            )
            .with_for_update()
            .all()
        )

    @staticmethod
    def search_bookings(
        db: Session, facility_id: int, search: str, start: datetime, end: datetime
    ) -> list[Appointment]:
        """Bookings in [start, end) whose email or phone contains ``search``"""
        term = f"%{search.strip()}%"
        return (
            db.query(Appointment)
            .options(joinedload(Appointment.service), joinedload(Appointment.employee))
            .filter(
                Appointment.facility_id == facility_id,
                Appointment.start_time >= start,
                Appointment.start_time < end,
                (Appointment.email.ilike(term)) | (Appointment.phone.ilike(term)),
            )
            .order_by(Appointment.start_time.asc())
            .all()
        )
