"""Queue repository - Database operations for the employee and customer queues"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import and_, case, func, or_, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session, joinedload

from ...models import (
    BLOCKING_STATUSES,
    IN_PROGRESS,
    WAITING,
    Appointment,
    CustomerQueueEntry,
    DailyFacilityQueueCounter,
    Employee,
    EmployeeQueueEntry,
    Service,
)
from ...realtime import UPDATE, record_change, row_to_dict

UPSERT_INSERTS = {"postgresql": pg_insert, "sqlite": sqlite_insert}


class QueueRepository:
    """Repository for queue database operations"""

    # Employee queue
    @staticmethod
    def get_entry(
        db: Session, entry_id: int, facility_id: int, for_update: bool = False
    ) -> Optional[EmployeeQueueEntry]:
        query = db.query(EmployeeQueueEntry).filter(
            EmployeeQueueEntry.id == entry_id, EmployeeQueueEntry.facility_id == facility_id
        )
        if for_update:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def get_active_entry(
        db: Session, employee_id: int, facility_id: int, for_update: bool = False
    ) -> Optional[EmployeeQueueEntry]:
        """The employee's single active entry for the facility, if checked in"""
        query = db.query(EmployeeQueueEntry).filter(
            EmployeeQueueEntry.employee_id == employee_id,
            EmployeeQueueEntry.facility_id == facility_id,
            EmployeeQueueEntry.is_active.is_(True),
        )
        if for_update:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def get_active_entries(
        db: Session, facility_id: int, for_update: bool = False
    ) -> list[EmployeeQueueEntry]:
        """Active entries in queue order: round first, then position"""
        query = (
            db.query(EmployeeQueueEntry)
            .filter(
                EmployeeQueueEntry.facility_id == facility_id,
                EmployeeQueueEntry.is_active.is_(True),
            )
            .order_by(
                EmployeeQueueEntry.queue_round.asc(),
                EmployeeQueueEntry.position_in_queue.asc(),
                EmployeeQueueEntry.id.asc(),
            )
        )
        if for_update:
            query = query.with_for_update()
        else:
            query = query.options(joinedload(EmployeeQueueEntry.employee))
        return query.all()

    @staticmethod
    def get_max_active_position(db: Session, facility_id: int) -> int:
        return (
            db.query(func.max(EmployeeQueueEntry.position_in_queue))
            .filter(
                EmployeeQueueEntry.facility_id == facility_id,
                EmployeeQueueEntry.is_active.is_(True),
            )
            .scalar()
            or 0
        )

    @staticmethod
    def create_entry(db: Session, **entry_data) -> EmployeeQueueEntry:
        entry = EmployeeQueueEntry(**entry_data)
        db.add(entry)
        db.flush()
        return entry

    @staticmethod
    def compact_positions(db: Session, facility_id: int) -> dict[int, int]:
        """
        Renumber active entries 1..n in (queue_round, position) order.

        Rows are locked for the rest of the transaction and rewritten by a
        single UPDATE so concurrent check-outs cannot interleave.
        Returns {entry_id: new_position}.
        """
        entries = QueueRepository.get_active_entries(db, facility_id, for_update=True)
        positions = {entry.id: index for index, entry in enumerate(entries, start=1)}
        if not positions:
            return positions

        db.execute(
            update(EmployeeQueueEntry)
            .where(EmployeeQueueEntry.id.in_(list(positions)))
            .values(position_in_queue=case(positions, value=EmployeeQueueEntry.id))
            .execution_options(synchronize_session="fetch")
        )
        for entry in entries:
            record_change(db, EmployeeQueueEntry.__tablename__, UPDATE, row_to_dict(entry))
        return positions

    # Customer queue
    @staticmethod
    def get_waiting_customers(db: Session, facility_id: int) -> list[CustomerQueueEntry]:
        return (
            db.query(CustomerQueueEntry)
            .options(joinedload(CustomerQueueEntry.service))
            .filter(
                CustomerQueueEntry.facility_id == facility_id,
                CustomerQueueEntry.status == WAITING,
            )
            .order_by(CustomerQueueEntry.queue_position.asc(), CustomerQueueEntry.id.asc())
            .all()
        )

    @staticmethod
    def get_oldest_waiting_customer(db: Session, facility_id: int) -> Optional[CustomerQueueEntry]:
        """Head of the wait queue; rows already taken by another transaction are skipped"""
        return (
            db.query(CustomerQueueEntry)
            .filter(
                CustomerQueueEntry.facility_id == facility_id,
                CustomerQueueEntry.status == WAITING,
            )
            .order_by(CustomerQueueEntry.queue_position.asc(), CustomerQueueEntry.id.asc())
            .with_for_update(skip_locked=True)
            .first()
        )

    @staticmethod
    def get_customer_entry(
        db: Session, customer_queue_id: int, facility_id: int
    ) -> Optional[CustomerQueueEntry]:
        return (
            db.query(CustomerQueueEntry)
            .filter(
                CustomerQueueEntry.id == customer_queue_id,
                CustomerQueueEntry.facility_id == facility_id,
            )
            .with_for_update()
            .first()
        )

    @staticmethod
    def create_customer_entry(db: Session, **entry_data) -> CustomerQueueEntry:
        entry = CustomerQueueEntry(**entry_data)
        db.add(entry)
        db.flush()
        return entry

    @staticmethod
    def delete_customer_entry(db: Session, entry: CustomerQueueEntry) -> None:
        db.delete(entry)
        db.flush()

    @staticmethod
    def next_queue_position(db: Session, facility_id: int, day: date) -> int:
        """
        Increment the facility's counter for ``day`` and return the new value.

        One INSERT .. ON CONFLICT DO UPDATE .. RETURNING statement creates the
        row on the first walk-in of the day and increments it afterwards.
        """
        dialect = db.get_bind().dialect.name
        insert = UPSERT_INSERTS.get(dialect)
        if insert is None:
            raise NotImplementedError(f"Atomic queue counter is not supported on {dialect}")

        table = DailyFacilityQueueCounter.__table__
        stmt = (
            insert(table)
            .values(facility_id=facility_id, date=day, current_position=1)
            .on_conflict_do_update(
                index_elements=[table.c.facility_id, table.c.date],
                set_={"current_position": table.c.current_position + 1},
            )
            .returning(table.c.current_position)
        )
        return db.execute(stmt).scalar_one()

    # Appointments
    @staticmethod
    def get_appointment(
        db: Session, appointment_id: int, facility_id: int, for_update: bool = False
    ) -> Optional[Appointment]:
        query = db.query(Appointment).filter(
            Appointment.id == appointment_id, Appointment.facility_id == facility_id
        )
        if for_update:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def create_appointment(db: Session, **appointment_data) -> Appointment:
        appointment = Appointment(**appointment_data)
        db.add(appointment)
        db.flush()
        return appointment

    @staticmethod
    def get_overlapping_appointments(
        db: Session,
        employee_id: int,
        start_time: datetime,
        end_time: datetime,
        exclude_id: Optional[int] = None,
    ) -> list[Appointment]:
        """
        Blocking appointments of an employee that overlap [start_time, end_time).

        Overlap means the new start falls inside an existing appointment, the
        new end falls inside it, or the existing one lies within the new window.
        """
        query = db.query(Appointment).filter(
            Appointment.employee_id == employee_id,
            Appointment.status.in_(BLOCKING_STATUSES),
            or_(
                and_(Appointment.start_time <= start_time, Appointment.end_time > start_time),
                and_(Appointment.start_time < end_time, Appointment.end_time >= end_time),
                and_(Appointment.start_time >= start_time, Appointment.end_time <= end_time),
            ),
        )
        if exclude_id is not None:
            query = query.filter(Appointment.id != exclude_id)
        return query.order_by(Appointment.start_time).all()

    @staticmethod
    def get_in_progress_appointments(db: Session, facility_id: int) -> list[Appointment]:
        return (
            db.query(Appointment)
            .options(joinedload(Appointment.service), joinedload(Appointment.employee))
            .filter(Appointment.facility_id == facility_id, Appointment.status == IN_PROGRESS)
            .order_by(Appointment.start_time)
            .all()
        )

    # Lookups
    @staticmethod
    def get_service(db: Session, service_id: int) -> Optional[Service]:
        return db.query(Service).filter(Service.id == service_id).first()

    @staticmethod
    def get_employee(db: Session, employee_id: int) -> Optional[Employee]:
        return db.query(Employee).filter(Employee.id == employee_id).first()
