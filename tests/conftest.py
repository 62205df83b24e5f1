from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from salonqueue import models  # noqa: F401
from salonqueue.config import QueueSettings
from salonqueue.database import Base
from salonqueue.domain.appointments.service import BookingService
from salonqueue.domain.queue.service import QueueService
from salonqueue.models import (
    SCHEDULED,
    WAITING,
    Appointment,
    CustomerQueueEntry,
    Employee,
    EmployeeQueueEntry,
    Facility,
    Service,
)
from salonqueue.realtime import ChangeFeed

MONDAY = datetime(2026, 3, 2)


class FrozenClock:
    """Callable clock that only moves when told to"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, hour: int, minute: int = 0) -> datetime:
        self.now = self.now.replace(hour=hour, minute=minute, second=0, microsecond=0)
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


def at(hour: int, minute: int = 0, day: datetime = MONDAY) -> datetime:
    return day.replace(hour=hour, minute=minute)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def feed():
    return ChangeFeed()


@pytest.fixture
def session_factory(engine, feed):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, info={"change_feed": feed})


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FrozenClock(at(9, 0))


@pytest.fixture
def settings():
    return QueueSettings()


@pytest.fixture
def queue_service(db, settings, clock):
    return QueueService(db, settings, clock)


@pytest.fixture
def booking_service(db, settings, clock):
    return BookingService(db, settings, clock)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_facility(db):
    def factory(name="Nail Studio Centrum", pedicure_chairs=0):
        facility = Facility(name=name, address="Main Street 1", pedicure_chairs=pedicure_chairs)
        db.add(facility)
        db.commit()
        return facility

    return factory


@pytest.fixture
def make_service(db):
    def factory(name="Gel manicure", duration=30, price=25.0, needs_pedicure_chair=False):
        service = Service(
            name=name, duration=duration, price=price, needs_pedicure_chair=needs_pedicure_chair
        )
        db.add(service)
        db.commit()
        return service

    return factory


@pytest.fixture
def make_employee(db):
    counter = {"n": 0}

    def factory(facility, first_name=None, status="approved", table_number=None):
        counter["n"] += 1
        employee = Employee(
            facility_id=facility.id,
            first_name=first_name or f"Employee{counter['n']}",
            last_name="Novak",
            email=f"employee{counter['n']}@example.com",
            table_number=table_number if table_number is not None else counter["n"],
            status=status,
        )
        db.add(employee)
        db.commit()
        return employee

    return factory


@pytest.fixture
def make_entry(db):
    """Queue entry written directly, bypassing check-in"""

    def factory(employee, check_in_time, position, queue_round=1, **extra):
        entry = EmployeeQueueEntry(
            employee_id=employee.id,
            facility_id=employee.facility_id,
            check_in_time=check_in_time,
            is_active=True,
            queue_round=queue_round,
            position_in_queue=position,
            **extra,
        )
        db.add(entry)
        db.commit()
        return entry

    return factory


@pytest.fixture
def make_appointment(db):
    def factory(employee, service, start_time, minutes=None, status=SCHEDULED, **extra):
        appointment = Appointment(
            customer_name=extra.pop("customer_name", "Booked Customer"),
            email=extra.pop("email", "booked@example.com"),
            service_id=service.id,
            employee_id=employee.id,
            facility_id=employee.facility_id,
            start_time=start_time,
            end_time=start_time + timedelta(minutes=minutes or service.duration),
            status=status,
            **extra,
        )
        db.add(appointment)
        db.commit()
        return appointment

    return factory


@pytest.fixture
def make_waiting_customer(db):
    def factory(facility, service, position, created_at, name="Waiting Customer"):
        customer = CustomerQueueEntry(
            facility_id=facility.id,
            customer_name=name,
            contact_info="waiting@example.com",
            service_id=service.id,
            status=WAITING,
            queue_position=position,
            created_at=created_at,
        )
        db.add(customer)
        db.commit()
        return customer

    return factory


@pytest.fixture
def salon(make_facility, make_service, make_employee):
    """Facility with a 30 minute service and two approved employees"""
    facility = make_facility()
    service = make_service()
    anna = make_employee(facility, first_name="Anna")
    berta = make_employee(facility, first_name="Berta")
    return facility, service, anna, berta
