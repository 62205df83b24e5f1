from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

# Appointment statuses
SCHEDULED = "scheduled"
IN_PROGRESS = "in_progress"
PENDING_APPROVAL = "pending_approval"
PENDING_CHECK_IN = "pending_check_in"
COMPLETED = "completed"
CANCELLED = "cancelled"

# Statuses that occupy an employee's time
BLOCKING_STATUSES = (SCHEDULED, IN_PROGRESS, PENDING_APPROVAL, PENDING_CHECK_IN)
# Statuses staff can still confirm into in_progress
STARTABLE_STATUSES = (SCHEDULED, PENDING_APPROVAL, PENDING_CHECK_IN)

WAITING = "waiting"


class Facility(Base):
    __tablename__ = "facilities"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    address = Column(String(500), nullable=True)
    pedicure_chairs = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    employees = relationship("Employee", back_populates="facility")


class Service(Base):
    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    duration = Column(Integer, nullable=False)  # minutes
    price = Column(Float, nullable=True)
    is_combo = Column(Boolean, default=False, nullable=False)
    needs_pedicure_chair = Column(Boolean, default=False, nullable=False)


class Employee(Base):
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    facility_id = Column(Integer, ForeignKey("facilities.id"), nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=True)
    table_number = Column(Integer, nullable=True)
    # pending -> approved | rejected
    status = Column(String(20), default="pending", nullable=False, index=True)
    created_at = Column(DateTime, server_default=func.now())

    facility = relationship("Facility", back_populates="employees")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class EmployeeQueueEntry(Base):
    """One employee's participation in a facility's daily queue"""

    __tablename__ = "employee_queue"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    facility_id = Column(Integer, ForeignKey("facilities.id"), nullable=False, index=True)
    check_in_time = Column(DateTime, nullable=False)
    check_out_time = Column(DateTime, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    queue_round = Column(Integer, default=1, nullable=False)
    position_in_queue = Column(Integer, nullable=True)
    current_customer_id = Column(Integer, ForeignKey("appointments.id"), nullable=True)
    last_assignment_time = Column(DateTime, nullable=True)
    break_start = Column(DateTime, nullable=True)
    break_end = Column(DateTime, nullable=True)

    employee = relationship("Employee")
    current_appointment = relationship("Appointment", foreign_keys=[current_customer_id])


class CustomerQueueEntry(Base):
    """A walk-in customer waiting for any free employee"""

    __tablename__ = "customer_queue"

    id = Column(Integer, primary_key=True, index=True)
    facility_id = Column(Integer, ForeignKey("facilities.id"), nullable=False, index=True)
    customer_name = Column(String(255), nullable=False)
    contact_info = Column(String(255), nullable=False)  # email or phone
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    status = Column(String(20), default=WAITING, nullable=False)
    queue_position = Column(Integer, nullable=False)
    combo_id = Column(String(50), nullable=True, index=True)
    created_at = Column(DateTime, nullable=False)

    service = relationship("Service")


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)
    customer_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    facility_id = Column(Integer, ForeignKey("facilities.id"), nullable=False, index=True)
    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime, nullable=False)
    # scheduled | pending_approval | pending_check_in -> in_progress -> completed
    status = Column(String(30), default=SCHEDULED, nullable=False, index=True)
    price = Column(Float, nullable=True)
    arrival_time = Column(DateTime, nullable=True)
    is_paid = Column(Boolean, default=False, nullable=False)
    combo_id = Column(String(50), nullable=True, index=True)
    chair_number = Column(Integer, nullable=True)  # pedicure chair
    created_at = Column(DateTime, server_default=func.now())

    service = relationship("Service")
    employee = relationship("Employee")


class DailyFacilityQueueCounter(Base):
    """Per facility per day counter handing out customer queue positions"""

    __tablename__ = "daily_facility_queue"
    __table_args__ = (UniqueConstraint("facility_id", "date", name="uq_daily_queue_facility_date"),)

    id = Column(Integer, primary_key=True, index=True)
    facility_id = Column(Integer, ForeignKey("facilities.id"), nullable=False)
    date = Column(Date, nullable=False)
    current_position = Column(Integer, default=0, nullable=False)
