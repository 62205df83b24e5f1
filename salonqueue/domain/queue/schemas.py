"""Queue domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, field_validator

from ...shared.validators import validate_contact_info


class CustomerArrival(BaseModel):
    """A walk-in (or kiosk) customer asking for a service"""

    customer_name: str
    contact_info: str
    service_id: int
    requested_start_time: Optional[datetime] = None
    combo_id: Optional[str] = None

    @field_validator("customer_name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("Customer name is required")
        return v.strip()

    @field_validator("contact_info")
    @classmethod
    def validate_contact(cls, v):
        return validate_contact_info(v)


class AppointmentCompletion(BaseModel):
    """Data needed to finish an appointment"""

    id: int
    price: float
    employee_id: Optional[int] = None

    @field_validator("price")
    @classmethod
    def validate_price(cls, v):
        if v < 0:
            raise ValueError("Price must not be negative")
        return v


class CheckInRequest(BaseModel):
    employee_id: int


class CheckOutRequest(BaseModel):
    queue_entry_id: int


class BreakRequest(BaseModel):
    minutes: Optional[int] = None

    @field_validator("minutes")
    @classmethod
    def validate_minutes(cls, v):
        if v is not None and v <= 0:
            raise ValueError("Break length must be positive")
        return v


class FinishAppointmentRequest(BaseModel):
    price: float

    @field_validator("price")
    @classmethod
    def validate_price(cls, v):
        if v < 0:
            raise ValueError("Price must not be negative")
        return v


class AcceptCheckInRequest(BaseModel):
    employee_queue_id: int


class AssignCustomerRequest(BaseModel):
    employee_queue_id: int


class AppointmentResponse(BaseModel):
    id: int
    customer_name: str
    email: Optional[str]
    phone: Optional[str]
    service_id: int
    employee_id: int
    facility_id: int
    start_time: datetime
    end_time: datetime
    status: str
    price: Optional[float] = None
    arrival_time: Optional[datetime] = None
    is_paid: bool = False
    combo_id: Optional[str] = None
    chair_number: Optional[int] = None

    class Config:
        from_attributes = True


class EmployeeQueueEntryResponse(BaseModel):
    id: int
    employee_id: int
    facility_id: int
    check_in_time: datetime
    check_out_time: Optional[datetime] = None
    is_active: bool
    queue_round: int
    position_in_queue: Optional[int] = None
    current_customer_id: Optional[int] = None
    last_assignment_time: Optional[datetime] = None
    break_start: Optional[datetime] = None
    break_end: Optional[datetime] = None

    class Config:
        from_attributes = True


class CustomerQueueEntryResponse(BaseModel):
    id: int
    facility_id: int
    customer_name: str
    contact_info: str
    service_id: int
    status: str
    queue_position: int
    combo_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class QueueResultResponse(BaseModel):
    type: str
    data: Optional[Any] = None
    appointment: Optional[AppointmentResponse] = None
    error: Optional[str] = None


class FinishResultResponse(BaseModel):
    status: str
    completed_appointment: Optional[AppointmentResponse] = None
    next_appointment: Optional[AppointmentResponse] = None
    error: Optional[str] = None
