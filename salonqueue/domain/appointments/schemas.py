"""Booking schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...shared.validators import validate_email, validate_phone


class BookingCreate(BaseModel):
    """Schema for booking a service ahead of time"""

    customer_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    service_id: int
    start_time: datetime
    employee_id: Optional[int] = None  # None books any available employee
    combo_service_id: Optional[int] = None  # second leg, booked right after the first

    @field_validator("customer_name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("Customer name is required")
        return v.strip()

    @field_validator("email")
    @classmethod
    def validate_email_field(cls, v):
        return validate_email(v)

    @field_validator("phone")
    @classmethod
    def validate_phone_field(cls, v):
        return validate_phone(v)


class PedicureAvailabilityResponse(BaseModel):
    is_available: bool
    available_chair_number: Optional[int]
    total_chairs: int
    occupied_count: int
    next_available_time: Optional[datetime] = None


class TimeSlotsResponse(BaseModel):
    date: str
    service_id: int
    employee_id: Optional[int] = None
    slots: list[datetime]
