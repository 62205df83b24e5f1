"""Staff schemas - Pydantic models for validation"""

from typing import Optional

from pydantic import BaseModel, field_validator

from ...shared.validators import validate_email


class FacilityCreate(BaseModel):
    name: str
    address: Optional[str] = None
    pedicure_chairs: int = 0

    @field_validator("pedicure_chairs")
    @classmethod
    def validate_chairs(cls, v):
        if v < 0:
            raise ValueError("Chair count must not be negative")
        return v


class FacilityResponse(BaseModel):
    id: int
    name: str
    address: Optional[str] = None
    pedicure_chairs: int

    class Config:
        from_attributes = True


class ServiceCreate(BaseModel):
    name: str
    duration: int
    price: Optional[float] = None
    is_combo: bool = False
    needs_pedicure_chair: bool = False

    @field_validator("duration")
    @classmethod
    def validate_duration(cls, v):
        if v <= 0:
            raise ValueError("Duration must be greater than 0")
        return v


class ServiceResponse(BaseModel):
    id: int
    name: str
    duration: int
    price: Optional[float] = None
    is_combo: bool
    needs_pedicure_chair: bool

    class Config:
        from_attributes = True


class EmployeeRegistration(BaseModel):
    """Schema for an employee signing up; a manager approves them later"""

    facility_id: int
    first_name: str
    last_name: str
    email: Optional[str] = None
    table_number: Optional[int] = None

    @field_validator("email")
    @classmethod
    def validate_email_field(cls, v):
        return validate_email(v)


class EmployeeApproval(BaseModel):
    table_number: Optional[int] = None


class EmployeeResponse(BaseModel):
    id: int
    facility_id: int
    first_name: str
    last_name: str
    email: Optional[str] = None
    table_number: Optional[int] = None
    status: str

    class Config:
        from_attributes = True
