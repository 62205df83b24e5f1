"""Staff router - FastAPI endpoints for facilities, services and employees"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...database import get_db
from .schemas import (
    EmployeeApproval,
    EmployeeRegistration,
    EmployeeResponse,
    FacilityCreate,
    FacilityResponse,
    ServiceCreate,
    ServiceResponse,
)
from .service import PENDING, StaffService

router = APIRouter(tags=["Staff"])


def get_staff_service(db: Session = Depends(get_db)) -> StaffService:
    """Dependency injection for StaffService"""
    return StaffService(db)


@router.get("/facilities", response_model=list[FacilityResponse])
async def list_facilities(service: StaffService = Depends(get_staff_service)):
    return service.get_facilities()


@router.post("/facilities", response_model=FacilityResponse)
async def create_facility(data: FacilityCreate, service: StaffService = Depends(get_staff_service)):
    return service.create_facility(data)


@router.get("/services", response_model=list[ServiceResponse])
async def list_services(service: StaffService = Depends(get_staff_service)):
    return service.get_services()


@router.post("/services", response_model=ServiceResponse)
async def create_service(data: ServiceCreate, service: StaffService = Depends(get_staff_service)):
    return service.create_service(data)


@router.get("/employees", response_model=list[EmployeeResponse])
async def list_employees(
    facility_id: Optional[int] = Query(None),
    status: Optional[str] = Query(None),
    service: StaffService = Depends(get_staff_service),
):
    return service.get_employees(facility_id, status)


@router.get("/employees/pending", response_model=list[EmployeeResponse])
async def list_pending_employees(service: StaffService = Depends(get_staff_service)):
    return service.get_employees(status=PENDING)


@router.post("/employees", response_model=EmployeeResponse)
async def register_employee(
    data: EmployeeRegistration, service: StaffService = Depends(get_staff_service)
):
    """Register an employee; they cannot check in until approved"""
    return service.register_employee(data)


@router.post("/employees/{employee_id}/approve", response_model=EmployeeResponse)
async def approve_employee(
    employee_id: int,
    data: EmployeeApproval,
    service: StaffService = Depends(get_staff_service),
):
    return service.approve_employee(employee_id, data)


@router.post("/employees/{employee_id}/reject", response_model=EmployeeResponse)
async def reject_employee(employee_id: int, service: StaffService = Depends(get_staff_service)):
    return service.reject_employee(employee_id)
