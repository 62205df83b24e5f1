"""Staff service - facilities, service catalogue and employee approval"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Employee, Facility, Service
from .repository import StaffRepository
from .schemas import EmployeeApproval, EmployeeRegistration, FacilityCreate, ServiceCreate

logger = logging.getLogger(__name__)

PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"


class StaffService:
    """Service layer for staff administration"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = StaffRepository()

    def get_facilities(self) -> list[Facility]:
        return self.repo.get_facilities(self.db)

    def get_facility(self, facility_id: int) -> Facility:
        facility = self.repo.get_facility(self.db, facility_id)
        if not facility:
            raise HTTPException(status_code=404, detail="Facility not found")
        return facility

    def create_facility(self, data: FacilityCreate) -> Facility:
        logger.info(f"🏢 Creating facility {data.name}")
        return self.repo.create_facility(self.db, **data.model_dump())

    def get_services(self) -> list[Service]:
        return self.repo.get_services(self.db)

    def create_service(self, data: ServiceCreate) -> Service:
        return self.repo.create_service(self.db, **data.model_dump())

    def register_employee(self, data: EmployeeRegistration) -> Employee:
        self.get_facility(data.facility_id)
        employee = self.repo.create_employee(self.db, **data.model_dump(), status=PENDING)
        logger.info(f"👤 Employee {employee.id} registered, awaiting approval")
        return employee

    def get_employees(self, facility_id: Optional[int] = None, status: Optional[str] = None) -> list[Employee]:
        return self.repo.get_employees(self.db, facility_id, status)

    def _get_pending(self, employee_id: int) -> Employee:
        employee = self.repo.get_employee(self.db, employee_id)
        if not employee:
            raise HTTPException(status_code=404, detail="Employee not found")
        if employee.status != PENDING:
            raise HTTPException(status_code=400, detail=f"Employee is already {employee.status}")
        return employee

    def approve_employee(self, employee_id: int, data: EmployeeApproval) -> Employee:
        employee = self._get_pending(employee_id)
        logger.info(f"✅ Approving employee {employee_id}")
        return self.repo.update_employee(
            self.db, employee, status=APPROVED, table_number=data.table_number
        )

    def reject_employee(self, employee_id: int) -> Employee:
        employee = self._get_pending(employee_id)
        logger.info(f"🚫 Rejecting employee {employee_id}")
        return self.repo.update_employee(self.db, employee, status=REJECTED)
