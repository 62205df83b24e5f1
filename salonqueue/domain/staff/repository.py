"""Staff repository - Database operations for facilities, services and employees"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Employee, Facility, Service


class StaffRepository:
    """Repository for staff and catalogue database operations"""

    @staticmethod
    def get_facilities(db: Session) -> list[Facility]:
        return db.query(Facility).order_by(Facility.name.asc()).all()

    @staticmethod
    def get_facility(db: Session, facility_id: int) -> Optional[Facility]:
        return db.query(Facility).filter(Facility.id == facility_id).first()

    @staticmethod
    def create_facility(db: Session, **facility_data) -> Facility:
        facility = Facility(**facility_data)
        db.add(facility)
        db.commit()
        db.refresh(facility)
        return facility

    @staticmethod
    def get_services(db: Session) -> list[Service]:
        return db.query(Service).order_by(Service.name.asc()).all()

    @staticmethod
    def create_service(db: Session, **service_data) -> Service:
        service = Service(**service_data)
        db.add(service)
        db.commit()
        db.refresh(service)
        return service

    @staticmethod
    def get_employee(db: Session, employee_id: int) -> Optional[Employee]:
        return db.query(Employee).filter(Employee.id == employee_id).first()

    @staticmethod
    def get_employees(
        db: Session, facility_id: Optional[int] = None, status: Optional[str] = None
    ) -> list[Employee]:
        query = db.query(Employee)
        if facility_id is not None:
            query = query.filter(Employee.facility_id == facility_id)
        if status:
            query = query.filter(Employee.status == status)
        return query.order_by(Employee.created_at.asc(), Employee.id.asc()).all()

    @staticmethod
    def create_employee(db: Session, **employee_data) -> Employee:
        employee = Employee(**employee_data)
        db.add(employee)
        db.commit()
        db.refresh(employee)
        return employee

    @staticmethod
    def update_employee(db: Session, employee: Employee, **updates) -> Employee:
        for key, value in updates.items():
            if value is not None and hasattr(employee, key):
                setattr(employee, key, value)
        db.commit()
        db.refresh(employee)
        return employee
