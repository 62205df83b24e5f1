"""Queue router - FastAPI endpoints for check-in/out, walk-ins and completion"""

import logging

from fastapi import APIRouter, Depends
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ...database import get_db
from ...models import Appointment, CustomerQueueEntry, EmployeeQueueEntry
from . import results
from .results import FinishResult, QueueResult
from .schemas import (
    AcceptCheckInRequest,
    AppointmentCompletion,
    AppointmentResponse,
    AssignCustomerRequest,
    BreakRequest,
    CheckInRequest,
    CheckOutRequest,
    CustomerArrival,
    CustomerQueueEntryResponse,
    EmployeeQueueEntryResponse,
    FinishAppointmentRequest,
    FinishResultResponse,
    QueueResultResponse,
)
from .service import QueueService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/facilities/{facility_id}", tags=["Queue"])


def get_queue_service(db: Session = Depends(get_db)) -> QueueService:
    """Dependency injection for QueueService"""
    return QueueService(db)


def serialize_row(row):
    if isinstance(row, Appointment):
        return AppointmentResponse.model_validate(row).model_dump()
    if isinstance(row, EmployeeQueueEntry):
        return EmployeeQueueEntryResponse.model_validate(row).model_dump()
    if isinstance(row, CustomerQueueEntry):
        return CustomerQueueEntryResponse.model_validate(row).model_dump()
    return row


def queue_result_response(result: QueueResult) -> JSONResponse:
    body = QueueResultResponse(
        type=result.type,
        data=serialize_row(result.data),
        appointment=(
            AppointmentResponse.model_validate(result.appointment) if result.appointment else None
        ),
        error=str(result.error) if result.error else None,
    )
    if result.type == results.ERROR:
        status_code = 400
    elif result.type == results.ALREADY_CHECKED_OUT:
        status_code = 409
    else:
        status_code = 200
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def finish_result_response(result: FinishResult) -> JSONResponse:
    body = FinishResultResponse(
        status=result.status,
        completed_appointment=(
            AppointmentResponse.model_validate(result.completed_appointment)
            if result.completed_appointment
            else None
        ),
        next_appointment=(
            AppointmentResponse.model_validate(result.next_appointment)
            if result.next_appointment
            else None
        ),
        error=str(result.error) if result.error else None,
    )
    status_code = 400 if result.status == results.ERROR else 200
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


# ============================================================================
# STAFF LIFECYCLE
# ============================================================================


@router.post("/queue/check-in", response_model=QueueResultResponse)
async def check_in(
    facility_id: int,
    data: CheckInRequest,
    service: QueueService = Depends(get_queue_service),
):
    """Check an employee into today's queue"""
    return queue_result_response(service.handle_employee_check_in(data.employee_id, facility_id))


@router.post("/queue/check-out", response_model=QueueResultResponse)
async def check_out(
    facility_id: int,
    data: CheckOutRequest,
    service: QueueService = Depends(get_queue_service),
):
    """Check an employee out and renumber the remaining queue"""
    return queue_result_response(service.handle_employee_check_out(data.queue_entry_id, facility_id))


@router.post("/queue/{entry_id}/break", response_model=QueueResultResponse)
async def start_break(
    facility_id: int,
    entry_id: int,
    data: BreakRequest,
    service: QueueService = Depends(get_queue_service),
):
    return queue_result_response(service.start_break(entry_id, facility_id, data.minutes))


@router.delete("/queue/{entry_id}/break", response_model=QueueResultResponse)
async def end_break(
    facility_id: int,
    entry_id: int,
    service: QueueService = Depends(get_queue_service),
):
    return queue_result_response(service.end_break(entry_id, facility_id))


# ============================================================================
# WALK-INS
# ============================================================================


@router.post("/queue/arrivals", response_model=QueueResultResponse)
async def customer_arrival(
    facility_id: int,
    data: CustomerArrival,
    service: QueueService = Depends(get_queue_service),
):
    """Register a walk-in: assign now, schedule for approval, or add to the wait queue"""
    return queue_result_response(service.process_customer_arrival(data, facility_id))


@router.get("/queue/next")
async def next_queue_employee(
    facility_id: int,
    service: QueueService = Depends(get_queue_service),
):
    """Employee who would receive the next walk-in"""
    entry = service.get_next_queue_employee(facility_id)
    if entry is None:
        return {"employee": None}
    return {
        "employee": EmployeeQueueEntryResponse.model_validate(entry),
        "name": entry.employee.full_name if entry.employee else None,
        "table_number": entry.employee.table_number if entry.employee else None,
    }


@router.post("/queue/waiting/{customer_queue_id}/assign", response_model=QueueResultResponse)
async def assign_waiting_customer(
    facility_id: int,
    customer_queue_id: int,
    data: AssignCustomerRequest,
    service: QueueService = Depends(get_queue_service),
):
    """Reception hands a waiting customer to a chosen employee"""
    return queue_result_response(
        service.assign_waiting_customer(customer_queue_id, data.employee_queue_id, facility_id)
    )


@router.delete("/queue/waiting/{customer_queue_id}", response_model=QueueResultResponse)
async def remove_waiting_customer(
    facility_id: int,
    customer_queue_id: int,
    service: QueueService = Depends(get_queue_service),
):
    return queue_result_response(service.remove_waiting_customer(customer_queue_id, facility_id))


# ============================================================================
# APPOINTMENT PROGRESS
# ============================================================================


@router.post("/appointments/{appointment_id}/finish", response_model=FinishResultResponse)
async def finish_appointment(
    facility_id: int,
    appointment_id: int,
    data: FinishAppointmentRequest,
    service: QueueService = Depends(get_queue_service),
):
    """Complete an appointment; the employee gets the next waiting customer if any"""
    completion = AppointmentCompletion(id=appointment_id, price=data.price)
    return finish_result_response(service.finish_customer_appointment(completion, facility_id))


@router.post("/appointments/{appointment_id}/accept", response_model=QueueResultResponse)
async def accept_check_in(
    facility_id: int,
    appointment_id: int,
    data: AcceptCheckInRequest,
    service: QueueService = Depends(get_queue_service),
):
    """Staff confirms a booked or pending customer and starts the appointment"""
    return queue_result_response(
        service.accept_customer_check_in(appointment_id, data.employee_queue_id, facility_id)
    )
