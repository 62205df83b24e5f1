"""
Queue service - walk-in assignment, completion and staff check-in/out.

Employees are served round-robin within their check-in round: everyone who
checked in at or before the cutoff (round 1) is offered customers before
anyone who checked in later (round 2), each round in position order. When
nobody is free the customer waits in a per-facility queue and is handed to
the next employee who finishes or checks in.

Orchestration methods never raise. They return a QueueResult/FinishResult
whose ``type``/``status`` is ERROR when anything failed; every write of a
failed call is rolled back.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...config import QueueSettings
from ...database import transaction
from ...models import (
    COMPLETED as APPOINTMENT_COMPLETED,
    IN_PROGRESS,
    PENDING_APPROVAL as APPOINTMENT_PENDING_APPROVAL,
    STARTABLE_STATUSES,
    WAITING,
    Appointment,
    CustomerQueueEntry,
    EmployeeQueueEntry,
)
from ...shared.validators import split_contact_info
from . import results
from .availability import AvailabilityChecker, AvailabilityOutcome
from .errors import (
    AlreadyCheckedIn,
    AlreadyCheckedOut,
    EmployeeUnavailable,
    InvalidTransition,
    NotFoundError,
    QueueError,
)
from .repository import QueueRepository
from .results import FinishResult, QueueResult
from .schemas import AppointmentCompletion, CustomerArrival

logger = logging.getLogger(__name__)


class QueueService:
    """Service layer for the employee/customer queue"""

    def __init__(
        self,
        db: Session,
        settings: Optional[QueueSettings] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.db = db
        self.settings = settings or QueueSettings.from_env()
        self.clock = clock
        self.repo = QueueRepository()
        self.availability = AvailabilityChecker(db, clock)

    # ------------------------------------------------------------------
    # Rounds and assignment
    # ------------------------------------------------------------------

    def queue_round_for(self, moment: datetime) -> int:
        return 1 if moment.time() <= self.settings.round_cutoff else 2

    def get_next_available_employee(
        self, facility_id: int, start_time: datetime, end_time: datetime
    ) -> Optional[EmployeeQueueEntry]:
        """First available active entry, round 1 before round 2, then by position"""
        try:
            entries = self.repo.get_active_entries(self.db, facility_id)

            rounds: dict[int, list[EmployeeQueueEntry]] = {}
            for entry in entries:
                rounds.setdefault(self.queue_round_for(entry.check_in_time), []).append(entry)

            for round_number in sorted(rounds):
                for entry in rounds[round_number]:
                    if self.availability.is_employee_available(
                        entry.employee_id, start_time, end_time, facility_id
                    ):
                        return entry
            return None
        except SQLAlchemyError as e:
            logger.error(f"❌ Error finding next available employee for facility {facility_id}: {e}")
            return None

    def get_next_queue_employee(self, facility_id: int) -> Optional[EmployeeQueueEntry]:
        """Who would receive a walk-in arriving right now"""
        now = self.clock()
        duration = timedelta(minutes=self.settings.default_service_duration)
        return self.get_next_available_employee(facility_id, now, now + duration)

    def process_customer_arrival(self, customer_data: CustomerArrival, facility_id: int) -> QueueResult:
        """Assign a walk-in to an employee, schedule it for approval, or queue it"""
        try:
            with transaction(self.db):
                result = self._process_arrival(customer_data, facility_id)
            logger.info(
                f"✅ Arrival of {customer_data.customer_name} at facility {facility_id}: {result.type}"
            )
            return result
        except QueueError as e:
            logger.warning(f"⚠️ Arrival rejected at facility {facility_id}: {e}")
            return QueueResult(results.ERROR, error=e)
        except Exception as e:
            logger.error(f"❌ Error processing customer arrival at facility {facility_id}: {e}")
            return QueueResult(results.ERROR, error=e)

    def _process_arrival(self, customer_data: CustomerArrival, facility_id: int) -> QueueResult:
        service = self.repo.get_service(self.db, customer_data.service_id)
        if service is None:
            raise NotFoundError(f"Service {customer_data.service_id} not found")

        now = self.clock()
        duration = timedelta(minutes=self._service_minutes(service))
        email, phone = split_contact_info(customer_data.contact_info)
        customer = {
            "customer_name": customer_data.customer_name,
            "email": email,
            "phone": phone,
            "service_id": service.id,
            "facility_id": facility_id,
            "arrival_time": now,
            "combo_id": customer_data.combo_id,
        }

        requested = customer_data.requested_start_time
        if requested and requested - now > timedelta(minutes=self.settings.early_approval_minutes):
            entry = self.get_next_available_employee(facility_id, requested, requested + duration)
            if entry:
                appointment = self.repo.create_appointment(
                    self.db,
                    **customer,
                    employee_id=entry.employee_id,
                    start_time=requested,
                    end_time=requested + duration,
                    status=APPOINTMENT_PENDING_APPROVAL,
                )
                return QueueResult(results.PENDING_APPROVAL, data=appointment, appointment=appointment)

        entry = self.get_next_available_employee(facility_id, now, now + duration)
        if entry:
            appointment = self.repo.create_appointment(
                self.db,
                **customer,
                employee_id=entry.employee_id,
                start_time=now,
                end_time=now + duration,
                status=IN_PROGRESS,
            )
            entry.current_customer_id = appointment.id
            entry.last_assignment_time = now
            self.db.flush()
            return QueueResult(results.IMMEDIATE_ASSIGNMENT, data=appointment, appointment=appointment)

        position = self.repo.next_queue_position(self.db, facility_id, now.date())
        queue_entry = self.repo.create_customer_entry(
            self.db,
            facility_id=facility_id,
            customer_name=customer_data.customer_name,
            contact_info=customer_data.contact_info,
            service_id=service.id,
            status=WAITING,
            queue_position=position,
            combo_id=customer_data.combo_id,
            created_at=now,
        )
        return QueueResult(results.ADDED_TO_QUEUE, data=queue_entry)

    def _service_minutes(self, service) -> int:
        if service is not None and service.duration:
            return service.duration
        return self.settings.default_service_duration

    def _serve_waiting_customer(
        self, customer: CustomerQueueEntry, entry: EmployeeQueueEntry, now: datetime
    ) -> Appointment:
        """Turn a waiting customer into an in-progress appointment for ``entry``"""
        service = self.repo.get_service(self.db, customer.service_id)
        minutes = self._service_minutes(service)
        email, phone = split_contact_info(customer.contact_info)

        appointment = self.repo.create_appointment(
            self.db,
            customer_name=customer.customer_name,
            email=email,
            phone=phone,
            service_id=customer.service_id,
            employee_id=entry.employee_id,
            facility_id=customer.facility_id,
            start_time=now,
            end_time=now + timedelta(minutes=minutes),
            status=IN_PROGRESS,
            arrival_time=customer.created_at,
            combo_id=customer.combo_id,
        )
        self.repo.delete_customer_entry(self.db, customer)

        entry.current_customer_id = appointment.id
        entry.last_assignment_time = now
        self.db.flush()
        return appointment

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    def finish_customer_appointment(
        self, appointment_data: AppointmentCompletion, facility_id: int
    ) -> FinishResult:
        """Complete an appointment and hand the employee the next waiting customer"""
        if appointment_data.price is None or appointment_data.price < 0:
            return FinishResult(results.ERROR, error=ValueError("Price must not be negative"))

        try:
            with transaction(self.db):
                result = self._finish(appointment_data, facility_id)
            logger.info(f"✅ Appointment {appointment_data.id} finished: {result.status}")
            return result
        except QueueError as e:
            logger.warning(f"⚠️ Cannot finish appointment {appointment_data.id}: {e}")
            return FinishResult(results.ERROR, error=e)
        except Exception as e:
            logger.error(f"❌ Error finishing appointment {appointment_data.id}: {e}")
            return FinishResult(results.ERROR, error=e)

    def _finish(self, appointment_data: AppointmentCompletion, facility_id: int) -> FinishResult:
        appointment = self.repo.get_appointment(
            self.db, appointment_data.id, facility_id, for_update=True
        )
        if appointment is None:
            raise NotFoundError(f"Appointment {appointment_data.id} not found")
        if appointment.status == APPOINTMENT_COMPLETED:
            raise InvalidTransition(f"Appointment {appointment.id} is already completed")
        if appointment.status != IN_PROGRESS:
            raise InvalidTransition(
                f"Appointment {appointment.id} in status {appointment.status} has not been started"
            )

        now = self.clock()
        appointment.status = APPOINTMENT_COMPLETED
        appointment.price = appointment_data.price
        appointment.end_time = now
        self.db.flush()

        entry = self.repo.get_active_entry(
            self.db, appointment.employee_id, facility_id, for_update=True
        )
        if entry is None:
            # Checked out while serving: never hand out new customers
            return FinishResult(results.COMPLETED, completed_appointment=appointment)
        if entry.current_customer_id not in (None, appointment.id):
            # Already serving someone else
            return FinishResult(results.COMPLETED, completed_appointment=appointment)

        customer = self.repo.get_oldest_waiting_customer(self.db, facility_id)
        if customer:
            next_appointment = self._serve_waiting_customer(customer, entry, now)
            return FinishResult(
                results.NEXT_CUSTOMER_ASSIGNED,
                completed_appointment=appointment,
                next_appointment=next_appointment,
            )

        entry.current_customer_id = None
        self.db.flush()
        return FinishResult(results.COMPLETED, completed_appointment=appointment)

    def accept_customer_check_in(
        self, appointment_id: int, employee_queue_id: int, facility_id: int
    ) -> QueueResult:
        """Staff confirmation that starts a scheduled or pending appointment now"""
        try:
            with transaction(self.db):
                entry = self.repo.get_entry(self.db, employee_queue_id, facility_id, for_update=True)
                if entry is None or not entry.is_active:
                    raise NotFoundError("Employee is not checked in")
                if entry.current_customer_id:
                    raise EmployeeUnavailable("Employee is already assigned to a customer")

                appointment = self.repo.get_appointment(
                    self.db, appointment_id, facility_id, for_update=True
                )
                if appointment is None:
                    raise NotFoundError("Appointment not found")
                if appointment.status not in STARTABLE_STATUSES:
                    raise InvalidTransition(
                        f"Appointment in status {appointment.status} cannot be started"
                    )
                if appointment.employee_id != entry.employee_id:
                    raise InvalidTransition("Appointment is assigned to different employee")

                now = self.clock()
                duration = appointment.end_time - appointment.start_time
                appointment.status = IN_PROGRESS
                appointment.start_time = now
                appointment.end_time = now + duration
                if appointment.arrival_time is None:
                    appointment.arrival_time = now

                entry.current_customer_id = appointment.id
                entry.last_assignment_time = now
                self.db.flush()

            logger.info(f"✅ Appointment {appointment_id} started by queue entry {employee_queue_id}")
            return QueueResult(results.STARTED, data=entry, appointment=appointment)
        except QueueError as e:
            logger.warning(f"⚠️ Cannot start appointment {appointment_id}: {e}")
            return QueueResult(results.ERROR, error=e)
        except Exception as e:
            logger.error(f"❌ Error accepting customer check-in for {appointment_id}: {e}")
            return QueueResult(results.ERROR, error=e)

    # ------------------------------------------------------------------
    # Reception actions on the wait queue
    # ------------------------------------------------------------------

    def assign_waiting_customer(
        self, customer_queue_id: int, employee_queue_id: int, facility_id: int
    ) -> QueueResult:
        """Hand a specific waiting customer to a specific checked-in employee"""
        try:
            with transaction(self.db):
                customer = self.repo.get_customer_entry(self.db, customer_queue_id, facility_id)
                if customer is None:
                    raise NotFoundError("Waiting customer not found")

                entry = self.repo.get_entry(self.db, employee_queue_id, facility_id, for_update=True)
                if entry is None or not entry.is_active:
                    raise NotFoundError("Employee is not checked in")

                now = self.clock()
                service = self.repo.get_service(self.db, customer.service_id)
                minutes = self._service_minutes(service)
                outcome = self.availability.check_employee_availability(
                    entry.employee_id, now, now + timedelta(minutes=minutes), facility_id
                )
                if outcome is not AvailabilityOutcome.AVAILABLE:
                    raise EmployeeUnavailable(f"Employee is not available ({outcome.value})")

                appointment = self._serve_waiting_customer(customer, entry, now)

            logger.info(f"✅ Customer {customer_queue_id} assigned to queue entry {employee_queue_id}")
            return QueueResult(results.ASSIGNED, data=entry, appointment=appointment)
        except QueueError as e:
            logger.warning(f"⚠️ Cannot assign customer {customer_queue_id}: {e}")
            return QueueResult(results.ERROR, error=e)
        except Exception as e:
            logger.error(f"❌ Error assigning customer {customer_queue_id}: {e}")
            return QueueResult(results.ERROR, error=e)

    def remove_waiting_customer(self, customer_queue_id: int, facility_id: int) -> QueueResult:
        try:
            with transaction(self.db):
                customer = self.repo.get_customer_entry(self.db, customer_queue_id, facility_id)
                if customer is None:
                    raise NotFoundError("Waiting customer not found")
                self.repo.delete_customer_entry(self.db, customer)
            logger.info(f"✅ Waiting customer {customer_queue_id} removed at facility {facility_id}")
            return QueueResult(results.REMOVED)
        except QueueError as e:
            logger.warning(f"⚠️ Cannot remove waiting customer {customer_queue_id}: {e}")
            return QueueResult(results.ERROR, error=e)
        except Exception as e:
            logger.error(f"❌ Error removing waiting customer {customer_queue_id}: {e}")
            return QueueResult(results.ERROR, error=e)

    # ------------------------------------------------------------------
    # Check-in / check-out
    # ------------------------------------------------------------------

    def handle_employee_check_in(self, employee_id: int, facility_id: int) -> QueueResult:
        """Start an employee's shift and serve the head of the wait queue if any"""
        try:
            with transaction(self.db):
                result = self._check_in(employee_id, facility_id)
            logger.info(f"✅ Employee {employee_id} checked in at facility {facility_id}: {result.type}")
            return result
        except QueueError as e:
            logger.warning(f"⚠️ Check-in rejected for employee {employee_id}: {e}")
            return QueueResult(results.ERROR, error=e)
        except Exception as e:
            logger.error(f"❌ Error checking in employee {employee_id}: {e}")
            return QueueResult(results.ERROR, error=e)

    def _check_in(self, employee_id: int, facility_id: int) -> QueueResult:
        employee = self.repo.get_employee(self.db, employee_id)
        if employee is None or employee.facility_id != facility_id:
            raise NotFoundError(f"Employee {employee_id} not found at facility {facility_id}")
        if employee.status != "approved":
            raise InvalidTransition(f"Employee {employee_id} is not approved")
        if self.repo.get_active_entry(self.db, employee_id, facility_id, for_update=True):
            raise AlreadyCheckedIn(f"Employee {employee_id} is already checked in")

        now = self.clock()
        entry = self.repo.create_entry(
            self.db,
            employee_id=employee_id,
            facility_id=facility_id,
            check_in_time=now,
            is_active=True,
            queue_round=self.queue_round_for(now),
            position_in_queue=self.repo.get_max_active_position(self.db, facility_id) + 1,
        )

        customer = self.repo.get_oldest_waiting_customer(self.db, facility_id)
        if customer:
            appointment = self._serve_waiting_customer(customer, entry, now)
            return QueueResult(results.CHECKED_IN_WITH_CUSTOMER, data=entry, appointment=appointment)

        return QueueResult(results.CHECKED_IN, data=entry)

    def handle_employee_check_out(self, queue_entry_id: int, facility_id: int) -> QueueResult:
        """End a shift and close the gap the employee leaves in the queue"""
        try:
            with transaction(self.db):
                entry = self.repo.get_entry(self.db, queue_entry_id, facility_id, for_update=True)
                if entry is None:
                    raise NotFoundError(f"Queue entry {queue_entry_id} not found")
                if not entry.is_active:
                    raise AlreadyCheckedOut(f"Queue entry {queue_entry_id} is already checked out")

                entry.is_active = False
                entry.check_out_time = self.clock()
                entry.current_customer_id = None
                self.db.flush()

                self.repo.compact_positions(self.db, facility_id)

            logger.info(f"✅ Queue entry {queue_entry_id} checked out at facility {facility_id}")
            return QueueResult(results.CHECKED_OUT, data=entry)
        except AlreadyCheckedOut as e:
            logger.info(f"ℹ️ {e}")
            return QueueResult(results.ALREADY_CHECKED_OUT, data=entry, error=e)
        except QueueError as e:
            logger.warning(f"⚠️ Check-out rejected for entry {queue_entry_id}: {e}")
            return QueueResult(results.ERROR, error=e)
        except Exception as e:
            logger.error(f"❌ Error checking out queue entry {queue_entry_id}: {e}")
            return QueueResult(results.ERROR, error=e)

    # ------------------------------------------------------------------
    # Breaks
    # ------------------------------------------------------------------

    def start_break(
        self, queue_entry_id: int, facility_id: int, minutes: Optional[int] = None
    ) -> QueueResult:
        try:
            with transaction(self.db):
                entry = self._get_active_entry_or_raise(queue_entry_id, facility_id)
                now = self.clock()
                entry.break_start = now
                entry.break_end = now + timedelta(minutes=minutes) if minutes else None
            logger.info(f"✅ Queue entry {queue_entry_id} started a break")
            return QueueResult(results.BREAK_STARTED, data=entry)
        except QueueError as e:
            logger.warning(f"⚠️ Cannot start break for queue entry {queue_entry_id}: {e}")
            return QueueResult(results.ERROR, error=e)
        except Exception as e:
            logger.error(f"❌ Error starting break for queue entry {queue_entry_id}: {e}")
            return QueueResult(results.ERROR, error=e)

    def end_break(self, queue_entry_id: int, facility_id: int) -> QueueResult:
        try:
            with transaction(self.db):
                entry = self._get_active_entry_or_raise(queue_entry_id, facility_id)
                if entry.break_start is None:
                    raise InvalidTransition("Employee is not on a break")
                entry.break_end = self.clock()
            logger.info(f"✅ Queue entry {queue_entry_id} ended a break")
            return QueueResult(results.BREAK_ENDED, data=entry)
        except QueueError as e:
            logger.warning(f"⚠️ Cannot end break for queue entry {queue_entry_id}: {e}")
            return QueueResult(results.ERROR, error=e)
        except Exception as e:
            logger.error(f"❌ Error ending break for queue entry {queue_entry_id}: {e}")
            return QueueResult(results.ERROR, error=e)

    def _get_active_entry_or_raise(self, queue_entry_id: int, facility_id: int) -> EmployeeQueueEntry:
        entry = self.repo.get_entry(self.db, queue_entry_id, facility_id, for_update=True)
        if entry is None or not entry.is_active:
            raise NotFoundError(f"Queue entry {queue_entry_id} is not active")
        return entry
