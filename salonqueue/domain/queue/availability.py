"""Employee availability checks used by the assignment engine"""

import enum
import logging
from datetime import datetime
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...models import EmployeeQueueEntry
from .repository import QueueRepository

logger = logging.getLogger(__name__)


class AvailabilityOutcome(str, enum.Enum):
    AVAILABLE = "available"
    NOT_CHECKED_IN = "not_checked_in"
    ON_BREAK = "on_break"
    BUSY = "busy"
    # The check itself failed; callers treat it as unavailable
    UNKNOWN = "unknown"

    @property
    def is_available(self) -> bool:
        return self is AvailabilityOutcome.AVAILABLE


def is_on_break(entry: EmployeeQueueEntry, now: datetime) -> bool:
    return entry.break_start is not None and (entry.break_end is None or entry.break_end > now)


class AvailabilityChecker:
    """Decides whether an employee can take a customer in a time window"""

    def __init__(self, db: Session, clock: Callable[[], datetime] = datetime.now):
        self.db = db
        self.clock = clock
        self.repo = QueueRepository()

    def check_employee_availability(
        self, employee_id: int, start_time: datetime, end_time: datetime, facility_id: int
    ) -> AvailabilityOutcome:
        try:
            entry = self.repo.get_active_entry(self.db, employee_id, facility_id)
            if entry is None:
                return AvailabilityOutcome.NOT_CHECKED_IN

            now = self.clock()
            if is_on_break(entry, now):
                return AvailabilityOutcome.ON_BREAK

            # The current customer blocks until finished, even past its estimated end
            if entry.current_customer_id is not None and start_time <= now:
                return AvailabilityOutcome.BUSY

            conflicts = self.repo.get_overlapping_appointments(
                self.db, employee_id, start_time, end_time
            )
            if conflicts:
                return AvailabilityOutcome.BUSY

            return AvailabilityOutcome.AVAILABLE
        except SQLAlchemyError as e:
            logger.error(
                f"❌ Availability check failed for employee {employee_id} "
                f"at facility {facility_id}, treating as unavailable: {e}"
            )
            return AvailabilityOutcome.UNKNOWN

    def is_employee_available(
        self, employee_id: int, start_time: datetime, end_time: datetime, facility_id: int
    ) -> bool:
        return self.check_employee_availability(
            employee_id, start_time, end_time, facility_id
        ).is_available
