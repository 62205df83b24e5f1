"""Structured outcomes returned by queue operations instead of raising"""

from dataclasses import dataclass
from typing import Any, Optional

# Arrival outcomes
IMMEDIATE_ASSIGNMENT = "IMMEDIATE_ASSIGNMENT"
PENDING_APPROVAL = "PENDING_APPROVAL"
ADDED_TO_QUEUE = "ADDED_TO_QUEUE"

# Check-in / check-out outcomes
CHECKED_IN = "CHECKED_IN"
CHECKED_IN_WITH_CUSTOMER = "CHECKED_IN_WITH_CUSTOMER"
CHECKED_OUT = "CHECKED_OUT"
ALREADY_CHECKED_OUT = "ALREADY_CHECKED_OUT"

# Completion outcomes
COMPLETED = "COMPLETED"
NEXT_CUSTOMER_ASSIGNED = "NEXT_CUSTOMER_ASSIGNED"

# Reception actions
STARTED = "STARTED"
ASSIGNED = "ASSIGNED"
REMOVED = "REMOVED"
BREAK_STARTED = "BREAK_STARTED"
BREAK_ENDED = "BREAK_ENDED"

ERROR = "ERROR"


@dataclass
class QueueResult:
    type: str
    data: Any = None
    appointment: Any = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class FinishResult:
    status: str
    completed_appointment: Any = None
    next_appointment: Any = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None
