"""
Reception queue board.

Keeps a serialized snapshot of one facility's queue and drops it whenever the
change feed reports a committed change to that facility's queue tables. The
next read re-queries. Nothing here mutates queue state.
"""

import logging
from datetime import datetime
from threading import Lock
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ..config import QueueSettings
from ..domain.queue.availability import is_on_break
from ..domain.queue.repository import QueueRepository
from ..domain.queue.schemas import (
    AppointmentResponse,
    CustomerQueueEntryResponse,
    EmployeeQueueEntryResponse,
)
from ..domain.queue.service import QueueService
from ..models import Appointment, CustomerQueueEntry, EmployeeQueueEntry
from ..realtime import ChangeEvent, ChangeFeed

logger = logging.getLogger(__name__)

WATCHED_TABLES = (
    EmployeeQueueEntry.__tablename__,
    CustomerQueueEntry.__tablename__,
    Appointment.__tablename__,
)


class QueueBoard:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        feed: ChangeFeed,
        facility_id: int,
        settings: Optional[QueueSettings] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.session_factory = session_factory
        self.facility_id = facility_id
        self.settings = settings or QueueSettings.from_env()
        self.clock = clock
        self.refresh_count = 0
        self._snapshot: Optional[dict] = None
        self._lock = Lock()
        self._unsubscribers = [
            feed.on_change(table, {"facility_id": facility_id}, self._invalidate)
            for table in WATCHED_TABLES
        ]

    def _invalidate(self, change: ChangeEvent) -> None:
        logger.debug(f"🔄 Board {self.facility_id} invalidated by {change.type} on {change.table}")
        with self._lock:
            self._snapshot = None

    @property
    def is_stale(self) -> bool:
        return self._snapshot is None

    def snapshot(self) -> dict:
        with self._lock:
            if self._snapshot is None:
                self._snapshot = self._load()
                self.refresh_count += 1
            return self._snapshot

    def _load(self) -> dict:
        db = self.session_factory()
        try:
            repo = QueueRepository()
            now = self.clock()

            employees = []
            for entry in repo.get_active_entries(db, self.facility_id):
                row = EmployeeQueueEntryResponse.model_validate(entry).model_dump()
                row["name"] = entry.employee.full_name if entry.employee else None
                row["table_number"] = entry.employee.table_number if entry.employee else None
                row["on_break"] = is_on_break(entry, now)
                employees.append(row)

            next_entry = QueueService(db, self.settings, self.clock).get_next_queue_employee(
                self.facility_id
            )
            return {
                "facility_id": self.facility_id,
                "generated_at": now,
                "employees": employees,
                "waiting_customers": [
                    CustomerQueueEntryResponse.model_validate(c).model_dump()
                    for c in repo.get_waiting_customers(db, self.facility_id)
                ],
                "in_progress": [
                    AppointmentResponse.model_validate(a).model_dump()
                    for a in repo.get_in_progress_appointments(db, self.facility_id)
                ],
                "next_employee_entry_id": next_entry.id if next_entry else None,
            }
        finally:
            db.close()

    def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []


class BoardRegistry:
    """One board per facility, created on first use"""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        feed: ChangeFeed,
        settings: Optional[QueueSettings] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.session_factory = session_factory
        self.feed = feed
        self.settings = settings
        self.clock = clock
        self._boards: dict[int, QueueBoard] = {}
        self._lock = Lock()

    def get(self, facility_id: int) -> QueueBoard:
        with self._lock:
            board = self._boards.get(facility_id)
            if board is None:
                board = QueueBoard(
                    self.session_factory, self.feed, facility_id, self.settings, self.clock
                )
                self._boards[facility_id] = board
            return board

    def close(self) -> None:
        with self._lock:
            for board in self._boards.values():
                board.close()
            self._boards.clear()
