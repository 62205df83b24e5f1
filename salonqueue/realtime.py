"""
Row change feed for realtime dashboards.

Changes are captured from SQLAlchemy session flushes, held until the
transaction commits and then handed to subscribers. A rollback drops them.
When Redis is configured every committed change is also published on
``<REDIS_CHANNEL_PREFIX>:<table>`` so other processes can refresh.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from threading import Lock
from typing import Any, Callable, Optional, Union

import redis
from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

from .config import REDIS_CHANNEL_PREFIX, REDIS_URL

logger = logging.getLogger(__name__)

INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"

PENDING_KEY = "pending_changes"
DELETED_ROWS_KEY = "deleted_rows"

redis_client: Optional[redis.Redis] = None


@dataclass
class ChangeEvent:
    table: str
    type: str
    row: dict = field(default_factory=dict)

    def to_json(self) -> str:
        return json.dumps(
            {"table": self.table, "type": self.type, "row": self.row},
            default=_json_default,
        )


def _json_default(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


Predicate = Union[dict, Callable[[ChangeEvent], bool], None]
Handler = Callable[[ChangeEvent], Any]


def get_redis_client() -> redis.Redis:
    """Get or create the Redis client used for publishing changes"""
    global redis_client

    if redis_client is None:
        logger.info("🔄 Initializing Redis connection for change publishing...")
        try:
            redis_client = redis.from_url(
                REDIS_URL,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                health_check_interval=30,
            )
            redis_client.ping()
            logger.info("Redis connected successfully via URL")
        except Exception as e:
            redis_client = None
            logger.error(f"❌ Failed to connect to Redis: {str(e)}")
            raise
    return redis_client


class RedisPublisher:
    """Publishes change events to Redis, never failing the caller"""

    def __init__(self, prefix: str = REDIS_CHANNEL_PREFIX):
        self.prefix = prefix

    def publish(self, change: ChangeEvent) -> bool:
        try:
            get_redis_client().publish(f"{self.prefix}:{change.table}", change.to_json())
            return True
        except Exception as e:
            logger.warning(f"⚠️ Change publish failed for {change.table}: {e}")
            return False


class ChangeFeed:
    """In-process subscription registry for committed row changes"""

    def __init__(self, publisher: Optional[RedisPublisher] = None):
        self.publisher = publisher
        self._subscriptions: dict[int, tuple[str, Predicate, Handler]] = {}
        self._next_id = 0
        self._lock = Lock()

    def on_change(self, table: str, predicate: Predicate, handler: Handler) -> Callable[[], None]:
        """
        Subscribe ``handler`` to changes on ``table``.

        ``predicate`` is either None (every change), a dict of column
        equalities such as ``{"facility_id": 3}``, or a callable taking the
        event. Returns a function that removes the subscription.
        """
        with self._lock:
            self._next_id += 1
            subscription_id = self._next_id
            self._subscriptions[subscription_id] = (table, predicate, handler)

        def unsubscribe():
            with self._lock:
                self._subscriptions.pop(subscription_id, None)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def dispatch(self, changes: list[ChangeEvent]) -> None:
        with self._lock:
            subscriptions = list(self._subscriptions.values())

        for change in changes:
            if self.publisher:
                self.publisher.publish(change)
            for table, predicate, handler in subscriptions:
                if table != change.table or not _matches(predicate, change):
                    continue
                try:
                    handler(change)
                except Exception as e:
                    logger.error(f"❌ Change handler failed for {change.table}: {e}")


def _matches(predicate: Predicate, change: ChangeEvent) -> bool:
    if predicate is None:
        return True
    if callable(predicate):
        return bool(predicate(change))
    return all(change.row.get(column) == value for column, value in predicate.items())


def row_to_dict(obj) -> dict:
    mapper = inspect(obj).mapper
    return {attr.key: getattr(obj, attr.key) for attr in mapper.column_attrs}


def record_change(session: Session, table: str, change_type: str, row: dict) -> None:
    """Queue a change produced outside the unit of work (bulk UPDATE statements)"""
    if session.info.get("change_feed") is None:
        return
    session.info.setdefault(PENDING_KEY, []).append(ChangeEvent(table, change_type, row))


@event.listens_for(Session, "before_flush")
def _capture_deleted_rows(session, _flush_context, _instances):
    # Deleted rows must be read while they still exist
    if session.info.get("change_feed") is None:
        return
    rows = session.info.setdefault(DELETED_ROWS_KEY, {})
    for obj in session.deleted:
        rows[id(obj)] = row_to_dict(obj)


@event.listens_for(Session, "after_flush")
def _collect_changes(session, _flush_context):
    if session.info.get("change_feed") is None:
        return

    pending = session.info.setdefault(PENDING_KEY, [])
    deleted_rows = session.info.pop(DELETED_ROWS_KEY, {})
    for obj in session.new:
        pending.append(ChangeEvent(obj.__tablename__, INSERT, row_to_dict(obj)))
    for obj in session.dirty:
        if session.is_modified(obj, include_collections=False):
            pending.append(ChangeEvent(obj.__tablename__, UPDATE, row_to_dict(obj)))
    for obj in session.deleted:
        row = deleted_rows.get(id(obj))
        if row is None:
            state = inspect(obj)
            row = {attr.key: state.dict.get(attr.key) for attr in state.mapper.column_attrs}
        pending.append(ChangeEvent(obj.__tablename__, DELETE, row))


@event.listens_for(Session, "after_commit")
def _dispatch_changes(session):
    feed = session.info.get("change_feed")
    changes = session.info.pop(PENDING_KEY, [])
    if feed is not None and changes:
        feed.dispatch(changes)


@event.listens_for(Session, "after_rollback")
def _discard_changes(session):
    session.info.pop(PENDING_KEY, None)
    session.info.pop(DELETED_ROWS_KEY, None)


# Default feed used by the application session factory
change_feed = ChangeFeed(publisher=RedisPublisher() if REDIS_URL else None)
