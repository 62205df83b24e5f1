import json

import pytest
import redis
from conftest import at

from salonqueue import realtime
from salonqueue.database import transaction
from salonqueue.domain.queue.schemas import CustomerArrival
from salonqueue.models import Facility
from salonqueue.realtime import DELETE, INSERT, UPDATE, ChangeEvent, ChangeFeed, RedisPublisher
from salonqueue.views.board import BoardRegistry, QueueBoard


class RecordingPublisher:
    def __init__(self):
        self.published = []

    def publish(self, change):
        self.published.append(change)
        return True


def collect(feed, table, predicate=None):
    received = []
    unsubscribe = feed.on_change(table, predicate, received.append)
    return received, unsubscribe


class TestChangeFeed:
    def test_committed_insert_is_delivered(self, db, feed):
        received, _ = collect(feed, "facilities")

        db.add(Facility(name="North", pedicure_chairs=1))
        db.commit()

        assert len(received) == 1
        assert received[0].type == INSERT
        assert received[0].table == "facilities"
        assert received[0].row["name"] == "North"
        assert received[0].row["id"] is not None

    def test_update_and_delete_are_delivered(self, db, feed, make_facility):
        facility = make_facility()
        received, _ = collect(feed, "facilities")

        facility.name = "Renamed"
        db.commit()
        db.delete(facility)
        db.commit()

        assert [change.type for change in received] == [UPDATE, DELETE]
        assert received[0].row["name"] == "Renamed"

    def test_nothing_is_delivered_before_commit(self, db, feed):
        received, _ = collect(feed, "facilities")

        db.add(Facility(name="North"))
        db.flush()
        assert received == []

        db.commit()
        assert len(received) == 1

    def test_rollback_discards_changes(self, db, feed):
        received, _ = collect(feed, "facilities")

        db.add(Facility(name="North"))
        db.flush()
        db.rollback()
        db.add(Facility(name="South"))
        db.commit()

        assert [change.row["name"] for change in received] == ["South"]

    def test_failed_transaction_publishes_nothing(self, db, feed):
        received, _ = collect(feed, "facilities")

        with pytest.raises(RuntimeError):
            with transaction(db):
                db.add(Facility(name="North"))
                db.flush()
                raise RuntimeError("boom")

        assert received == []

    def test_dict_predicate_filters_rows(self, queue_service, salon, make_facility, feed):
        facility, _, anna, _ = salon
        other = make_facility(name="Elsewhere")
        mine, _ = collect(feed, "employee_queue", {"facility_id": facility.id})
        theirs, _ = collect(feed, "employee_queue", {"facility_id": other.id})

        queue_service.handle_employee_check_in(anna.id, facility.id)

        assert len(mine) == 1
        assert mine[0].row["employee_id"] == anna.id
        assert theirs == []

    def test_callable_predicate(self, db, feed):
        received, _ = collect(feed, "facilities", lambda change: change.row["pedicure_chairs"] > 0)

        db.add(Facility(name="No chairs", pedicure_chairs=0))
        db.add(Facility(name="Two chairs", pedicure_chairs=2))
        db.commit()

        assert [change.row["name"] for change in received] == ["Two chairs"]

    def test_unsubscribe(self, db, feed):
        received, unsubscribe = collect(feed, "facilities")
        assert feed.subscriber_count == 1

        unsubscribe()
        unsubscribe()
        db.add(Facility(name="North"))
        db.commit()

        assert received == []
        assert feed.subscriber_count == 0

    def test_failing_handler_does_not_stop_others(self, db, feed):
        def broken(_change):
            raise ValueError("handler bug")

        feed.on_change("facilities", None, broken)
        received, _ = collect(feed, "facilities")

        db.add(Facility(name="North"))
        db.commit()

        assert len(received) == 1

    def test_check_out_reports_renumbered_positions(
        self, queue_service, salon, make_employee, feed
    ):
        facility, _, anna, berta = salon
        cecilia = make_employee(facility, first_name="Cecilia")
        first = queue_service.handle_employee_check_in(anna.id, facility.id).data
        queue_service.handle_employee_check_in(berta.id, facility.id)
        queue_service.handle_employee_check_in(cecilia.id, facility.id)
        received, _ = collect(feed, "employee_queue")

        queue_service.handle_employee_check_out(first.id, facility.id)

        positions = {
            change.row["employee_id"]: change.row["position_in_queue"]
            for change in received
            if change.row["is_active"]
        }
        assert positions == {berta.id: 1, cecilia.id: 2}

    def test_every_change_is_published(self):
        publisher = RecordingPublisher()
        feed = ChangeFeed(publisher=publisher)

        feed.dispatch([ChangeEvent("facilities", INSERT, {"id": 1})])

        assert [change.table for change in publisher.published] == ["facilities"]


class FakeRedis:
    def __init__(self):
        self.messages = []

    def publish(self, channel, message):
        self.messages.append((channel, message))
        return 1


class TestRedisPublisher:
    def test_publishes_json_per_table_channel(self, monkeypatch):
        client = FakeRedis()
        monkeypatch.setattr(realtime, "get_redis_client", lambda: client)

        published = RedisPublisher(prefix="salonqueue:changes").publish(
            ChangeEvent("customer_queue", INSERT, {"id": 7, "created_at": at(9, 5)})
        )

        assert published is True
        channel, message = client.messages[0]
        assert channel == "salonqueue:changes:customer_queue"
        assert json.loads(message) == {
            "table": "customer_queue",
            "type": "INSERT",
            "row": {"id": 7, "created_at": "2026-03-02T09:05:00"},
        }

    def test_redis_outage_is_not_fatal(self, monkeypatch):
        def unreachable():
            raise redis.ConnectionError("connection refused")

        monkeypatch.setattr(realtime, "get_redis_client", unreachable)

        assert RedisPublisher().publish(ChangeEvent("facilities", INSERT, {"id": 1})) is False


class TestQueueBoard:
    @pytest.fixture
    def board(self, session_factory, feed, salon, settings, clock):
        facility = salon[0]
        board = QueueBoard(session_factory, feed, facility.id, settings, clock)
        yield board
        board.close()

    def test_snapshot_is_cached_until_a_change(self, board, queue_service, salon):
        facility, service, anna, _ = salon

        empty = board.snapshot()
        assert empty["employees"] == []
        assert board.snapshot() is empty
        assert board.refresh_count == 1

        queue_service.handle_employee_check_in(anna.id, facility.id)
        assert board.is_stale

        refreshed = board.snapshot()
        assert board.refresh_count == 2
        assert [row["employee_id"] for row in refreshed["employees"]] == [anna.id]
        assert refreshed["employees"][0]["name"] == "Anna Novak"
        assert refreshed["next_employee_entry_id"] == refreshed["employees"][0]["id"]

    def test_snapshot_lists_waiting_and_in_progress(self, board, queue_service, salon):
        facility, service, anna, _ = salon
        queue_service.handle_employee_check_in(anna.id, facility.id)
        for name in ("Jana", "Peter"):
            queue_service.process_customer_arrival(
                CustomerArrival(
                    customer_name=name, contact_info=f"{name.lower()}@example.com", service_id=service.id
                ),
                facility.id,
            )

        snapshot = board.snapshot()

        assert [row["customer_name"] for row in snapshot["in_progress"]] == ["Jana"]
        assert [row["customer_name"] for row in snapshot["waiting_customers"]] == ["Peter"]
        assert snapshot["next_employee_entry_id"] is None

    def test_other_facility_changes_keep_cache(self, board, queue_service, make_facility, make_employee):
        other = make_facility(name="Elsewhere")
        colleague = make_employee(other)
        board.snapshot()

        queue_service.handle_employee_check_in(colleague.id, other.id)

        assert not board.is_stale

    def test_close_unsubscribes(self, session_factory, feed, salon):
        board = QueueBoard(session_factory, feed, salon[0].id)
        assert feed.subscriber_count == 3

        board.close()

        assert feed.subscriber_count == 0

    def test_registry_reuses_boards(self, session_factory, feed, salon, make_facility):
        registry = BoardRegistry(session_factory, feed)
        other = make_facility(name="Elsewhere")

        assert registry.get(salon[0].id) is registry.get(salon[0].id)
        assert registry.get(other.id) is not registry.get(salon[0].id)

        registry.close()
        assert feed.subscriber_count == 0
