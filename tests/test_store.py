import pytest
from sqlalchemy.exc import OperationalError

from app.core.exceptions import BackendUnavailableError
from app.crud.subscriptions import matches_filters
from app.schemas.job import JobStatus


def _fail_on(store, monkeypatch, failing_id):
    original = store._apply

    def apply(collection, id, fields):
        if id == failing_id:
            raise OperationalError("UPDATE document", {}, Exception("connection lost"))
        return original(collection, id, fields)

    monkeypatch.setattr(store, "_apply", apply)


class TestDocumentStore:
    def test_create_and_get(self, store):
        created = store.create("jobs", {"address": "1 Main St", "status": "open"})

        fetched = store.get("jobs", created["id"])

        assert fetched == {"address": "1 Main St", "status": "open", "id": created["id"]}

    def test_get_missing_returns_none(self, store):
        assert store.get("jobs", "nope") is None

    def test_write_merges_and_nulls(self, store):
        job = store.create("jobs", {"status": "open", "workerId": "w1", "notes": "gate code 12"})

        updated = store.write("jobs", job["id"], {"status": "accepted", "workerId": None})

        assert updated["status"] == "accepted"
        assert updated["workerId"] is None
        assert updated["notes"] == "gate code 12"

    def test_write_upserts(self, store):
        store.write("users", "u1", {"email": "a@example.com"})
        assert store.get("users", "u1")["email"] == "a@example.com"

    def test_query_filters_with_one_of(self, store):
        store.create("jobs", {"status": "open", "workerId": "w1"})
        store.create("jobs", {"status": "accepted", "workerId": "w1"})
        store.create("jobs", {"status": "completed", "workerId": "w1"})
        store.create("jobs", {"status": "accepted", "workerId": "w2"})

        result = store.query("jobs", {"workerId": "w1", "status": ["accepted", "in_progress", "open"]})

        assert sorted(job["status"] for job in result) == ["accepted", "open"]

    def test_query_accepts_enum_and_null_filters(self, store):
        store.write("jobs", "a", {"status": "open", "workerId": None})
        store.write("jobs", "b", {"status": "open", "workerId": "w1"})
        store.write("jobs", "c", {"status": "open"})

        unclaimed = store.query("jobs", {"status": JobStatus.open, "workerId": None})
        by_id = store.query("jobs", {"id": ["b", "c"], "status": [JobStatus.open, JobStatus.accepted]})

        assert [job["id"] for job in unclaimed] == ["a", "c"]
        assert [job["id"] for job in by_id] == ["b", "c"]

    def test_collections_are_isolated(self, store):
        store.write("jobs", "same", {"kind": "job"})
        store.write("cleaningJobs", "same", {"kind": "cleaning"})

        assert store.get("jobs", "same")["kind"] == "job"
        assert store.get("cleaningJobs", "same")["kind"] == "cleaning"

    def test_delete(self, store):
        job = store.create("jobs", {"status": "open"})

        assert store.delete("jobs", job["id"]) is True
        assert store.delete("jobs", job["id"]) is False
        assert store.get("jobs", job["id"]) is None

    def test_operational_error_becomes_backend_unavailable(self, store, monkeypatch):
        _fail_on(store, monkeypatch, "j1")

        with pytest.raises(BackendUnavailableError):
            store.write("jobs", "j1", {"status": "open"})

    def test_write_many_partial_failure_keeps_prefix(self, store, monkeypatch):
        subscription = store.subscribe("jobs")
        subscription.drain()
        _fail_on(store, monkeypatch, "b")

        with pytest.raises(BackendUnavailableError):
            store.write_many("jobs", {"a": {"n": 1}, "b": {"n": 2}, "c": {"n": 3}})

        assert store.get("jobs", "a") == {"n": 1, "id": "a"}
        assert store.get("jobs", "b") is None
        assert store.get("jobs", "c") is None
        # Subscribers still hear about the applied prefix
        assert [doc["id"] for doc in subscription.drain()] == ["a"]


class TestSubscriptions:
    def test_initial_snapshot_is_delivered(self, store):
        store.create("jobs", {"status": "open"})
        store.create("jobs", {"status": "completed"})

        subscription = store.subscribe("jobs", {"status": "open"})

        snapshot = subscription.next_snapshot(timeout=1)
        assert [job["status"] for job in snapshot] == ["open"]

    def test_every_write_pushes_full_filtered_snapshot(self, store):
        received = []
        store.subscribe("jobs", {"workerId": "w1"}, callback=received.append)

        store.write("jobs", "a", {"workerId": "w1"})
        store.write("jobs", "b", {"workerId": "w2"})
        store.write("jobs", "c", {"workerId": "w1"})

        assert [sorted(doc["id"] for doc in snap) for snap in received] == [[], ["a"], ["a"], ["a", "c"]]

    def test_write_many_publishes_once(self, store):
        received = []
        store.subscribe("jobs", callback=received.append)

        store.write_many("jobs", {"a": {"n": 1}, "b": {"n": 2}})

        assert len(received) == 2
        assert sorted(doc["id"] for doc in received[-1]) == ["a", "b"]

    def test_other_collections_do_not_publish(self, store):
        received = []
        store.subscribe("jobs", callback=received.append)

        store.write("cleaningJobs", "x", {"status": "open"})

        assert len(received) == 1

    def test_read_failure_delivers_last_known_snapshot(self, store, monkeypatch):
        store.write("jobs", "a", {"status": "open"})
        subscription = store.subscribe("jobs")
        subscription.drain()

        def broken_query(collection, filters=None):
            raise BackendUnavailableError("read failed")

        monkeypatch.setattr(store, "query", broken_query)
        store.write("jobs", "b", {"status": "open"})

        assert [doc["id"] for doc in subscription.drain()] == ["a"]

    def test_initial_read_failure_yields_empty_snapshot(self, store, monkeypatch):
        def broken_query(collection, filters=None):
            raise BackendUnavailableError("read failed")

        monkeypatch.setattr(store, "query", broken_query)

        subscription = store.subscribe("jobs")

        assert subscription.next_snapshot(timeout=1) == []

    def test_closed_subscription_stops_receiving(self, store, hub):
        subscription = store.subscribe("jobs")
        subscription.close()

        store.write("jobs", "a", {"status": "open"})

        assert not hub.has_subscribers("jobs")
        assert subscription.latest == []

    def test_iteration_ends_on_close(self, store):
        subscription = store.subscribe("jobs")
        store.write("jobs", "a", {"status": "open"})
        subscription.close()

        snapshots = list(subscription)

        assert [len(snapshot) for snapshot in snapshots] == [0, 1]


def test_matches_filters_none_matches_missing_field():
    assert matches_filters({"id": "x"}, {"workerId": None})
    assert not matches_filters({"id": "x", "workerId": "w"}, {"workerId": None})
