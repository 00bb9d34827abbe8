from __future__ import annotations

import pytest

from service_registry.db import DBConnection, DBPool
from service_registry.errors import NoRowsError, StoreError
from service_registry.models import Service
from service_registry.store import ServiceStore


def _svc(id: str, location: str = "10.0.0.1", port: int = 8080, application: str = "billing", status: str = "HEALTHY") -> Service:
    return Service(id=id, application=application, location=location, port=port, status=status)


def test_upsert_inserts_new_record_with_matching_timestamps(store) -> None:
    saved = store.upsert(_svc("a"))

    assert saved.id == "a"
    assert saved.created_at is not None
    assert saved.created_at == saved.updated_at

    found = store.find("a")
    assert found == saved


def test_upsert_same_endpoint_different_id_keeps_existing_id(store) -> None:
    first = store.upsert(_svc("a", status="HEALTHY"))
    second = store.upsert(_svc("b", status="UNHEALTHY", application="billing-v2"))

    assert second.id == "a"
    assert second.created_at == first.created_at
    assert second.updated_at > first.updated_at

    with pytest.raises(NoRowsError):
        store.find("b")

    stored = store.find("a")
    assert stored.status == "UNHEALTHY"
    assert stored.application == "billing-v2"


def test_upsert_by_id_moves_endpoint(store) -> None:
    store.upsert(_svc("a", location="10.0.0.1", port=80))
    moved = store.upsert(_svc("a", location="10.0.0.9", port=81))

    assert moved.id == "a"
    stored = store.find("a")
    assert (stored.location, stored.port) == ("10.0.0.9", 81)
    assert len(store.find_by_application("billing")) == 1


def test_endpoint_match_wins_over_id_match(store) -> None:
    store.upsert(_svc("a", location="host-a", port=1))
    store.upsert(_svc("b", location="host-b", port=2))

    # Caller claims id "a" but reports from b's endpoint.
    saved = store.upsert(_svc("a", location="host-b", port=2, status="UNHEALTHY"))

    assert saved.id == "b"
    assert store.find("b").status == "UNHEALTHY"
    a = store.find("a")
    assert (a.location, a.port, a.status) == ("host-a", 1, "HEALTHY")


def test_find_unknown_id_raises_no_rows(store) -> None:
    with pytest.raises(NoRowsError) as info:
        store.find("missing")
    assert info.value.operation == "find"
    assert info.value.identifier == "missing"


def test_find_by_application_insertion_order_and_empty(store) -> None:
    store.upsert(_svc("c", port=3))
    store.upsert(_svc("a", port=1))
    store.upsert(_svc("b", port=2))
    store.upsert(_svc("x", port=9, application="other"))

    # Updating an existing record does not move it.
    store.upsert(_svc("c", port=3, status="UNHEALTHY"))

    assert [s.id for s in store.find_by_application("billing")] == ["c", "a", "b"]
    assert store.find_by_application("nobody") == []


def test_upsert_requires_id(store) -> None:
    with pytest.raises(ValueError):
        store.upsert(_svc(""))


class _FailingCommitConnection(DBConnection):
    def commit(self) -> None:
        raise RuntimeError("Commit failed: disk full")


class _FailingCommitPool(DBPool):
    def get(self) -> DBConnection:
        raw = self.backend.connect()
        return _FailingCommitConnection(raw, self.backend.helpers, self.backend.paramstyle)


def test_failed_commit_leaves_no_partial_write(env, clock) -> None:
    broken = ServiceStore(_FailingCommitPool(env.db_pool.backend), clock=clock)

    with pytest.raises(StoreError) as info:
        broken.upsert(_svc("a"))
    assert info.value.operation == "upsert"
    assert isinstance(info.value.__cause__, RuntimeError)

    with pytest.raises(NoRowsError):
        env.store.find("a")
    assert env.store.find_by_application("billing") == []


def test_failed_update_rolls_back(env, clock) -> None:
    env.store.upsert(_svc("a", status="HEALTHY"))

    class _FailingUpdateConnection(DBConnection):
        def execute(self, query, params=None):
            if query.lstrip().upper().startswith("UPDATE"):
                super().execute(query, params)
                raise RuntimeError("boom after write")
            return super().execute(query, params)

    class _Pool(DBPool):
        def get(self) -> DBConnection:
            raw = self.backend.connect()
            return _FailingUpdateConnection(raw, self.backend.helpers, self.backend.paramstyle)

    broken = ServiceStore(_Pool(env.db_pool.backend), clock=clock)
    with pytest.raises(StoreError):
        broken.upsert(_svc("a", status="UNHEALTHY"))

    assert env.store.find("a").status == "HEALTHY"


def test_store_errors_wrap_backend_failures(tmp_path, clock) -> None:
    from service_registry.db import SQLiteBackend

    # A directory is not an openable database file.
    pool = DBPool(SQLiteBackend(str(tmp_path), timeout_s=0.1))
    store = ServiceStore(pool, clock=clock)

    with pytest.raises(StoreError) as info:
        store.find("a")
    assert not isinstance(info.value, NoRowsError)

    with pytest.raises(StoreError):
        store.find_by_application("billing")

    with pytest.raises(StoreError):
        store.upsert(_svc("a"))


def test_timestamps_follow_commit_order_under_contention(env) -> None:
    import threading
    from datetime import datetime, timedelta, timezone

    t0 = datetime(2024, 1, 1, tzinfo=timezone.utc)
    slow_in_clock = threading.Event()
    fast_done = threading.Event()

    def clock() -> datetime:
        if threading.current_thread().name == "slow-writer":
            slow_in_clock.set()
            # Gives the fast writer a window to commit first, if it can.
            fast_done.wait(timeout=1.0)
            return t0
        return t0 + timedelta(seconds=10)

    store = ServiceStore(env.db_pool, clock=clock)
    errors: list[Exception] = []

    def write(svc: Service, done: threading.Event | None = None) -> None:
        try:
            store.upsert(svc)
        except Exception as exc:
            errors.append(exc)
        finally:
            if done is not None:
                done.set()

    slow = threading.Thread(target=write, args=(_svc("slow"),), name="slow-writer")
    slow.start()
    assert slow_in_clock.wait(timeout=5.0)

    fast = threading.Thread(target=write, args=(_svc("fast"), fast_done), name="fast-writer")
    fast.start()
    slow.join(timeout=15.0)
    fast.join(timeout=15.0)

    assert errors == []
    records = env.store.find_by_application("billing")
    assert len(records) == 1
    assert records[0].updated_at >= records[0].created_at
