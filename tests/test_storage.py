from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from pointcloud_relay.models import ScanSummary
from pointcloud_relay.storage import MemoryStore, RecordStore

T0 = datetime(2025, 1, 15, 10, 0, tzinfo=timezone.utc)


def _scan(drone_id: str, offset_s: int, points: int) -> ScanSummary:
    return ScanSummary(drone_id=drone_id, timestamp=T0 + timedelta(seconds=offset_s), point_count=points)


def test_memory_store_satisfies_protocol() -> None:
    assert isinstance(MemoryStore(), RecordStore)


def test_upsert_creates_then_updates() -> None:
    store = MemoryStore()
    created = store.upsert_drone("d1", T0)
    updated = store.upsert_drone("d1", T0 + timedelta(minutes=5))

    assert created.last_seen == T0
    assert updated.last_seen == T0 + timedelta(minutes=5)
    assert updated.created_at == created.created_at
    assert store.get_drone("d1") == updated
    assert store.get_drone("d2") is None


def test_list_drones_most_recent_first() -> None:
    store = MemoryStore()
    store.upsert_drone("old", T0)
    store.upsert_drone("new", T0 + timedelta(hours=1))
    store.upsert_drone("mid", T0 + timedelta(minutes=30))
    assert [d.drone_id for d in store.list_drones()] == ["new", "mid", "old"]


def test_scans_are_append_only_with_ids() -> None:
    store = MemoryStore()
    first = store.insert_scan(_scan("d1", 0, 10))
    second = store.insert_scan(_scan("d1", 0, 11))
    store.insert_scan(_scan("d2", 5, 99))

    assert (first.id, second.id) == (1, 2)
    recent = store.recent_scans("d1", 10)
    # same timestamp: later insert first
    assert [s.point_count for s in recent] == [11, 10]
    assert store.latest_scan("d1").point_count == 11
    assert store.latest_scan("nobody") is None


def test_recent_scans_limit() -> None:
    store = MemoryStore()
    for i in range(5):
        store.insert_scan(_scan("d1", i, i))
    assert [s.point_count for s in store.recent_scans("d1", 3)] == [4, 3, 2]
    assert store.recent_scans("d1", 0) == []


def test_set_api_key_active_unknown_key() -> None:
    with pytest.raises(KeyError):
        MemoryStore().set_api_key_active("missing", False)
