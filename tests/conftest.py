from __future__ import annotations

from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from pointcloud_relay.app import create_app
from pointcloud_relay.core import RelayState
from pointcloud_relay.storage import MemoryStore
from tests.helpers import KEY_D1, KEY_D2, KEY_REVOKED, make_payload as _make_payload


@pytest.fixture
def store() -> MemoryStore:
    s = MemoryStore()
    s.add_api_key(KEY_D1, "d1", description="d1 companion")
    s.add_api_key(KEY_D2, "d2")
    s.add_api_key(KEY_REVOKED, "d1", is_active=False)
    return s


@pytest.fixture
def state(store: MemoryStore) -> RelayState:
    return RelayState(store=store)


@pytest.fixture
def client(state: RelayState) -> Iterator[TestClient]:
    # one portal for the whole test so WS handlers and ingest share a loop
    with TestClient(create_app(state)) as c:
        yield c


@pytest.fixture
def make_payload():
    return _make_payload
