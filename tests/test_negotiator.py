from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

import pytest

from pointcloud_relay.client import TransportNegotiator, TransportState
from pointcloud_relay.exceptions import RelayTransportError
from pointcloud_relay.models import PointCloudBatch

from tests.helpers import make_payload


def _batch(drone_id: str = "d1", ts: str = "2025-01-15T10:30:00Z", n: int = 2) -> PointCloudBatch:
    raw = make_payload(drone_id=drone_id, timestamp=ts, n_points=n)
    raw.pop("api_key")
    return PointCloudBatch.model_validate(raw)


def _event(batch: PointCloudBatch, event_type: str = "pointcloud") -> Dict[str, Any]:
    return {"type": event_type, "data": batch.model_dump(mode="json")}


@dataclass
class FakePush:
    fail_connects: int = 0
    hang: bool = False
    break_with: Optional[Exception] = None
    connects: int = 0
    closes: int = 0
    subscribed: List[str] = field(default_factory=list)
    unsubscribed: List[str] = field(default_factory=list)
    queue: "asyncio.Queue[Optional[Dict[str, Any]]]" = field(default_factory=asyncio.Queue)

    async def connect(self) -> None:
        self.connects += 1
        if self.hang:
            await asyncio.sleep(3600)
        if self.connects <= self.fail_connects:
            raise RelayTransportError("connection refused")

    async def subscribe(self, drone_id: str) -> None:
        self.subscribed.append(drone_id)

    async def unsubscribe(self, drone_id: str) -> None:
        self.unsubscribed.append(drone_id)

    async def events(self) -> AsyncIterator[Dict[str, Any]]:
        if self.break_with is not None:
            exc, self.break_with = self.break_with, None
            raise exc
        while True:
            event = await self.queue.get()
            if event is None:
                return
            yield event

    async def close(self) -> None:
        self.closes += 1

    def deliver(self, event: Dict[str, Any]) -> None:
        self.queue.put_nowait(event)

    def drop(self) -> None:
        self.queue.put_nowait(None)


@dataclass
class FakePull:
    batch: Optional[PointCloudBatch] = None
    errors: int = 0
    calls: int = 0

    async def fetch_latest(self, drone_id: str) -> Optional[PointCloudBatch]:
        self.calls += 1
        if self.errors:
            self.errors -= 1
            raise RelayTransportError("HTTP 502")
        if self.batch is not None and self.batch.drone_id == drone_id:
            return self.batch
        return None


async def _until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    async def _wait() -> None:
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_wait(), timeout)


def _negotiator(push: FakePush, pull: FakePull, received: List[PointCloudBatch], **kwargs: Any) -> TransportNegotiator:
    kwargs.setdefault("poll_interval", 0.01)
    kwargs.setdefault("handshake_timeout", 0.2)
    kwargs.setdefault("reconnect_interval", 60.0)
    return TransportNegotiator("d1", push=push, pull=pull, on_batch=received.append, **kwargs)


@pytest.mark.asyncio
async def test_failed_handshake_polls_and_surfaces_later_batch() -> None:
    push, pull, received = FakePush(fail_connects=99), FakePull(), []
    negotiator = _negotiator(push, pull, received)

    async with negotiator:
        await _until(lambda: negotiator.state is TransportState.POLLING)
        await _until(lambda: negotiator.waiting)
        assert received == []

        # ingested after the handshake failed
        pull.batch = _batch()
        await _until(lambda: received)

        assert received == [pull.batch]
        assert negotiator.latest == pull.batch
        assert negotiator.waiting is False

    assert negotiator.state is TransportState.CLOSED


@pytest.mark.asyncio
async def test_handshake_timeout_falls_back_to_polling() -> None:
    push, pull, received = FakePush(hang=True), FakePull(batch=_batch()), []
    async with _negotiator(push, pull, received, handshake_timeout=0.05) as negotiator:
        await _until(lambda: received)
        assert negotiator.state is TransportState.POLLING


@pytest.mark.asyncio
async def test_push_delivers_only_matching_batches() -> None:
    push, pull, received = FakePush(), FakePull(), []
    async with _negotiator(push, pull, received) as negotiator:
        await _until(lambda: negotiator.state is TransportState.PUSHING)
        assert push.subscribed == ["d1"]

        mine = _batch("d1")
        push.deliver(_event(_batch("d2")))
        push.deliver({"type": "pointcloud_update", "data": mine.summary().model_dump()})
        push.deliver({"type": "subscribed", "drone_id": "d1"})
        push.deliver(_event(mine))
        await _until(lambda: received)

        assert received == [mine]
        assert pull.calls == 0


@pytest.mark.asyncio
async def test_disconnect_polls_then_upgrades_back_to_push() -> None:
    states: List[TransportState] = []
    push, pull, received = FakePush(), FakePull(batch=_batch(ts="2025-01-15T10:30:05Z")), []
    negotiator = _negotiator(push, pull, received, on_state=states.append, reconnect_interval=0.05)

    async with negotiator:
        await _until(lambda: negotiator.state is TransportState.PUSHING)
        push.drop()

        await _until(lambda: received)
        await _until(lambda: push.connects >= 2 and negotiator.state is TransportState.PUSHING)

        assert states[:3] == [TransportState.PUSHING, TransportState.POLLING, TransportState.PUSHING]
        assert negotiator.polling is False
        calls = pull.calls
        await asyncio.sleep(0.05)
        assert pull.calls == calls


@pytest.mark.asyncio
async def test_reconnect_after_initial_failure_cancels_polling() -> None:
    push, pull, received = FakePush(fail_connects=1), FakePull(), []
    async with _negotiator(push, pull, received, reconnect_interval=0.05) as negotiator:
        await _until(lambda: negotiator.state is TransportState.POLLING)
        await _until(lambda: negotiator.state is TransportState.PUSHING)
        assert negotiator.polling is False
        assert push.subscribed == ["d1"]


@pytest.mark.asyncio
async def test_close_unsubscribes_once_and_is_idempotent() -> None:
    push, pull, received = FakePush(), FakePull(), []
    negotiator = await _negotiator(push, pull, received).start()
    await _until(lambda: negotiator.state is TransportState.PUSHING)

    await negotiator.close()
    await negotiator.close()

    assert push.unsubscribed == ["d1"]
    assert push.closes >= 1
    assert negotiator.state is TransportState.CLOSED


@pytest.mark.asyncio
async def test_close_while_polling_cancels_poll_task() -> None:
    push, pull, received = FakePush(fail_connects=99), FakePull(), []
    negotiator = await _negotiator(push, pull, received).start()
    await _until(lambda: negotiator.polling)

    await negotiator.close()

    assert negotiator.polling is False
    assert push.unsubscribed == []
    calls = pull.calls
    await asyncio.sleep(0.05)
    assert pull.calls == calls


@pytest.mark.asyncio
async def test_poll_errors_do_not_end_session_and_repeats_are_deduplicated() -> None:
    push, pull, received = FakePush(fail_connects=99), FakePull(batch=_batch(), errors=3), []
    async with _negotiator(push, pull, received) as negotiator:
        await _until(lambda: pull.calls >= 8)
        assert negotiator.state is TransportState.POLLING
        assert received == [pull.batch]

        pull.batch = _batch(ts="2025-01-15T10:30:01Z", n=4)
        await _until(lambda: len(received) == 2)
        assert received[-1].stats.point_count == 4


@pytest.mark.asyncio
async def test_async_callback_and_failing_callback() -> None:
    seen: List[str] = []

    async def on_batch(batch: PointCloudBatch) -> None:
        seen.append(batch.timestamp)
        raise ValueError("renderer blew up")

    push, pull = FakePush(), FakePull()
    negotiator = TransportNegotiator("d1", push=push, pull=pull, on_batch=on_batch, handshake_timeout=0.2)
    async with negotiator:
        await _until(lambda: negotiator.state is TransportState.PUSHING)
        push.deliver(_event(_batch(ts="2025-01-15T10:30:00Z")))
        push.deliver(_event(_batch(ts="2025-01-15T10:30:01Z")))
        await _until(lambda: len(seen) == 2)
        assert negotiator.state is TransportState.PUSHING


@pytest.mark.asyncio
async def test_unwrapped_socket_error_falls_back_to_polling() -> None:
    states: List[TransportState] = []
    push = FakePush(break_with=ConnectionResetError("peer reset"))
    pull, received = FakePull(batch=_batch()), []
    negotiator = _negotiator(push, pull, received, on_state=states.append, reconnect_interval=0.05)

    async with negotiator:
        await _until(lambda: received)
        await _until(lambda: push.connects >= 2 and negotiator.state is TransportState.PUSHING)

        assert states[:3] == [TransportState.PUSHING, TransportState.POLLING, TransportState.PUSHING]
        assert received == [pull.batch]


@pytest.mark.asyncio
async def test_failing_state_callback_does_not_stop_session() -> None:
    def on_state(state: TransportState) -> None:
        raise RuntimeError("status bar gone")

    push, pull, received = FakePush(fail_connects=99), FakePull(batch=_batch()), []
    async with _negotiator(push, pull, received, on_state=on_state) as negotiator:
        await _until(lambda: received)
        assert negotiator.state is TransportState.POLLING
    assert negotiator.state is TransportState.CLOSED
