"""
Viewer-side transport selection for one drone.

    CONNECTING -> PUSHING <-> POLLING -> CLOSED

The negotiator first tries the push channel. If the handshake fails, times
out, or the channel later drops, it polls the last-known batch on a fixed
cadence and keeps retrying push in the background; once push comes back
the poll task is cancelled. A 404 from the pull endpoint means the drone
has not reported yet (``waiting``), not an error.
"""

from __future__ import annotations

import asyncio
import enum
import inspect
import logging
from contextlib import suppress
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from pydantic import ValidationError

from .. import config as C
from ..core import EVENT_POINTCLOUD
from ..exceptions import RelayTransportError
from ..models import PointCloudBatch
from .transports import PullTransport, PushTransport

_logger = logging.getLogger(__name__)

BatchCallback = Callable[[PointCloudBatch], Union[None, Awaitable[None]]]
StateCallback = Callable[["TransportState"], None]


class TransportState(str, enum.Enum):
    CONNECTING = "connecting"
    PUSHING = "pushing"
    POLLING = "polling"
    CLOSED = "closed"


class TransportNegotiator:
    """Keeps one viewer supplied with batches for ``drone_id``."""

    def __init__(
        self,
        drone_id: str,
        *,
        push: PushTransport,
        pull: PullTransport,
        on_batch: BatchCallback,
        on_state: Optional[StateCallback] = None,
        poll_interval: float = C.POLL_INTERVAL_S,
        handshake_timeout: float = C.HANDSHAKE_TIMEOUT_S,
        reconnect_interval: float = C.RECONNECT_INTERVAL_S,
    ) -> None:
        self.drone_id = drone_id
        self._push = push
        self._pull = pull
        self._on_batch = on_batch
        self._on_state = on_state
        self._poll_interval = poll_interval
        self._handshake_timeout = handshake_timeout
        self._reconnect_interval = reconnect_interval

        self._state = TransportState.CONNECTING
        self._latest: Optional[PointCloudBatch] = None
        self._waiting = False
        self._subscribed = False
        self._closed = False
        self._runner: Optional[asyncio.Task] = None
        self._poll_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Public surface
    # ------------------------------------------------------------------

    @property
    def state(self) -> TransportState:
        return self._state

    @property
    def latest(self) -> Optional[PointCloudBatch]:
        """Last batch handed to ``on_batch``."""
        return self._latest

    @property
    def waiting(self) -> bool:
        """True while polling finds no data for the drone."""
        return self._waiting

    @property
    def polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    async def start(self) -> "TransportNegotiator":
        if self._closed:
            raise RuntimeError("negotiator is closed")
        if self._runner is None:
            self._runner = asyncio.create_task(self._run(), name=f"negotiator-{self.drone_id}")
            self._runner.add_done_callback(self._runner_done)
        return self

    async def close(self) -> None:
        """Unsubscribe, close push and cancel polling. Safe to call repeatedly."""
        if self._closed:
            return
        self._closed = True

        runner, self._runner = self._runner, None
        if runner is not None and runner is not asyncio.current_task():
            runner.cancel()
            with suppress(asyncio.CancelledError):
                await runner

        await self._stop_polling()
        if self._subscribed:
            self._subscribed = False
            try:
                await self._push.unsubscribe(self.drone_id)
            except Exception as exc:
                _logger.debug("Unsubscribe from %s failed: %s", self.drone_id, exc)
        await self._close_push()
        self._set_state(TransportState.CLOSED)

    async def __aenter__(self) -> "TransportNegotiator":
        return await self.start()

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    async def _run(self) -> None:
        while not self._closed:
            if await self._try_push():
                await self._stop_polling()
                self._set_state(TransportState.PUSHING)
                await self._consume_push()
                self._subscribed = False
                await self._close_push()
                if self._closed:
                    return
                _logger.warning("Push channel for %s dropped, falling back to polling", self.drone_id)

            self._start_polling()
            self._set_state(TransportState.POLLING)
            await asyncio.sleep(self._reconnect_interval)

    async def _try_push(self) -> bool:
        try:
            await asyncio.wait_for(self._push.connect(), self._handshake_timeout)
            await self._push.subscribe(self.drone_id)
        except asyncio.TimeoutError:
            _logger.debug("Push handshake for %s timed out after %.1fs", self.drone_id, self._handshake_timeout)
        except RelayTransportError as exc:
            _logger.debug("Push handshake for %s failed: %s", self.drone_id, exc)
        except Exception:
            _logger.warning("Push handshake for %s raised unexpectedly", self.drone_id, exc_info=True)
        else:
            self._subscribed = True
            return True
        await self._close_push()
        return False

    async def _consume_push(self) -> None:
        try:
            async for event in self._push.events():
                await self._handle_event(event)
        except RelayTransportError as exc:
            _logger.debug("Push channel for %s failed: %s", self.drone_id, exc)
        except Exception:
            # unwrapped socket errors still end in the polling fallback
            _logger.warning("Push channel for %s raised unexpectedly", self.drone_id, exc_info=True)

    async def _handle_event(self, event: Dict[str, Any]) -> None:
        if event.get("type") != EVENT_POINTCLOUD:
            return
        data = event.get("data")
        if not isinstance(data, dict) or data.get("drone_id") != self.drone_id:
            return
        try:
            batch = PointCloudBatch.model_validate(data)
        except ValidationError as exc:
            _logger.debug("Ignoring malformed pushed batch for %s: %s", self.drone_id, exc)
            return
        await self._deliver(batch)

    async def _poll_loop(self) -> None:
        while True:
            try:
                batch = await self._pull.fetch_latest(self.drone_id)
            except RelayTransportError as exc:
                _logger.debug("Poll for %s failed: %s", self.drone_id, exc)
            except Exception:
                _logger.warning("Poll for %s raised unexpectedly", self.drone_id, exc_info=True)
            else:
                if batch is None:
                    self._waiting = True
                else:
                    await self._deliver(batch)
            await asyncio.sleep(self._poll_interval)

    def _start_polling(self) -> None:
        if self.polling:
            return
        self._poll_task = asyncio.create_task(self._poll_loop(), name=f"poll-{self.drone_id}")

    async def _stop_polling(self) -> None:
        task, self._poll_task = self._poll_task, None
        if task is None:
            return
        task.cancel()
        if task is asyncio.current_task():
            return
        with suppress(asyncio.CancelledError):
            await task

    async def _close_push(self) -> None:
        try:
            await self._push.close()
        except Exception as exc:
            _logger.debug("Closing push channel for %s failed: %s", self.drone_id, exc)

    async def _deliver(self, batch: PointCloudBatch) -> None:
        self._waiting = False
        if batch == self._latest:
            return
        self._latest = batch
        try:
            result = self._on_batch(batch)
            if inspect.isawaitable(result):
                await result
        except Exception:
            _logger.exception("on_batch callback failed for %s", self.drone_id)

    def _set_state(self, state: TransportState) -> None:
        if state is self._state:
            return
        _logger.info("Viewer for %s: %s -> %s", self.drone_id, self._state.value, state.value)
        self._state = state
        if self._on_state is not None:
            try:
                self._on_state(state)
            except Exception:
                _logger.exception("on_state callback failed for %s", self.drone_id)

    def _runner_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _logger.error("Negotiator for %s stopped", self.drone_id, exc_info=exc)
