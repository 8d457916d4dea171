"""Push (WebSocket) and pull (HTTP) channels used by the viewer side."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Dict, Optional, Protocol
from urllib.parse import quote

import aiohttp
from pydantic import ValidationError

from .. import config as C
from ..exceptions import RelayTransportError
from ..models import PointCloudBatch

_logger = logging.getLogger(__name__)


class PushTransport(Protocol):
    """Structural push channel interface used by the negotiator.

    Keeping it a protocol lets tests drive the negotiator with in-memory
    doubles while ``WebSocketPushTransport`` stays the concrete one.
    ``connect`` may be called again after ``close`` to reconnect.
    """

    async def connect(self) -> None:
        ...

    async def subscribe(self, drone_id: str) -> None:
        ...

    async def unsubscribe(self, drone_id: str) -> None:
        ...

    def events(self) -> AsyncIterator[Dict[str, Any]]:
        ...

    async def close(self) -> None:
        ...


class PullTransport(Protocol):
    async def fetch_latest(self, drone_id: str) -> Optional[PointCloudBatch]:
        ...


def http_to_ws(base_url: str) -> str:
    """http://host:8000 -> ws://host:8000/ws"""
    base = base_url.rstrip("/")
    if base.startswith("https://"):
        base = "wss://" + base[len("https://"):]
    elif base.startswith("http://"):
        base = "ws://" + base[len("http://"):]
    return base + C.WS_PATH


class WebSocketPushTransport:
    """JSON-frame WebSocket channel to the relay's /ws endpoint."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        url: str,
        *,
        heartbeat: Optional[float] = C.HEARTBEAT_S,
    ) -> None:
        self._http = session
        self._url = url
        self._heartbeat = heartbeat
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None

    @property
    def connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    async def connect(self) -> None:
        await self.close()
        _logger.debug("WS connect %s", self._url)
        try:
            self._ws = await self._http.ws_connect(self._url, heartbeat=self._heartbeat)
        except (aiohttp.ClientError, OSError) as exc:
            raise RelayTransportError(f"WebSocket connect to {self._url} failed: {exc}", endpoint=self._url) from exc

    async def _send(self, body: Dict[str, Any]) -> None:
        if not self.connected:
            raise RelayTransportError("WebSocket is not connected", endpoint=self._url)
        try:
            await self._ws.send_str(json.dumps(body, separators=(",", ":")))
        except (aiohttp.ClientError, ConnectionError, RuntimeError) as exc:
            raise RelayTransportError(f"WebSocket send failed: {exc}", endpoint=self._url) from exc

    async def subscribe(self, drone_id: str) -> None:
        await self._send({"type": "subscribe", "drone_id": drone_id})

    async def unsubscribe(self, drone_id: str) -> None:
        await self._send({"type": "unsubscribe", "drone_id": drone_id})

    async def events(self) -> AsyncIterator[Dict[str, Any]]:
        """Yield decoded frames until the socket closes."""
        ws = self._ws
        if ws is None:
            return
        async for msg in ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                try:
                    event = json.loads(msg.data)
                except json.JSONDecodeError:
                    _logger.debug("Ignoring non-JSON frame from %s", self._url)
                    continue
                if isinstance(event, dict):
                    yield event
            elif msg.type == aiohttp.WSMsgType.ERROR:
                raise RelayTransportError(f"WebSocket error: {ws.exception()}", endpoint=self._url)
            elif msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSING, aiohttp.WSMsgType.CLOSED):
                break

    async def close(self) -> None:
        ws, self._ws = self._ws, None
        if ws is not None and not ws.closed:
            await ws.close()


class HttpPullTransport:
    """GETs the last-known batch for a drone; 404 means no data yet."""

    def __init__(self, session: aiohttp.ClientSession, base_url: str) -> None:
        self._http = session
        self._base_url = base_url.rstrip("/")

    def latest_url(self, drone_id: str) -> str:
        return f"{self._base_url}{C.REST_PREFIX}{C.LATEST_PATH}/{quote(drone_id, safe='')}"

    async def fetch_latest(self, drone_id: str) -> Optional[PointCloudBatch]:
        url = self.latest_url(drone_id)
        try:
            async with self._http.get(url) as resp:
                if resp.status == 404:
                    return None
                text = await resp.text()
                if resp.status != 200:
                    raise RelayTransportError(
                        f"HTTP {resp.status} from {url}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=url,
                    )
        except RelayTransportError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise RelayTransportError(f"Request to {url} failed: {exc}", endpoint=url) from exc

        try:
            body = json.loads(text)
        except json.JSONDecodeError as exc:
            raise RelayTransportError(f"Invalid JSON from {url}: {text[:200]}", endpoint=url) from exc
        if not isinstance(body, dict) or "data" not in body:
            raise RelayTransportError(f"Missing 'data' field from {url}", endpoint=url)

        try:
            return PointCloudBatch.model_validate(body["data"])
        except ValidationError as exc:
            raise RelayTransportError(f"Malformed batch from {url}: {exc}", endpoint=url) from exc
