"""High-level async client for the relay: ingest batches and watch drones."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from typing import Any, Dict, List, Optional, Union

import aiohttp
from pydantic import ValidationError

from .. import config as C
from ..exceptions import (
    IdentityMismatchError,
    InternalIngestError,
    InvalidApiKeyError,
    MalformedPayloadError,
    MissingFieldsError,
    RejectionReason,
    RelayError,
    RelayTransportError,
)
from ..models import IngestAck, PointCloudBatch
from .negotiator import BatchCallback, StateCallback, TransportNegotiator
from .transports import HttpPullTransport, WebSocketPushTransport, http_to_ws

_logger = logging.getLogger(__name__)


def rejection_from_body(status: int, body: Mapping[str, Any], endpoint: str) -> RelayError:
    """Rebuild the server's rejection as the matching exception."""
    reason = body.get("reason")
    message = str(body.get("error") or f"HTTP {status}")
    field = body.get("field")

    if reason == RejectionReason.INVALID_API_KEY.value:
        return InvalidApiKeyError(message)
    if reason == RejectionReason.IDENTITY_MISMATCH.value:
        return IdentityMismatchError(message, field=field)
    if reason == RejectionReason.MISSING_FIELDS.value:
        _, _, names = message.partition(": ")
        missing = [n.strip() for n in names.split(",") if n.strip()] or ([field] if field else [])
        return MissingFieldsError(missing)
    if reason == RejectionReason.MALFORMED_PAYLOAD.value:
        return MalformedPayloadError(message, field=field)
    if reason == RejectionReason.INTERNAL_ERROR.value:
        return InternalIngestError(message)
    return RelayTransportError(f"HTTP {status} from {endpoint}: {message}", status_code=status, endpoint=endpoint)


class RelayClient:
    """Async client for one relay server.

    Usage::

        async with RelayClient("http://relay:8000") as client:
            await client.ingest(batch, api_key="...")
            viewer = await client.watch("drone-1", on_batch=render)
    """

    def __init__(
        self,
        base_url: str,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        ws_url: Optional[str] = None,
        request_timeout: float = 10.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._ws_url = ws_url or http_to_ws(self._base_url)
        self._external_session = session is not None
        self._http_session = session
        self._timeout = aiohttp.ClientTimeout(total=request_timeout)
        self._watchers: List[TransportNegotiator] = []

    async def __aenter__(self) -> "RelayClient":
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession(timeout=self._timeout)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def close(self) -> None:
        watchers, self._watchers = self._watchers, []
        for negotiator in watchers:
            await negotiator.close()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
        self._http_session = None

    def _require_session(self) -> aiohttp.ClientSession:
        if self._http_session is None:
            raise RelayError("RelayClient is not open; use 'async with RelayClient(...)'")
        return self._http_session

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------

    async def ingest(self, batch: Union[PointCloudBatch, Mapping[str, Any]], api_key: str) -> IngestAck:
        """POST one batch; raises the matching ``IngestRejectedError`` on rejection."""
        http = self._require_session()
        if isinstance(batch, PointCloudBatch):
            payload: Dict[str, Any] = batch.model_dump(mode="json")
        else:
            payload = dict(batch)
        payload["api_key"] = api_key

        url = f"{self._base_url}{C.REST_PREFIX}/pointcloud/ingest"
        _logger.debug("POST %s drone=%s points=%d", url, payload.get("drone_id"), len(payload.get("points") or []))
        try:
            async with http.post(url, json=payload) as resp:
                text = await resp.text()
                status = resp.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise RelayTransportError(f"Request to {url} failed: {exc}", endpoint=url) from exc

        try:
            body = json.loads(text)
        except json.JSONDecodeError as exc:
            raise RelayTransportError(
                f"Invalid JSON from {url}: {text[:200]}", status_code=status, endpoint=url
            ) from exc
        if not isinstance(body, dict):
            raise RelayTransportError(f"Unexpected body from {url}", status_code=status, endpoint=url)

        if status != 200:
            raise rejection_from_body(status, body, url)
        try:
            return IngestAck.model_validate(body.get("stats"))
        except ValidationError as exc:
            raise RelayTransportError(f"Missing 'stats' in response from {url}", endpoint=url) from exc

    # ------------------------------------------------------------------
    # Viewer side
    # ------------------------------------------------------------------

    async def latest(self, drone_id: str) -> Optional[PointCloudBatch]:
        """One-shot pull of the last-known batch (None if the drone never reported)."""
        return await HttpPullTransport(self._require_session(), self._base_url).fetch_latest(drone_id)

    async def watch(
        self,
        drone_id: str,
        on_batch: BatchCallback,
        *,
        on_state: Optional[StateCallback] = None,
        **negotiator_kwargs: Any,
    ) -> TransportNegotiator:
        """Start a negotiator for ``drone_id``; it is closed with the client."""
        http = self._require_session()
        negotiator = TransportNegotiator(
            drone_id,
            push=WebSocketPushTransport(http, self._ws_url),
            pull=HttpPullTransport(http, self._base_url),
            on_batch=on_batch,
            on_state=on_state,
            **negotiator_kwargs,
        )
        await negotiator.start()
        self._watchers.append(negotiator)
        return negotiator
