# pointcloud_relay/api/routes/ws.py
"""
Live viewer channel.

Client -> server: {"type": "subscribe" | "unsubscribe", "drone_id": "..."}
Server -> client: {"type": "pointcloud", "data": {...}}          (subscribed drone only)
                  {"type": "pointcloud_update", "data": {...}}   (every drone, summary)
                  {"type": "subscribed" | "unsubscribed", "drone_id": "..."}
                  {"type": "error", "error": "..."}
"""
import asyncio
import json
import logging
from contextlib import suppress
from typing import Any, Dict

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from ... import config as C
from ...core import EVENT_POINTCLOUD, Connection, RelayState
from ...core.broadcaster import encode_event
from ..deps import get_state

_logger = logging.getLogger(__name__)

router = APIRouter(tags=["ws"])


def _reply(msg_type: str, **fields: Any) -> str:
    body: Dict[str, Any] = {"type": msg_type}
    body.update(fields)
    return json.dumps(body, separators=(",", ":"))


def handle_client_frame(state: RelayState, conn: Connection, text: str) -> None:
    """Apply one subscribe/unsubscribe frame and queue the reply."""
    try:
        msg = json.loads(text)
    except ValueError:
        conn.offer(_reply("error", error="Frame must be JSON"))
        return
    if not isinstance(msg, dict):
        conn.offer(_reply("error", error="Frame must be a JSON object"))
        return

    msg_type = msg.get("type")
    if msg_type not in ("subscribe", "unsubscribe"):
        conn.offer(_reply("error", error=f"Unknown message type: {msg_type!r}"))
        return

    drone_id = msg.get("drone_id")
    if not isinstance(drone_id, str) or not drone_id:
        conn.offer(_reply("error", error="drone_id required"))
        return

    registry = state.registry
    if msg_type == "subscribe":
        registry.join(conn.conn_id, drone_id)
        conn.offer(_reply("subscribed", drone_id=drone_id))
        # late joiners start from the last-known batch instead of waiting for the next push
        cached = state.cache.get(drone_id)
        if cached is not None:
            conn.offer(encode_event(EVENT_POINTCLOUD, cached.model_dump(mode="json")))
    else:
        registry.leave(conn.conn_id, drone_id)
        conn.offer(_reply("unsubscribed", drone_id=drone_id))


async def _pump(ws: WebSocket, conn: Connection) -> None:
    """Drain the connection outbox onto the socket until it closes."""
    while True:
        frame = await conn.next_frame()
        if frame is None:
            return
        try:
            await ws.send_text(frame)
        except Exception:
            # socket went away; the receive loop will detach
            _logger.debug("Send to %s failed", conn.conn_id, exc_info=True)
            return


@router.websocket(C.WS_PATH)
async def ws_pointcloud(ws: WebSocket, state: RelayState = Depends(get_state)):
    await ws.accept()
    conn = Connection()
    state.broadcaster.attach(conn)
    _logger.info("Viewer connected: %s", conn.conn_id)
    sender = asyncio.create_task(_pump(ws, conn))

    try:
        while True:
            message = await ws.receive()
            if message["type"] == "websocket.disconnect":
                break
            text = message.get("text")
            if text is None and message.get("bytes") is not None:
                text = message["bytes"].decode("utf-8", errors="replace")
            if text is not None:
                handle_client_frame(state, conn, text)
    except WebSocketDisconnect:
        pass
    finally:
        state.broadcaster.detach(conn.conn_id)
        sender.cancel()
        with suppress(asyncio.CancelledError):
            await sender
        _logger.info("Viewer disconnected: %s (dropped %d frames)", conn.conn_id, conn.dropped)
