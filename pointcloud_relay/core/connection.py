"""Per-viewer outbound channel."""

from __future__ import annotations

import asyncio
import itertools
from typing import Optional

from .. import config as C

_ids = itertools.count(1)


def next_connection_id() -> str:
    return f"conn-{next(_ids)}"


class Connection:
    """Bounded outbox for one live viewer.

    ``offer`` never waits: if the viewer is not draining fast enough the
    frame is dropped for this viewer only. A separate sender task (owned by
    the transport) drains the outbox with ``next_frame``.
    """

    __slots__ = ("conn_id", "_outbox", "_closed", "dropped")

    def __init__(self, conn_id: Optional[str] = None, *, maxsize: int = C.OUTBOX_MAX) -> None:
        self.conn_id = conn_id or next_connection_id()
        self._outbox: "asyncio.Queue[Optional[str]]" = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def offer(self, frame: str) -> bool:
        if self._closed:
            return False
        try:
            self._outbox.put_nowait(frame)
        except asyncio.QueueFull:
            self.dropped += 1
            return False
        return True

    async def next_frame(self) -> Optional[str]:
        """Next frame to send, or None once the connection is closed."""
        if self._closed and self._outbox.empty():
            return None
        return await self._outbox.get()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        # wake the sender; if the outbox is full it is draining anyway and
        # will see the closed flag once empty
        try:
            self._outbox.put_nowait(None)
        except asyncio.QueueFull:
            pass
