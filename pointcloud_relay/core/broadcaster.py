"""Fan-out of accepted batches to live viewers."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from threading import Lock
from typing import Any, Dict, Iterable, Optional, Tuple

from ..models import PointCloudBatch
from .connection import Connection
from .registry import SubscriptionRegistry

_logger = logging.getLogger(__name__)

EVENT_POINTCLOUD = "pointcloud"
EVENT_DASHBOARD = "pointcloud_update"


def encode_event(event_type: str, data: Any) -> str:
    return json.dumps({"type": event_type, "data": data}, separators=(",", ":"))


@dataclass(frozen=True)
class PublishReport:
    """What one publish reached."""

    drone_id: str
    subscribers: int
    delivered: int
    dashboard: int
    dropped: int


class Broadcaster:
    """Pushes each accepted batch to its drone's subscribers and a summary to everyone.

    Delivery is fire-and-forget: frames are offered to each connection's
    outbox without waiting, so a slow or dead viewer never holds up the
    others and a viewer that is not connected simply misses the push.
    """

    def __init__(self, registry: SubscriptionRegistry) -> None:
        self._registry = registry
        self._lock = Lock()
        self._connections: Dict[str, Connection] = {}

    @property
    def registry(self) -> SubscriptionRegistry:
        return self._registry

    def attach(self, connection: Connection) -> None:
        with self._lock:
            self._connections[connection.conn_id] = connection
        self._registry.register(connection.conn_id)

    def detach(self, conn_id: str) -> Optional[Connection]:
        self._registry.drop(conn_id)
        with self._lock:
            connection = self._connections.pop(conn_id, None)
        if connection is not None:
            connection.close()
        return connection

    def connection(self, conn_id: str) -> Optional[Connection]:
        with self._lock:
            return self._connections.get(conn_id)

    def connection_count(self) -> int:
        with self._lock:
            return len(self._connections)

    def publish(self, batch: PointCloudBatch) -> PublishReport:
        full_frame = encode_event(EVENT_POINTCLOUD, batch.model_dump(mode="json"))
        summary_frame = encode_event(EVENT_DASHBOARD, batch.summary().model_dump(mode="json"))

        members = self._registry.members_of(batch.drone_id)
        everyone = self._registry.all_connections()

        delivered, dropped_full = self._offer_all(members, full_frame)
        dashboard, dropped_summary = self._offer_all(everyone, summary_frame)

        report = PublishReport(
            drone_id=batch.drone_id,
            subscribers=len(members),
            delivered=delivered,
            dashboard=dashboard,
            dropped=dropped_full + dropped_summary,
        )
        if report.dropped:
            _logger.debug("Publish for %s dropped %d frames", batch.drone_id, report.dropped)
        return report

    def _offer_all(self, conn_ids: Iterable[str], frame: str) -> Tuple[int, int]:
        with self._lock:
            targets = [self._connections.get(cid) for cid in conn_ids]
        ok = failed = 0
        for conn in targets:
            if conn is not None and conn.offer(frame):
                ok += 1
            else:
                failed += 1
        return ok, failed
