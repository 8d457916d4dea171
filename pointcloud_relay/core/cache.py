"""Last-known batch per drone, backing the polling fallback."""

from __future__ import annotations

from threading import Lock
from typing import Dict, List, Optional

from ..models import PointCloudBatch


class LastKnownCache:
    """One slot per drone, overwritten on every accepted ingest.

    Entries are never time-evicted: the pull path must always be able to
    answer with the last known state, however old. ``get`` returns ``None``
    for a drone that has never had a batch accepted.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._latest: Dict[str, PointCloudBatch] = {}

    def put(self, drone_id: str, batch: PointCloudBatch) -> None:
        with self._lock:
            self._latest[drone_id] = batch

    def get(self, drone_id: str) -> Optional[PointCloudBatch]:
        with self._lock:
            return self._latest.get(drone_id)

    def sources(self) -> List[str]:
        with self._lock:
            return list(self._latest)

    def __contains__(self, drone_id: object) -> bool:
        with self._lock:
            return drone_id in self._latest

    def __len__(self) -> int:
        with self._lock:
            return len(self._latest)
