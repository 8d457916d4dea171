"""In-process record store used for development, tests and single-node runs."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from ..exceptions import RelayConfigError
from ..models import ApiKeyRecord, DroneRecord, ScanSummary

_logger = logging.getLogger(__name__)


class MemoryStore:
    """Credentials, drone liveness rows and scan summaries kept in dicts/lists."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._api_keys: Dict[str, ApiKeyRecord] = {}
        self._drones: Dict[str, DroneRecord] = {}
        self._scans: List[ScanSummary] = []
        self._next_scan_id = 1

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    def add_api_key(
        self,
        key: str,
        drone_id: str,
        *,
        description: Optional[str] = None,
        is_active: bool = True,
    ) -> ApiKeyRecord:
        record = ApiKeyRecord(key=key, drone_id=drone_id, description=description, is_active=is_active)
        with self._lock:
            self._api_keys[record.key] = record
        return record

    def set_api_key_active(self, key: str, is_active: bool) -> None:
        with self._lock:
            record = self._api_keys.get(key)
            if record is None:
                raise KeyError(key)
            self._api_keys[key] = record.model_copy(update={"is_active": is_active})

    def get_api_key(self, key: str) -> Optional[ApiKeyRecord]:
        with self._lock:
            return self._api_keys.get(key)

    def load_api_keys(self, path: Union[str, Path]) -> int:
        """Provision keys from a JSON list of {key, drone_id, is_active?, description?}."""
        try:
            raw: Any = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise RelayConfigError(f"Cannot read API keys file {path}: {exc}") from exc
        if not isinstance(raw, list):
            raise RelayConfigError(f"API keys file {path} must contain a JSON list")

        loaded = 0
        for item in raw:
            try:
                record = ApiKeyRecord.model_validate(item)
            except ValidationError as exc:
                raise RelayConfigError(f"Invalid API key entry in {path}: {exc}") from exc
            with self._lock:
                self._api_keys[record.key] = record
            loaded += 1
        _logger.info("Loaded %d API keys from %s", loaded, path)
        return loaded

    # ------------------------------------------------------------------
    # Drones
    # ------------------------------------------------------------------

    def upsert_drone(self, drone_id: str, last_seen: datetime) -> DroneRecord:
        with self._lock:
            existing = self._drones.get(drone_id)
            if existing is None:
                record = DroneRecord(drone_id=drone_id, last_seen=last_seen, is_active=True)
            else:
                record = existing.model_copy(update={"last_seen": last_seen, "is_active": True})
            self._drones[drone_id] = record
        return record

    def get_drone(self, drone_id: str) -> Optional[DroneRecord]:
        with self._lock:
            return self._drones.get(drone_id)

    def list_drones(self) -> List[DroneRecord]:
        with self._lock:
            drones = list(self._drones.values())
        return sorted(drones, key=lambda d: d.last_seen, reverse=True)

    # ------------------------------------------------------------------
    # Scans
    # ------------------------------------------------------------------

    def insert_scan(self, summary: ScanSummary) -> ScanSummary:
        with self._lock:
            stored = summary.model_copy(update={"id": self._next_scan_id})
            self._next_scan_id += 1
            self._scans.append(stored)
        return stored

    def recent_scans(self, drone_id: str, limit: int) -> List[ScanSummary]:
        with self._lock:
            rows = [s for s in self._scans if s.drone_id == drone_id]
        rows.sort(key=lambda s: (s.timestamp, s.id or 0), reverse=True)
        return rows[: max(0, limit)]

    def latest_scan(self, drone_id: str) -> Optional[ScanSummary]:
        rows = self.recent_scans(drone_id, 1)
        return rows[0] if rows else None
