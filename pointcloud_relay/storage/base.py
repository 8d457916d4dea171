"""Collaborator interfaces the relay core consumes.

The relay never owns durable data. It looks credentials up by key,
upserts drone liveness and appends scan summaries through these
protocols, so tests and deployments can plug in any record store.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Protocol, runtime_checkable

from ..models import ApiKeyRecord, DroneRecord, ScanSummary


class CredentialStore(Protocol):
    def get_api_key(self, key: str) -> Optional[ApiKeyRecord]:
        ...


class DroneStore(Protocol):
    def upsert_drone(self, drone_id: str, last_seen: datetime) -> DroneRecord:
        ...

    def get_drone(self, drone_id: str) -> Optional[DroneRecord]:
        ...

    def list_drones(self) -> List[DroneRecord]:
        ...


class ScanStore(Protocol):
    def insert_scan(self, summary: ScanSummary) -> ScanSummary:
        ...

    def recent_scans(self, drone_id: str, limit: int) -> List[ScanSummary]:
        ...

    def latest_scan(self, drone_id: str) -> Optional[ScanSummary]:
        ...


@runtime_checkable
class RecordStore(CredentialStore, DroneStore, ScanStore, Protocol):
    """Everything the relay needs from one backing store."""
