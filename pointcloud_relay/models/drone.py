"""
Pydantic models for the durable records the relay reads and writes.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DroneRecord(BaseModel):
    """Liveness row for one source, created on its first accepted ingest."""
    model_config = ConfigDict(frozen=True)

    drone_id: str
    name: Optional[str] = None
    last_seen: datetime
    is_active: bool = True
    created_at: datetime = Field(default_factory=_utcnow)


class ApiKeyRecord(BaseModel):
    """Credential bound to exactly one drone. Provisioned outside the relay."""
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    key: str = Field(..., min_length=1)
    drone_id: str = Field(..., min_length=1)
    description: Optional[str] = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=_utcnow)


class ScanSummary(BaseModel):
    """
    Append-only scan metadata row. Distances and quality are stored rounded
    to whole units; the points themselves are never persisted.
    """
    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None
    drone_id: str
    timestamp: datetime
    point_count: int
    min_distance: Optional[int] = None
    max_distance: Optional[int] = None
    avg_quality: Optional[int] = None
    created_at: datetime = Field(default_factory=_utcnow)
