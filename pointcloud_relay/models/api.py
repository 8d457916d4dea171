"""
Pydantic models for REST/RPC request and response bodies.
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from .. import config as C
from .pointcloud import Number, PointCloudBatch


class IngestAck(BaseModel):
    """Echo of what was accepted."""
    drone_id: str
    point_count: Number
    timestamp: str


class IngestResponse(BaseModel):
    """
    Response for POST /api/rest/pointcloud/ingest on success.
    """
    success: bool = True
    message: str = "Point cloud data received"
    stats: IngestAck


class LatestResponse(BaseModel):
    """
    Response for GET /api/rest/pointcloud/latest/{drone_id}:
    - data: the most recently accepted batch for that drone
    """
    success: bool = True
    data: PointCloudBatch


class ErrorResponse(BaseModel):
    """
    Failure body shared by the REST routes:
    - error: human readable reason
    - reason: rejection name (InvalidApiKey, IdentityMismatch, ...)
    - field: offending field for payload rejections
    """
    success: bool = False
    error: str
    reason: Optional[str] = None
    field: Optional[str] = None
    drone_id: Optional[str] = None


class HealthResponse(BaseModel):
    success: bool = True
    status: str = "healthy"
    timestamp: str


class DroneQuery(BaseModel):
    """RPC input naming one drone."""
    droneId: str = Field(min_length=1)


class RecentScansQuery(DroneQuery):
    limit: int = Field(default=C.RECENT_SCANS_LIMIT, ge=1)
