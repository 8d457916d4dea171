"""
Pydantic models for point cloud batches and their wire events.
"""
from __future__ import annotations

from typing import Annotated, Any, List, Union

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt

# int or float, never bool or a numeric string; ints stay ints on the wire
Number = Union[StrictInt, StrictFloat]


class Point(BaseModel):
    """
    One ranged lidar sample as produced on the drone.

    - angle:    degrees, already normalized by the producer
    - distance: range (mm for the RPLidar-class sensors in use)
    - quality:  0..63
    - x, y:     Cartesian position resolved by the producer
    """
    model_config = ConfigDict(frozen=True)

    angle: Number
    distance: Number
    quality: Number
    x: Number
    y: Number


# Points past the validated sample are carried as received: anything that is
# not a well-formed Point stays a raw value.
PointLike = Annotated[Union[Point, Any], Field(union_mode="left_to_right")]


class ScanStats(BaseModel):
    """Summary over a batch, trusted as given by the producer."""
    model_config = ConfigDict(frozen=True)

    point_count: Number
    valid_points: Number
    min_distance: Number
    max_distance: Number
    avg_distance: Number
    avg_quality: Number


class PointCloudBatch(BaseModel):
    """
    Unit of ingestion, caching and broadcast.

    - timestamp: ISO-8601 string, echoed exactly as the producer sent it
    - points:    scan order is preserved
    """
    model_config = ConfigDict(frozen=True)

    drone_id: str
    timestamp: str
    points: List[PointLike]
    stats: ScanStats

    def summary(self) -> "DashboardUpdate":
        return DashboardUpdate(
            drone_id=self.drone_id,
            timestamp=self.timestamp,
            point_count=self.stats.point_count,
        )


class DashboardUpdate(BaseModel):
    """Lightweight cross-source event sent to every connection."""
    model_config = ConfigDict(frozen=True)

    drone_id: str
    timestamp: str
    point_count: Number
