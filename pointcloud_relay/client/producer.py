"""
Batch builder for companion-computer scripts.

Takes raw lidar returns (angle in degrees, distance, quality) as arrays and
produces a ``PointCloudBatch`` ready for ingest. The relay trusts producer
stats as given, so they are computed here; angles are normalized into
[0, 360) here as well.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Sequence, Union

import numpy as np

from ..models import Point, PointCloudBatch, ScanStats

ArrayLike = Union[Sequence[float], np.ndarray]

MAX_QUALITY = 63


def build_batch(
    drone_id: str,
    angles_deg: ArrayLike,
    distances: ArrayLike,
    qualities: ArrayLike,
    timestamp: Optional[str] = None,
) -> PointCloudBatch:
    angles = np.mod(np.asarray(angles_deg, dtype=float), 360.0)
    dist = np.asarray(distances, dtype=float)
    qual = np.clip(np.asarray(qualities, dtype=float), 0, MAX_QUALITY)
    if not (angles.shape == dist.shape == qual.shape) or angles.ndim != 1:
        raise ValueError("angles, distances and qualities must be 1-D arrays of equal length")

    rad = np.deg2rad(angles)
    xs = dist * np.cos(rad)
    ys = dist * np.sin(rad)

    points = [
        Point(angle=float(a), distance=float(d), quality=int(q), x=float(x), y=float(y))
        for a, d, q, x, y in zip(angles, dist, qual, xs, ys)
    ]

    # zero-distance returns are misses
    valid = dist > 0
    if valid.any():
        d_valid = dist[valid]
        min_d, max_d, avg_d = float(d_valid.min()), float(d_valid.max()), float(d_valid.mean())
    else:
        min_d = max_d = avg_d = 0.0

    stats = ScanStats(
        point_count=int(dist.size),
        valid_points=int(valid.sum()),
        min_distance=min_d,
        max_distance=max_d,
        avg_distance=avg_d,
        avg_quality=float(qual.mean()) if qual.size else 0.0,
    )
    return PointCloudBatch(
        drone_id=drone_id,
        timestamp=timestamp or datetime.now(timezone.utc).isoformat(),
        points=points,
        stats=stats,
    )


def synthetic_scan(
    drone_id: str,
    n_points: int = 360,
    *,
    radius: float = 2000.0,
    noise: float = 25.0,
    dropout: float = 0.05,
    seed: Optional[int] = None,
    timestamp: Optional[str] = None,
) -> PointCloudBatch:
    """A full sweep around a roughly circular room, distances in mm."""
    rng = np.random.default_rng(seed)
    angles = np.linspace(0.0, 360.0, n_points, endpoint=False)
    distances = radius + rng.normal(0.0, noise, n_points)
    distances[rng.random(n_points) < dropout] = 0.0
    distances = np.maximum(distances, 0.0)
    qualities = rng.integers(10, MAX_QUALITY + 1, n_points)
    qualities[distances == 0] = 0
    return build_batch(drone_id, angles, distances, qualities, timestamp=timestamp)
