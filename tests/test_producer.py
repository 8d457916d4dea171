from __future__ import annotations

import math

import numpy as np
import pytest

from pointcloud_relay.client import build_batch, synthetic_scan
from pointcloud_relay.models import Point
from pointcloud_relay.services import BatchValidator


def test_build_batch_computes_xy_and_stats() -> None:
    batch = build_batch(
        "d1",
        angles_deg=[0.0, 90.0, 450.0, -90.0],
        distances=[1000.0, 2000.0, 0.0, 500.0],
        qualities=[40, 50, 0, 70],
        timestamp="2025-01-15T10:30:00Z",
    )

    assert batch.drone_id == "d1"
    assert batch.timestamp == "2025-01-15T10:30:00Z"
    assert [p.angle for p in batch.points] == [0.0, 90.0, 90.0, 270.0]

    first, second = batch.points[0], batch.points[1]
    assert first.x == pytest.approx(1000.0)
    assert first.y == pytest.approx(0.0, abs=1e-9)
    assert second.x == pytest.approx(0.0, abs=1e-9)
    assert second.y == pytest.approx(2000.0)
    # quality clipped to the sensor range
    assert batch.points[3].quality == 63

    stats = batch.stats
    assert stats.point_count == 4
    assert stats.valid_points == 3
    assert stats.min_distance == 500.0
    assert stats.max_distance == 2000.0
    assert stats.avg_distance == pytest.approx(3500.0 / 3)
    assert stats.avg_quality == pytest.approx((40 + 50 + 0 + 63) / 4)


def test_build_batch_all_misses() -> None:
    batch = build_batch("d1", [0, 1], [0, 0], [0, 0])
    assert batch.stats.valid_points == 0
    assert batch.stats.min_distance == 0.0
    assert batch.timestamp


def test_build_batch_rejects_ragged_input() -> None:
    with pytest.raises(ValueError):
        build_batch("d1", [0, 1, 2], [100, 200], [10, 10, 10])


def test_synthetic_scan_passes_validation() -> None:
    batch = synthetic_scan("d9", 180, seed=7, timestamp="2025-01-15T10:30:00Z")

    assert len(batch.points) == 180
    assert all(isinstance(p, Point) for p in batch.points)
    assert all(0 <= p.angle < 360 for p in batch.points)

    raw = batch.model_dump(mode="json")
    validated = BatchValidator(sample_size=180).validate(raw, "d9", "d9")
    assert validated == batch


def test_synthetic_scan_is_reproducible() -> None:
    a = synthetic_scan("d1", 32, seed=1, timestamp="t")
    b = synthetic_scan("d1", 32, seed=1, timestamp="t")
    assert a == b
    distances = np.array([p.distance for p in a.points])
    assert math.isclose(a.stats.max_distance, float(distances.max()))
