from __future__ import annotations

from typing import Any, Dict

KEY_D1 = "pk_live_d1_0123456789"
KEY_D2 = "pk_live_d2_0123456789"
KEY_REVOKED = "pk_live_d1_revoked_99"


def make_point(i: int) -> Dict[str, Any]:
    return {"angle": float(i * 10), "distance": 1000 + i, "quality": 47, "x": 1.5 * i, "y": -0.5 * i}


def make_payload(
    drone_id: str = "d1",
    api_key: str = KEY_D1,
    n_points: int = 3,
    timestamp: str = "2025-01-15T10:30:00.000Z",
    **overrides: Any,
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "api_key": api_key,
        "drone_id": drone_id,
        "timestamp": timestamp,
        "points": [make_point(i) for i in range(n_points)],
        "stats": {
            "point_count": n_points,
            "valid_points": n_points,
            "min_distance": 1000,
            "max_distance": 1000 + max(0, n_points - 1),
            "avg_distance": 1001.0,
            "avg_quality": 47.0,
        },
    }
    payload.update(overrides)
    return payload
