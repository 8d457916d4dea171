# pointcloud_relay/config.py
"""
Relay settings. Every value can be overridden with a RELAY_* environment
variable; components also accept explicit constructor arguments.
"""
import os
from typing import List, Optional


def _env_str(name: str, default: Optional[str]) -> Optional[str]:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    return int(value)


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    return float(value)


def _env_list(name: str, default: List[str]) -> List[str]:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


# ---- Server ----
HOST = _env_str("RELAY_HOST", "0.0.0.0")
PORT = _env_int("RELAY_PORT", 8000)
CORS_ORIGINS = _env_list("RELAY_CORS_ORIGINS", ["*"])
LOG_LEVEL = _env_str("RELAY_LOG_LEVEL", "INFO")

# JSON file with [{"key": ..., "drone_id": ..., "is_active": true}, ...]
API_KEYS_FILE = _env_str("RELAY_API_KEYS_FILE", None)

# ---- Routes ----
REST_PREFIX = "/api/rest"
RPC_PREFIX = "/api/rpc"
WS_PATH = "/ws"
LATEST_PATH = "/pointcloud/latest"

# ---- Ingest ----
POINT_SAMPLE_SIZE = _env_int("RELAY_POINT_SAMPLE_SIZE", 5)   # points deep-validated per batch
RECENT_SCANS_LIMIT = _env_int("RELAY_RECENT_SCANS_LIMIT", 100)

# ---- Fan-out ----
OUTBOX_MAX = _env_int("RELAY_OUTBOX_MAX", 64)                # queued frames per connection

# ---- Viewer transport ----
POLL_INTERVAL_S = _env_float("RELAY_POLL_INTERVAL_S", 0.1)      # 10 Hz pull fallback
HANDSHAKE_TIMEOUT_S = _env_float("RELAY_HANDSHAKE_TIMEOUT_S", 5.0)
RECONNECT_INTERVAL_S = _env_float("RELAY_RECONNECT_INTERVAL_S", 2.0)
HEARTBEAT_S = _env_float("RELAY_HEARTBEAT_S", 15.0)
