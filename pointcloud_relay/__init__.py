"""pointcloud_relay - Live LiDAR point cloud relay between drones and dashboards."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pointcloud-relay")
except PackageNotFoundError:
    __version__ = "0+local"
from pointcloud_relay.core import RelayState
from pointcloud_relay.exceptions import (
    BatchRejectedError,
    IdentityMismatchError,
    IngestRejectedError,
    InternalIngestError,
    InvalidApiKeyError,
    MalformedPayloadError,
    MissingFieldsError,
    RejectionReason,
    RelayConfigError,
    RelayError,
    RelayTransportError,
    StoreError,
)
from pointcloud_relay.models import (
    DashboardUpdate,
    DroneRecord,
    Point,
    PointCloudBatch,
    ScanStats,
    ScanSummary,
)
from pointcloud_relay.storage import MemoryStore

__all__ = [
    "__version__",
    "BatchRejectedError",
    "DashboardUpdate",
    "DroneRecord",
    "IdentityMismatchError",
    "IngestRejectedError",
    "InternalIngestError",
    "InvalidApiKeyError",
    "MalformedPayloadError",
    "MemoryStore",
    "MissingFieldsError",
    "Point",
    "PointCloudBatch",
    "RejectionReason",
    "RelayConfigError",
    "RelayError",
    "RelayState",
    "RelayTransportError",
    "ScanStats",
    "ScanSummary",
    "StoreError",
]
