from .pointcloud import Number, Point, PointLike, ScanStats, PointCloudBatch, DashboardUpdate
from .drone import DroneRecord, ApiKeyRecord, ScanSummary
from .api import (
    IngestAck,
    IngestResponse,
    LatestResponse,
    ErrorResponse,
    HealthResponse,
    DroneQuery,
    RecentScansQuery,
)
