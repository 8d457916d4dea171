from .credentials import CredentialValidator
from .validation import BatchValidator, FieldContract, FieldKind, parse_timestamp
from .ingest_service import IngestPipeline, IngestResult, IngestStage, build_scan_summary
from .drone_service import (
    list_drones_service,
    recent_scans_service,
    scan_stats_service,
    latest_batch_service,
)
