"""
Ingest pipeline shared by the REST handler and the RPC procedure.

    RECEIVED -> AUTH_VALIDATED -> PAYLOAD_VALIDATED -> COMMITTED -> ACKNOWLEDGED
         \\______________ REJECTED(reason) ______________/

Commit runs as a best-effort sequence, not a transaction:
  (a) upsert drone liveness  (b) append scan summary
  (c) write last-known cache (d) publish to viewers
(c) and (d) only run once (a) and (b) have both succeeded, so the pull
path never shows a batch that failed to persist. A failure in (b) leaves
(a) applied; there is no rollback.
"""
from __future__ import annotations

import asyncio
import enum
import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional, Tuple

from ..core import PublishReport, RelayState
from ..exceptions import IngestRejectedError, InternalIngestError
from ..models import DroneRecord, IngestAck, PointCloudBatch, ScanSummary
from .credentials import CredentialValidator
from .validation import BatchValidator, parse_timestamp

_logger = logging.getLogger(__name__)


class IngestStage(str, enum.Enum):
    RECEIVED = "received"
    AUTH_VALIDATED = "auth_validated"
    PAYLOAD_VALIDATED = "payload_validated"
    COMMITTED = "committed"
    ACKNOWLEDGED = "acknowledged"
    REJECTED = "rejected"


@dataclass(frozen=True)
class IngestResult:
    batch: PointCloudBatch
    drone: DroneRecord
    scan: ScanSummary
    report: PublishReport
    stage: IngestStage = IngestStage.ACKNOWLEDGED

    def ack(self) -> IngestAck:
        return IngestAck(
            drone_id=self.batch.drone_id,
            point_count=self.batch.stats.point_count,
            timestamp=self.batch.timestamp,
        )


def _round_half_up(value: Any) -> Optional[int]:
    if value is None:
        return None
    return int(math.floor(float(value) + 0.5))


def build_scan_summary(batch: PointCloudBatch) -> ScanSummary:
    stats = batch.stats
    return ScanSummary(
        drone_id=batch.drone_id,
        timestamp=parse_timestamp(batch.timestamp),
        point_count=_round_half_up(stats.point_count),
        min_distance=_round_half_up(stats.min_distance),
        max_distance=_round_half_up(stats.max_distance),
        avg_quality=_round_half_up(stats.avg_quality),
    )


class IngestPipeline:
    """Authenticates, validates and commits one batch per call."""

    def __init__(
        self,
        state: RelayState,
        *,
        credentials: Optional[CredentialValidator] = None,
        validator: Optional[BatchValidator] = None,
    ) -> None:
        self._state = state
        self._credentials = credentials or CredentialValidator(state.store)
        self._validator = validator or BatchValidator()

    async def ingest(self, payload: Any) -> IngestResult:
        stage = IngestStage.RECEIVED
        try:
            body: Mapping = payload if isinstance(payload, Mapping) else {}

            drone_id = await self._authenticate(body.get("api_key"))
            stage = IngestStage.AUTH_VALIDATED

            batch = self._validator.validate(payload, body.get("drone_id"), drone_id)
            stage = IngestStage.PAYLOAD_VALIDATED

            drone, scan = await self._persist(batch)
            self._state.cache.put(batch.drone_id, batch)
            report = self._state.broadcaster.publish(batch)
            stage = IngestStage.COMMITTED
        except IngestRejectedError as exc:
            _logger.info(
                "Ingest %s after %s: %s (%s)",
                IngestStage.REJECTED.value,
                stage.value,
                exc.reason.value,
                exc,
            )
            raise

        _logger.debug(
            "Accepted batch drone=%s points=%d subscribers=%d viewers=%d",
            batch.drone_id,
            len(batch.points),
            report.subscribers,
            report.dashboard,
        )
        return IngestResult(batch=batch, drone=drone, scan=scan, report=report)

    async def _authenticate(self, api_key: Any) -> str:
        try:
            return await asyncio.to_thread(self._credentials.validate, api_key)
        except IngestRejectedError:
            raise
        except Exception as exc:
            _logger.error("Credential lookup failed", exc_info=True)
            raise InternalIngestError("Internal server error") from exc

    async def _persist(self, batch: PointCloudBatch) -> Tuple[DroneRecord, ScanSummary]:
        store = self._state.store
        try:
            summary = build_scan_summary(batch)
            drone = await asyncio.to_thread(store.upsert_drone, batch.drone_id, summary.timestamp)
            scan = await asyncio.to_thread(store.insert_scan, summary)
        except Exception as exc:
            _logger.error("Commit failed for drone %s", batch.drone_id, exc_info=True)
            raise InternalIngestError(f"Internal server error: {exc}") from exc
        return drone, scan
