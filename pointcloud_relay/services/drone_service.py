from __future__ import annotations

import asyncio
from typing import List, Optional

from .. import config as C
from ..core import RelayState
from ..models import DroneRecord, PointCloudBatch, ScanSummary


async def list_drones_service(state: RelayState) -> List[DroneRecord]:
    """All known drones, most recently seen first."""
    return await asyncio.to_thread(state.store.list_drones)


async def recent_scans_service(state: RelayState, drone_id: str, limit: int = C.RECENT_SCANS_LIMIT) -> List[ScanSummary]:
    return await asyncio.to_thread(state.store.recent_scans, drone_id, limit)


async def scan_stats_service(state: RelayState, drone_id: str) -> Optional[ScanSummary]:
    """Latest persisted scan summary for a drone, None if it never reported."""
    return await asyncio.to_thread(state.store.latest_scan, drone_id)


def latest_batch_service(state: RelayState, drone_id: str) -> Optional[PointCloudBatch]:
    return state.cache.get(drone_id)
