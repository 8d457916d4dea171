# pointcloud_relay/api/routes/rpc.py
"""
Typed procedure surface for the dashboard.

POST /api/rpc/{procedure} with the procedure input as the JSON body.
Success: {"result": ...}
Failure: {"error": {"code": "BAD_REQUEST", "message": "...", "field": "..."}}
"""
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from ... import config as C
from ...core import RelayState
from ...exceptions import IngestRejectedError
from ...models import DroneQuery, IngestResponse, RecentScansQuery
from ...services import (
    IngestPipeline,
    list_drones_service,
    recent_scans_service,
    scan_stats_service,
)
from ..deps import get_pipeline, get_state

_logger = logging.getLogger(__name__)

router = APIRouter(prefix=C.RPC_PREFIX, tags=["rpc"])

ERROR_CODES: Dict[int, str] = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    500: "INTERNAL_SERVER_ERROR",
}

Procedure = Callable[[RelayState, IngestPipeline, Any], Awaitable[Any]]


def rpc_error(status_code: int, message: str, field: Optional[str] = None) -> JSONResponse:
    error: Dict[str, Any] = {"code": ERROR_CODES.get(status_code, "INTERNAL_SERVER_ERROR"), "message": message}
    if field is not None:
        error["field"] = field
    return JSONResponse(status_code=status_code, content={"error": error})


async def _ingest(state: RelayState, pipeline: IngestPipeline, data: Any) -> Any:
    result = await pipeline.ingest(data)
    return IngestResponse(stats=result.ack()).model_dump(mode="json")


async def _get_drones(state: RelayState, pipeline: IngestPipeline, data: Any) -> Any:
    drones = await list_drones_service(state)
    return [d.model_dump(mode="json") for d in drones]


async def _get_recent_scans(state: RelayState, pipeline: IngestPipeline, data: Any) -> Any:
    query = RecentScansQuery.model_validate(data)
    scans = await recent_scans_service(state, query.droneId, query.limit)
    return [s.model_dump(mode="json") for s in scans]


async def _get_stats(state: RelayState, pipeline: IngestPipeline, data: Any) -> Any:
    query = DroneQuery.model_validate(data)
    scan = await scan_stats_service(state, query.droneId)
    return scan.model_dump(mode="json") if scan is not None else None


PROCEDURES: Dict[str, Procedure] = {
    "pointcloud.ingest": _ingest,
    "pointcloud.getDrones": _get_drones,
    "pointcloud.getRecentScans": _get_recent_scans,
    "pointcloud.getStats": _get_stats,
}


@router.post("/{procedure}")
async def call_procedure(
    procedure: str,
    request: Request,
    state: RelayState = Depends(get_state),
    pipeline: IngestPipeline = Depends(get_pipeline),
):
    handler = PROCEDURES.get(procedure)
    if handler is None:
        return rpc_error(404, f"No procedure named {procedure!r}")

    raw = await request.body()
    data: Any = None
    if raw.strip():
        try:
            data = await request.json()
        except ValueError:
            return rpc_error(400, "Request body must be JSON")

    try:
        result = await handler(state, pipeline, data)
    except IngestRejectedError as exc:
        return rpc_error(exc.status_code, str(exc), exc.field)
    except ValidationError as exc:
        first = exc.errors()[0] if exc.errors() else {}
        loc = ".".join(str(p) for p in first.get("loc", ())) or None
        return rpc_error(400, first.get("msg", "Invalid input"), loc)
    except Exception:
        _logger.error("Procedure %s failed", procedure, exc_info=True)
        return rpc_error(500, "Internal server error")
    return {"result": result}
