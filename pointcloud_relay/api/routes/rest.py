# pointcloud_relay/api/routes/rest.py
"""
Plain HTTP routes for companion computers and polling viewers.
"""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ... import config as C
from ...core import RelayState
from ...exceptions import IngestRejectedError, RejectionReason
from ...models import ErrorResponse, HealthResponse, IngestResponse, LatestResponse
from ...services import IngestPipeline, latest_batch_service
from ..deps import get_pipeline, get_state

_logger = logging.getLogger(__name__)

router = APIRouter(prefix=C.REST_PREFIX, tags=["rest"])


def rejection_response(exc: IngestRejectedError) -> JSONResponse:
    body = ErrorResponse(error=str(exc), reason=exc.reason.value, field=exc.field)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(exclude_none=True))


@router.post("/pointcloud/ingest", response_model=IngestResponse)
async def ingest_pointcloud(request: Request, pipeline: IngestPipeline = Depends(get_pipeline)):
    """
    Receive a point cloud batch from a companion computer.
    Body: {api_key, drone_id, timestamp, points: [...], stats: {...}}
    """
    try:
        payload = await request.json()
    except ValueError:
        _logger.debug("Rejected non-JSON ingest body from %s", request.client.host if request.client else "?")
        body = ErrorResponse(error="Request body must be JSON", reason=RejectionReason.MALFORMED_PAYLOAD.value)
        return JSONResponse(status_code=400, content=body.model_dump(exclude_none=True))

    try:
        result = await pipeline.ingest(payload)
    except IngestRejectedError as exc:
        return rejection_response(exc)
    return IngestResponse(stats=result.ack())


@router.get(C.LATEST_PATH + "/{drone_id}", response_model=LatestResponse)
def latest_pointcloud(drone_id: str, state: RelayState = Depends(get_state)):
    """Latest accepted batch for a drone (polling fallback)."""
    batch = latest_batch_service(state, drone_id)
    if batch is None:
        body = ErrorResponse(error="No data available for this drone", drone_id=drone_id)
        return JSONResponse(status_code=404, content=body.model_dump(exclude_none=True))
    return LatestResponse(data=batch)


@router.get("/health", response_model=HealthResponse)
def health():
    return HealthResponse(timestamp=datetime.now(timezone.utc).isoformat())
