"""
Dependency injection for API routes.

The composition root (app.create_app) stores the relay state and the ingest
pipeline on ``app.state``; routes reach them through these helpers.
"""
from fastapi.requests import HTTPConnection

from ..core import RelayState
from ..services import IngestPipeline


def get_state(conn: HTTPConnection) -> RelayState:
    """Relay state owned by the running app."""
    return conn.app.state.relay


def get_pipeline(conn: HTTPConnection) -> IngestPipeline:
    """The single ingest pipeline both ingest transports share."""
    return conn.app.state.pipeline
