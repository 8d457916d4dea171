# pointcloud_relay/app.py
import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from . import config as C
from .api.routes import router as api_router
from .core import RelayState
from .logging_setup import configure_logging
from .services import IngestPipeline

_logger = logging.getLogger(__name__)


def create_app(state: Optional[RelayState] = None, *, api_keys_file: Optional[str] = None) -> FastAPI:
    """Composition root: one RelayState and one IngestPipeline per app."""
    state = state or RelayState()

    keys_file = api_keys_file or C.API_KEYS_FILE
    if keys_file:
        loader = getattr(state.store, "load_api_keys", None)
        if loader is None:
            _logger.warning("Store %s cannot load API keys; ignoring %s", type(state.store).__name__, keys_file)
        else:
            loader(keys_file)

    app = FastAPI(title="Point Cloud Relay", version=__version__)

    # CORS for both HTTP and WS (credentials False to keep wildcard)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=C.CORS_ORIGINS,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.relay = state
    app.state.pipeline = IngestPipeline(state)
    app.include_router(api_router)
    return app


def main() -> None:
    import uvicorn

    configure_logging()
    _logger.info("Starting relay on %s:%d", C.HOST, C.PORT)
    uvicorn.run(
        "pointcloud_relay.app:create_app",
        factory=True,
        host=C.HOST,
        port=C.PORT,
        log_level=(C.LOG_LEVEL or "info").lower(),
    )


if __name__ == "__main__":
    main()
