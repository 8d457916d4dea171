"""Logging configuration for the relay server and tools."""

import logging
from typing import Optional

from . import config as C


def _resolve_level(level_name: str) -> int:
    return getattr(logging, level_name.upper(), logging.INFO)


def configure_logging(level_name: Optional[str] = None) -> None:
    """Configure root logging from RELAY_LOG_LEVEL with a concise format."""
    level = _resolve_level(level_name or C.LOG_LEVEL or "INFO")
    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
    root_logger = logging.getLogger()

    if root_logger.handlers:
        root_logger.setLevel(level)
        for handler in root_logger.handlers:
            handler.setLevel(level)
            handler.setFormatter(formatter)
        return

    logging.basicConfig(level=level)
    for handler in logging.getLogger().handlers:
        handler.setFormatter(formatter)


def redact_key(key: object) -> str:
    """Short, log-safe form of an API key."""
    if not isinstance(key, str) or not key:
        return "<none>"
    if len(key) <= 6:
        return "<redacted>"
    return f"{key[:4]}…<redacted>"
