"""Exception hierarchy for pointcloud_relay."""

from __future__ import annotations

from enum import Enum
from typing import List, Optional


class RejectionReason(str, Enum):
    INVALID_API_KEY = "InvalidApiKey"
    IDENTITY_MISMATCH = "IdentityMismatch"
    MISSING_FIELDS = "MissingFields"
    MALFORMED_PAYLOAD = "MalformedPayload"
    INTERNAL_ERROR = "InternalError"


class RelayError(Exception):
    """Base exception for all pointcloud_relay errors."""


class RelayConfigError(RelayError):
    """Invalid or missing configuration."""


class StoreError(RelayError):
    """Durable store collaborator failed."""


class RelayTransportError(RelayError):
    """Viewer/producer side network failure (connect, non-200, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class IngestRejectedError(RelayError):
    """An ingest request ended in the rejected state.

    ``reason`` names the rejection, ``status_code`` is the HTTP status both
    ingest transports answer with.
    """

    reason: RejectionReason = RejectionReason.INTERNAL_ERROR
    status_code: int = 500

    def __init__(self, message: str, *, field: Optional[str] = None) -> None:
        self.field = field
        super().__init__(message)


class InvalidApiKeyError(IngestRejectedError):
    """Unknown or inactive API key."""

    reason = RejectionReason.INVALID_API_KEY
    status_code = 401


class BatchRejectedError(IngestRejectedError):
    """Payload failed structural validation."""

    status_code = 400


class IdentityMismatchError(BatchRejectedError):
    """Valid key used to publish for a different drone."""

    reason = RejectionReason.IDENTITY_MISMATCH
    status_code = 403


class MissingFieldsError(BatchRejectedError):
    """One or more required top-level fields are absent."""

    reason = RejectionReason.MISSING_FIELDS

    def __init__(self, missing: List[str]) -> None:
        self.missing = list(missing)
        super().__init__(
            f"Missing required fields: {', '.join(self.missing)}",
            field=self.missing[0] if self.missing else None,
        )


class MalformedPayloadError(BatchRejectedError):
    """A field has the wrong shape or type; ``field`` names the first offender."""

    reason = RejectionReason.MALFORMED_PAYLOAD


class InternalIngestError(IngestRejectedError):
    """Durable write failed while committing an otherwise valid batch."""

    reason = RejectionReason.INTERNAL_ERROR
    status_code = 500
