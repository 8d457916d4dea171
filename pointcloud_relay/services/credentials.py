from __future__ import annotations

import logging

from ..exceptions import InvalidApiKeyError
from ..logging_setup import redact_key
from ..storage import CredentialStore

_logger = logging.getLogger(__name__)


class CredentialValidator:
    """Maps an opaque API key to the drone it is bound to."""

    def __init__(self, store: CredentialStore) -> None:
        self._store = store

    def validate(self, key: object) -> str:
        """
        Return the bound drone id, or raise InvalidApiKeyError when the key
        is missing, unknown or inactive. No side effects, no retries.
        """
        if not isinstance(key, str) or not key:
            raise InvalidApiKeyError("Invalid API key")

        record = self._store.get_api_key(key)
        if record is None or not record.is_active:
            _logger.info("Rejected API key %s", redact_key(key))
            raise InvalidApiKeyError("Invalid API key")
        return record.drone_id
