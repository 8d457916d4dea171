"""Which live connections want which drone."""

from __future__ import annotations

import logging
from threading import Lock
from typing import Dict, FrozenSet, Optional, Set

_logger = logging.getLogger(__name__)


class SubscriptionRegistry:
    """Explicit source -> connections mapping.

    A connection holds at most one subscription; joining another drone
    replaces it. Every registered connection receives the dashboard feed
    whether or not it is subscribed. Connection loss is reported by the
    transport layer through ``drop``.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._members: Dict[str, Set[str]] = {}
        self._subscription: Dict[str, Optional[str]] = {}

    def register(self, conn_id: str) -> None:
        with self._lock:
            self._subscription.setdefault(conn_id, None)

    def join(self, conn_id: str, drone_id: str) -> Optional[str]:
        """Subscribe ``conn_id`` to ``drone_id``; returns the drone it left, if any."""
        with self._lock:
            previous = self._subscription.get(conn_id)
            if previous == drone_id:
                return None
            if previous is not None:
                self._discard(previous, conn_id)
            self._members.setdefault(drone_id, set()).add(conn_id)
            self._subscription[conn_id] = drone_id
        if previous is not None:
            _logger.debug("Connection %s moved from %s to %s", conn_id, previous, drone_id)
        return previous

    def leave(self, conn_id: str, drone_id: str) -> bool:
        """Unsubscribe; leaving a drone the connection is not on is a no-op."""
        with self._lock:
            if self._subscription.get(conn_id) != drone_id:
                return False
            self._discard(drone_id, conn_id)
            self._subscription[conn_id] = None
        return True

    def drop(self, conn_id: str) -> None:
        """Forget a lost connection and all of its memberships."""
        with self._lock:
            drone_id = self._subscription.pop(conn_id, None)
            if drone_id is not None:
                self._discard(drone_id, conn_id)

    def members_of(self, drone_id: str) -> FrozenSet[str]:
        with self._lock:
            return frozenset(self._members.get(drone_id, ()))

    def all_connections(self) -> FrozenSet[str]:
        with self._lock:
            return frozenset(self._subscription)

    def subscription_of(self, conn_id: str) -> Optional[str]:
        with self._lock:
            return self._subscription.get(conn_id)

    def _discard(self, drone_id: str, conn_id: str) -> None:
        # caller holds the lock
        members = self._members.get(drone_id)
        if members is None:
            return
        members.discard(conn_id)
        if not members:
            del self._members[drone_id]
