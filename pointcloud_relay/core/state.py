"""
RelayState: top-level container for all in-memory relay state.
"""
from dataclasses import dataclass, field

from ..storage import MemoryStore, RecordStore
from .broadcaster import Broadcaster
from .cache import LastKnownCache
from .registry import SubscriptionRegistry


@dataclass
class RelayState:
    """
    Everything the routes share. Built once by the composition root and
    lives as long as the process; there are no module-level instances.
    """
    store: RecordStore = field(default_factory=MemoryStore)
    cache: LastKnownCache = field(default_factory=LastKnownCache)
    registry: SubscriptionRegistry = field(default_factory=SubscriptionRegistry)
    broadcaster: Broadcaster = field(init=False)

    def __post_init__(self):
        self.broadcaster = Broadcaster(self.registry)
