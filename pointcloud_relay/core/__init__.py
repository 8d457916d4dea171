from .cache import LastKnownCache
from .registry import SubscriptionRegistry
from .connection import Connection
from .broadcaster import Broadcaster, PublishReport, EVENT_POINTCLOUD, EVENT_DASHBOARD
from .state import RelayState
