from .transports import (
    PushTransport,
    PullTransport,
    WebSocketPushTransport,
    HttpPullTransport,
    http_to_ws,
)
from .negotiator import TransportNegotiator, TransportState
from .client import RelayClient, rejection_from_body
from .producer import build_batch, synthetic_scan
