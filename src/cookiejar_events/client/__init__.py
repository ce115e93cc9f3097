"""Subscription client.

Two layers:
- transport: connection handling and request/reply correlation
- subscriber: the subscribe / stream / unsubscribe session on top
"""

from .subscriber import EventSubscriber, SessionResult, SessionState, listen
from .transport import (
    BaseClientTransport,
    ClientTransport,
    ClientTransportConfig,
    MockClientTransport,
    TransportState,
    WebSocketClientTransport,
    create_mock_transport,
    create_websocket_transport,
)

__all__ = [
    # Session
    "EventSubscriber",
    "SessionResult",
    "SessionState",
    "listen",
    # Transport Protocol & Base
    "ClientTransport",
    "BaseClientTransport",
    "ClientTransportConfig",
    "TransportState",
    # Transport Implementations
    "WebSocketClientTransport",
    "MockClientTransport",
    # Transport Factory Functions
    "create_websocket_transport",
    "create_mock_transport",
]
