"""Cookiejar event subscriber.

Subscribes to a validator's client event stream, prints state changes
under the cookiejar namespace, and unsubscribes on shutdown.
"""

from .client import EventSubscriber, SessionResult, SessionState, listen
from .config import SubscriberConfig
from .errors import (
    DecodeError,
    InvalidStateError,
    ProtocolViolation,
    ReceiveTimeout,
    RejectedSubscription,
    RejectedUnsubscription,
    SubscriberError,
    TransportError,
)
from .filters import address_prefix_filter, build_filters

__version__ = "0.1.0"

__all__ = [
    "EventSubscriber",
    "SessionResult",
    "SessionState",
    "SubscriberConfig",
    "listen",
    "address_prefix_filter",
    "build_filters",
    "SubscriberError",
    "TransportError",
    "ReceiveTimeout",
    "ProtocolViolation",
    "DecodeError",
    "RejectedSubscription",
    "RejectedUnsubscription",
    "InvalidStateError",
]
