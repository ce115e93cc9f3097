"""Client events protocol layer.

Key concepts:
- Message: envelope carrying a type, an optional correlation id and an
  opaque payload
- Requests (subscribe/unsubscribe) expect exactly one correlated response
- Event batches are pushed without a correlation id
"""

from .codec import decode, decode_message, encode, encode_message
from .messages import (
    BLOCK_COMMIT_EVENT,
    STATE_DELTA_EVENT,
    ClientEventsSubscribeRequest,
    ClientEventsSubscribeResponse,
    ClientEventsUnsubscribeRequest,
    ClientEventsUnsubscribeResponse,
    Event,
    EventFilter,
    EventList,
    EventSubscription,
    FilterType,
    Message,
    MessageType,
    SubscribeStatus,
    UnsubscribeStatus,
    new_correlation_id,
    status_name,
)

__all__ = [
    "BLOCK_COMMIT_EVENT",
    "STATE_DELTA_EVENT",
    "ClientEventsSubscribeRequest",
    "ClientEventsSubscribeResponse",
    "ClientEventsUnsubscribeRequest",
    "ClientEventsUnsubscribeResponse",
    "Event",
    "EventFilter",
    "EventList",
    "EventSubscription",
    "FilterType",
    "Message",
    "MessageType",
    "SubscribeStatus",
    "UnsubscribeStatus",
    "new_correlation_id",
    "status_name",
    "decode",
    "decode_message",
    "encode",
    "encode_message",
]
