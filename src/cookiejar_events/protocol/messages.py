"""Wire message definitions for the client events protocol.

Everything on the channel travels inside a Message envelope:

    {
        "message_type": "CLIENT_EVENTS_SUBSCRIBE_REQUEST",
        "correlation_id": "4f0c...",
        "content": "<base64 payload>"
    }

The content is one of the payload models below, encoded by
protocol.codec. Requests carry a correlation_id that the remote echoes
on its response. Pushed event batches (CLIENT_EVENTS) carry none.
"""

from __future__ import annotations

import uuid
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

BLOCK_COMMIT_EVENT = "sawtooth/block-commit"
STATE_DELTA_EVENT = "sawtooth/state-delta"


class MessageType(str, Enum):
    """Message types understood by the client."""

    # Subscription handshake
    CLIENT_EVENTS_SUBSCRIBE_REQUEST = "CLIENT_EVENTS_SUBSCRIBE_REQUEST"
    CLIENT_EVENTS_SUBSCRIBE_RESPONSE = "CLIENT_EVENTS_SUBSCRIBE_RESPONSE"

    # Teardown handshake
    CLIENT_EVENTS_UNSUBSCRIBE_REQUEST = "CLIENT_EVENTS_UNSUBSCRIBE_REQUEST"
    CLIENT_EVENTS_UNSUBSCRIBE_RESPONSE = "CLIENT_EVENTS_UNSUBSCRIBE_RESPONSE"

    # Pushed event batch (uncorrelated)
    CLIENT_EVENTS = "CLIENT_EVENTS"

    # Keep-alive
    PING_REQUEST = "PING_REQUEST"
    PING_RESPONSE = "PING_RESPONSE"


class _WireModel(BaseModel):
    """Shared config: immutable, bytes travel as base64 in JSON."""

    model_config = ConfigDict(
        frozen=True,
        ser_json_bytes="base64",
        val_json_bytes="base64",
    )


class Message(_WireModel):
    """Envelope for every frame on the channel.

    message_type is kept as a plain string so that a frame with a type
    this client does not know still decodes and can be reported as a
    protocol violation instead of a decode failure.
    """

    message_type: str
    correlation_id: str | None = None
    content: bytes = b""

    @classmethod
    def create(
        cls,
        message_type: str | MessageType,
        content: bytes = b"",
        correlation_id: str | None = None,
    ) -> Message:
        """Factory method for creating envelopes."""
        return cls(
            message_type=message_type.value
            if isinstance(message_type, MessageType)
            else message_type,
            correlation_id=correlation_id,
            content=content,
        )


def new_correlation_id() -> str:
    """Issue a fresh correlation token."""
    return uuid.uuid4().hex


# =============================================================================
# Filters and subscriptions
# =============================================================================


class FilterType(str, Enum):
    """How an EventFilter's match_string is applied to attribute values.

    SIMPLE_* compare for equality, REGEX_* treat match_string as a
    regular expression. *_ANY matches if any attribute with the key
    matches, *_ALL requires every attribute with the key to match.
    """

    SIMPLE_ANY = "SIMPLE_ANY"
    SIMPLE_ALL = "SIMPLE_ALL"
    REGEX_ANY = "REGEX_ANY"
    REGEX_ALL = "REGEX_ALL"

    @property
    def is_regex(self) -> bool:
        return self in (FilterType.REGEX_ANY, FilterType.REGEX_ALL)


class EventFilter(_WireModel):
    """Predicate narrowing which events of a subscription are delivered."""

    key: str
    match_string: str
    filter_type: FilterType = FilterType.SIMPLE_ANY


class EventSubscription(_WireModel):
    """Registration of interest in one event type."""

    event_type: str
    filters: tuple[EventFilter, ...] = ()


# =============================================================================
# Subscribe / unsubscribe payloads
# =============================================================================


class ClientEventsSubscribeRequest(_WireModel):
    subscriptions: tuple[EventSubscription, ...] = ()
    # Block ids the client already has; empty means start from the chain head
    last_known_block_ids: tuple[str, ...] = ()


class SubscribeStatus(str, Enum):
    STATUS_UNSET = "STATUS_UNSET"
    OK = "OK"
    INVALID_FILTER = "INVALID_FILTER"
    UNKNOWN_BLOCK = "UNKNOWN_BLOCK"


class ClientEventsSubscribeResponse(_WireModel):
    # Unknown status names still decode, as plain strings
    status: SubscribeStatus | str = Field(union_mode="left_to_right")
    response_message: str = ""


class ClientEventsUnsubscribeRequest(_WireModel):
    pass


class UnsubscribeStatus(str, Enum):
    STATUS_UNSET = "STATUS_UNSET"
    OK = "OK"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ClientEventsUnsubscribeResponse(_WireModel):
    status: UnsubscribeStatus | str = Field(union_mode="left_to_right")


def status_name(status: Enum | str) -> str:
    return status.value if isinstance(status, Enum) else status


# =============================================================================
# Event batches
# =============================================================================


class Event(_WireModel):
    """A single published event.

    Example (state delta):
        {
            "event_type": "sawtooth/state-delta",
            "attributes": {"address": "ce2292ab..."},
            "data": "<base64 state change>"
        }
    """

    event_type: str
    attributes: dict[str, str] = Field(default_factory=dict)
    data: bytes = b""


class EventList(_WireModel):
    """Batch of events pushed in one CLIENT_EVENTS message."""

    events: tuple[Event, ...] = ()
