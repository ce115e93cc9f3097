"""Pytest configuration and shared fixtures."""

import pytest

from cookiejar_events.client.transport import MockClientTransport
from cookiejar_events.protocol.messages import (
    ClientEventsSubscribeResponse,
    ClientEventsUnsubscribeResponse,
    MessageType,
    SubscribeStatus,
    UnsubscribeStatus,
)


def accept_subscribe(transport: MockClientTransport, status=SubscribeStatus.OK, message=""):
    transport.set_response(
        MessageType.CLIENT_EVENTS_SUBSCRIBE_REQUEST,
        MessageType.CLIENT_EVENTS_SUBSCRIBE_RESPONSE,
        ClientEventsSubscribeResponse(status=status, response_message=message),
    )


def accept_unsubscribe(transport: MockClientTransport, status=UnsubscribeStatus.OK):
    transport.set_response(
        MessageType.CLIENT_EVENTS_UNSUBSCRIBE_REQUEST,
        MessageType.CLIENT_EVENTS_UNSUBSCRIBE_RESPONSE,
        ClientEventsUnsubscribeResponse(status=status),
    )


@pytest.fixture
def transport():
    """Mock transport that accepts subscribe and unsubscribe."""
    mock = MockClientTransport()
    accept_subscribe(mock)
    accept_unsubscribe(mock)
    return mock
