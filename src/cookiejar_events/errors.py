"""Error taxonomy for the subscription client.

Every failure a session can end with is a SubscriberError subclass,
so callers can pick a retry or exit policy per kind instead of parsing
messages. None of these are retried internally.
"""

from __future__ import annotations


class SubscriberError(Exception):
    """Base class for all subscription client errors."""

    exit_code = 1


class TransportError(SubscriberError):
    """Connection, send or receive failure on the underlying channel."""

    exit_code = 1


class ReceiveTimeout(TransportError):
    """No message arrived within the configured deadline."""

    exit_code = 6


class ProtocolViolation(SubscriberError):
    """Remote sent a message type the current phase does not accept."""

    exit_code = 3

    def __init__(self, message: str, message_type: str | None = None):
        super().__init__(message)
        self.message_type = message_type


class DecodeError(SubscriberError):
    """A response or event batch could not be decoded."""

    exit_code = 4

    def __init__(self, message: str, target: str | None = None):
        super().__init__(message)
        self.target = target


class RejectedSubscription(SubscriberError):
    """Remote answered the subscribe request with a non-OK status."""

    exit_code = 5

    def __init__(self, status: str, response_message: str = ""):
        detail = f": {response_message}" if response_message else ""
        super().__init__(f"Subscription rejected with status {status}{detail}")
        self.status = status
        self.response_message = response_message


class RejectedUnsubscription(SubscriberError):
    """Remote answered the unsubscribe request with a non-OK status."""

    exit_code = 5

    def __init__(self, status: str):
        super().__init__(f"Unsubscribe rejected with status {status}")
        self.status = status


class InvalidStateError(SubscriberError):
    """Operation called in a session state that does not allow it."""
