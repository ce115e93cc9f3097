"""Client-side transport abstraction for the event subscriber.

The subscriber talks to the validator through a ClientTransport and never
touches sockets or frames directly. This keeps the handshake logic
testable against MockClientTransport.

Architecture:
- ClientTransport is the PROTOCOL (interface) for all client transports
- BaseClientTransport runs a background reader that routes inbound
  messages: correlated replies resolve the pending request, everything
  else goes to the push queue read by receive()
- Implementations only provide connect/disconnect/send/receive-frames
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, runtime_checkable

import websockets
from pydantic import BaseModel

from ..errors import ReceiveTimeout, SubscriberError, TransportError
from ..protocol.codec import decode_message, encode, encode_message
from ..protocol.messages import EventList, Message, MessageType, new_correlation_id

logger = logging.getLogger(__name__)


class TransportState(str, Enum):
    """Connection state machine."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSED = "closed"


@dataclass
class ClientTransportConfig:
    """Configuration for client transports."""

    url: str = "ws://localhost:4004"
    open_timeout: float = 10.0

    # Keep-alive at the websocket layer; None disables
    ping_interval: float | None = 20.0
    ping_timeout: float | None = 20.0


@runtime_checkable
class ClientTransport(Protocol):
    """Protocol for subscriber transports.

    All transports must implement:
    - connect/close: Lifecycle management
    - send: Send a request, get back its correlation id
    - receive_by_correlation: Wait for the reply to one request
    - receive: Wait for the next uncorrelated (pushed) message
    """

    @property
    def state(self) -> TransportState:
        """Current connection state."""
        ...

    @property
    def is_connected(self) -> bool:
        """Check if transport is connected."""
        ...

    async def connect(self) -> None:
        """Establish the connection.

        Raises:
            TransportError: If connection fails
        """
        ...

    async def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        ...

    async def send(
        self,
        message_type: MessageType | str,
        content: bytes,
        correlation_id: str | None = None,
    ) -> str:
        """Send a request and return its correlation id.

        Raises:
            TransportError: If not connected or the send fails
        """
        ...

    async def receive(self, timeout: float | None = None) -> Message:
        """Wait for the next pushed message.

        Raises:
            TransportError: If the connection fails or closes
            ReceiveTimeout: If nothing arrives within timeout
        """
        ...

    async def receive_by_correlation(
        self, correlation_id: str, timeout: float | None = None
    ) -> Message:
        """Wait for the reply carrying correlation_id.

        Raises:
            TransportError: If the connection fails or closes
            ReceiveTimeout: If the reply does not arrive within timeout
        """
        ...


class BaseClientTransport(ABC):
    """Base class for client transports with common functionality.

    Provides:
    - State management
    - Message routing (correlated vs pushed)
    - Background reader task management
    - Keep-alive ping replies
    """

    def __init__(self, config: ClientTransportConfig):
        self.config = config
        self._state = TransportState.DISCONNECTED
        self._push_queue: asyncio.Queue[Message | SubscriberError] = asyncio.Queue()
        self._pending: dict[str, asyncio.Future[Message]] = {}
        self._failure: SubscriberError | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> TransportState:
        """Current connection state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        """Check if transport is connected."""
        return self._state == TransportState.CONNECTED

    async def connect(self) -> None:
        """Establish connection."""
        async with self._lock:
            if self._state == TransportState.CONNECTED:
                return

            self._state = TransportState.CONNECTING
            try:
                await self._do_connect()
            except Exception as e:
                self._state = TransportState.DISCONNECTED
                raise TransportError(f"Failed to connect to {self.config.url}: {e}") from e

            self._state = TransportState.CONNECTED
            self._failure = None
            # Drop anything left from a previous connection, e.g. the close error
            self._push_queue = asyncio.Queue()
            self._reader_task = asyncio.create_task(self._read_loop())
            logger.info(f"{self.__class__.__name__} connected to {self.config.url}")

    async def close(self) -> None:
        """Close the connection."""
        async with self._lock:
            if self._state in (TransportState.DISCONNECTED, TransportState.CLOSED):
                return

            self._state = TransportState.CLOSED

            if self._reader_task:
                self._reader_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await self._reader_task
                self._reader_task = None

            self._fail_waiters(TransportError("Transport closed"))

            try:
                await self._do_disconnect()
            except Exception as e:
                logger.warning(f"Error while disconnecting: {e}")
            self._state = TransportState.DISCONNECTED
            logger.info(f"{self.__class__.__name__} disconnected")

    async def send(
        self,
        message_type: MessageType | str,
        content: bytes,
        correlation_id: str | None = None,
    ) -> str:
        """Send a request and register it for a correlated reply."""
        if not self.is_connected:
            raise TransportError("Transport not connected")
        if self._failure is not None:
            raise self._failure

        correlation_id = correlation_id or new_correlation_id()
        message = Message.create(message_type, content, correlation_id=correlation_id)

        # Register before sending so a fast reply is never missed
        self._pending[correlation_id] = asyncio.get_running_loop().create_future()
        try:
            await self._do_send(message)
        except Exception as e:
            self._pending.pop(correlation_id, None)
            raise TransportError(f"Failed to send {message.message_type}: {e}") from e

        logger.debug(f"Sent {message.message_type} ({correlation_id})")
        return correlation_id

    async def receive_by_correlation(
        self, correlation_id: str, timeout: float | None = None
    ) -> Message:
        """Wait for the reply to a previously sent request."""
        future = self._pending.get(correlation_id)
        if future is None:
            raise TransportError(f"No pending request with correlation id {correlation_id}")

        try:
            return await asyncio.wait_for(future, timeout=timeout)
        except TimeoutError as e:
            raise ReceiveTimeout(
                f"No reply to {correlation_id} within {timeout:g}s"
            ) from e
        finally:
            self._pending.pop(correlation_id, None)

    async def receive(self, timeout: float | None = None) -> Message:
        """Wait for the next pushed message."""
        if self._failure is not None and self._push_queue.empty():
            raise self._failure
        if not self.is_connected and self._push_queue.empty():
            raise TransportError("Transport not connected")

        try:
            item = await asyncio.wait_for(self._push_queue.get(), timeout=timeout)
        except TimeoutError as e:
            raise ReceiveTimeout(f"No message received within {timeout:g}s") from e

        if isinstance(item, SubscriberError):
            raise item
        return item

    async def _read_loop(self) -> None:
        """Background task reading messages and routing them."""
        try:
            async for message in self._receive_messages():
                await self._route(message)
        except asyncio.CancelledError:
            return
        except SubscriberError as e:
            logger.error(f"Read loop error: {e}")
            self._fail_waiters(e)
            return
        except Exception as e:
            logger.error(f"Read loop error: {e}")
            self._fail_waiters(TransportError(f"Receive failed: {e}"))
            return

        logger.info("Connection closed by remote")
        self._fail_waiters(TransportError("Connection closed by remote"))

    async def _route(self, message: Message) -> None:
        if message.message_type == MessageType.PING_REQUEST.value:
            # Keep-alive, answered here so it never reaches the subscriber
            await self._do_send(
                Message.create(MessageType.PING_RESPONSE, correlation_id=message.correlation_id)
            )
            return

        future = self._pending.get(message.correlation_id or "")
        if future is not None and not future.done():
            future.set_result(message)
            return

        logger.debug(f"Received {message.message_type} ({len(message.content)} bytes)")
        await self._push_queue.put(message)

    def _fail_waiters(self, error: SubscriberError) -> None:
        """Deliver a terminal error to every pending and future receiver."""
        if self._failure is not None:
            return
        self._failure = error
        for future in self._pending.values():
            if not future.done():
                future.set_exception(error)
        self._push_queue.put_nowait(error)

    # Abstract methods for subclasses
    @abstractmethod
    async def _do_connect(self) -> None:
        """Implementation-specific connection logic."""
        ...

    @abstractmethod
    async def _do_disconnect(self) -> None:
        """Implementation-specific disconnection logic."""
        ...

    @abstractmethod
    async def _do_send(self, message: Message) -> None:
        """Implementation-specific send logic."""
        ...

    @abstractmethod
    def _receive_messages(self) -> AsyncIterator[Message]:
        """Implementation-specific receive logic. Must be an async generator.

        Returning ends the connection normally.
        """
        ...

    async def __aenter__(self) -> BaseClientTransport:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()


class WebSocketClientTransport(BaseClientTransport):
    """Transport over a WebSocket connection to the validator.

    Wire format:
    - One Message envelope per text frame, JSON encoded
    - Payload bytes are base64 inside the envelope
    """

    def __init__(self, config: ClientTransportConfig | None = None):
        super().__init__(config or ClientTransportConfig())
        self._ws: Any = None  # websockets ClientConnection

    async def _do_connect(self) -> None:
        """Open the WebSocket."""
        self._ws = await websockets.connect(
            self.config.url,
            open_timeout=self.config.open_timeout,
            ping_interval=self.config.ping_interval,
            ping_timeout=self.config.ping_timeout,
        )

    async def _do_disconnect(self) -> None:
        """Close the WebSocket."""
        if self._ws:
            await self._ws.close()
            self._ws = None

    async def _do_send(self, message: Message) -> None:
        """Send the envelope as a text frame."""
        if not self._ws:
            raise ConnectionError("WebSocket not connected")
        await self._ws.send(encode_message(message))

    async def _receive_messages(self) -> AsyncIterator[Message]:
        """Decode inbound frames until the remote closes cleanly."""
        if not self._ws:
            raise ConnectionError("WebSocket not connected")

        async for frame in self._ws:
            yield decode_message(frame)


class MockClientTransport(BaseClientTransport):
    """Mock transport for testing.

    Allows injecting canned replies and pushed messages, and records
    everything sent. No actual I/O - everything is in-memory.

    Usage:
        transport = MockClientTransport()
        transport.set_response(
            MessageType.CLIENT_EVENTS_SUBSCRIBE_REQUEST,
            MessageType.CLIENT_EVENTS_SUBSCRIBE_RESPONSE,
            ClientEventsSubscribeResponse(status=SubscribeStatus.OK),
        )
        transport.inject_batch([Event(event_type="sawtooth/state-delta")])

        async with transport:
            await EventSubscriber(transport).run(sink)

        assert transport.sent[0].message_type == "CLIENT_EVENTS_SUBSCRIBE_REQUEST"
    """

    def __init__(self) -> None:
        super().__init__(ClientTransportConfig(url="mock://validator"))
        self._responses: dict[str, tuple[str, bytes]] = {}
        self._sent: list[Message] = []
        self._inbox: asyncio.Queue[Message | Exception | None] = asyncio.Queue()
        self.fail_connect: Exception | None = None
        self.fail_send: Exception | None = None

    @property
    def sent(self) -> list[Message]:
        """Get all messages sent through this transport."""
        return self._sent.copy()

    def set_response(
        self,
        request_type: MessageType | str,
        response_type: MessageType | str,
        payload: BaseModel | bytes,
    ) -> None:
        """Reply to every request of request_type with a canned payload."""
        content = payload if isinstance(payload, bytes) else encode(payload)
        self._responses[_type_value(request_type)] = (_type_value(response_type), content)

    def inject(self, message: Message) -> None:
        """Deliver a message as if the remote had sent it."""
        self._inbox.put_nowait(message)

    def inject_batch(self, events: list[Any]) -> None:
        """Push one CLIENT_EVENTS batch containing events."""
        self.inject(Message.create(MessageType.CLIENT_EVENTS, encode(EventList(events=events))))

    def inject_error(self, error: Exception) -> None:
        """Make the receive side fail with error."""
        self._inbox.put_nowait(error)

    def end_stream(self) -> None:
        """Simulate the remote closing the connection."""
        self._inbox.put_nowait(None)

    async def _do_connect(self) -> None:
        if self.fail_connect is not None:
            raise self.fail_connect

    async def _do_disconnect(self) -> None:
        """No-op for mock."""
        pass

    async def _do_send(self, message: Message) -> None:
        """Record the message and deliver the canned reply, if any."""
        if self.fail_send is not None:
            raise self.fail_send
        self._sent.append(message)

        response = self._responses.get(message.message_type)
        if response is not None:
            response_type, content = response
            # Replies bypass the inbox so they are never queued behind end_stream()
            await self._route(
                Message.create(response_type, content, correlation_id=message.correlation_id)
            )

    async def _receive_messages(self) -> AsyncIterator[Message]:
        """Yield injected messages until end_stream()."""
        while True:
            item = await self._inbox.get()
            if item is None:
                return
            if isinstance(item, Exception):
                raise item
            yield item


def _type_value(message_type: MessageType | str) -> str:
    return message_type.value if isinstance(message_type, MessageType) else message_type


# Factory functions


def create_websocket_transport(
    url: str = "ws://localhost:4004",
    open_timeout: float = 10.0,
) -> WebSocketClientTransport:
    """Create a WebSocket transport to a validator.

    Args:
        url: Validator endpoint (ws:// or wss://)
        open_timeout: Connection handshake timeout

    Returns:
        WebSocketClientTransport ready to connect
    """
    config = ClientTransportConfig(
        url=url,
        open_timeout=open_timeout,
    )
    return WebSocketClientTransport(config)


def create_mock_transport() -> MockClientTransport:
    """Create a mock transport for testing.

    Returns:
        MockClientTransport for testing
    """
    return MockClientTransport()
