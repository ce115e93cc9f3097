"""Subscription protocol engine.

Drives one subscription session against a validator:

    INIT -> SUBSCRIBING -> STREAMING -> UNSUBSCRIBING -> DONE
                 |             |              |
                 +-------------+--------------+--> FAILED

- subscribe(): send ClientEventsSubscribeRequest, wait for the reply
  with the same correlation id, require status OK
- stream(): receive pushed CLIENT_EVENTS batches and hand each event to
  the sink, in order, until the shutdown signal is set
- unsubscribe(): send ClientEventsUnsubscribeRequest, require status OK

Any error moves the session to FAILED and propagates. Teardown only runs
after a clean exit from the stream; run() reports a teardown failure on
the returned SessionResult instead of raising it, so the stream outcome
is not lost.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TypeVar

from pydantic import BaseModel

from ..config import SubscriberConfig
from ..errors import (
    InvalidStateError,
    ProtocolViolation,
    RejectedSubscription,
    RejectedUnsubscription,
    SubscriberError,
)
from ..protocol.codec import decode, encode
from ..protocol.messages import (
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
    Message,
    MessageType,
    SubscribeStatus,
    UnsubscribeStatus,
    status_name,
)
from ..sinks import EventSink
from .transport import ClientTransport, ClientTransportConfig, WebSocketClientTransport

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=BaseModel)


class SessionState(str, Enum):
    """Subscription session lifecycle."""

    INIT = "init"
    SUBSCRIBING = "subscribing"
    STREAMING = "streaming"
    UNSUBSCRIBING = "unsubscribing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class SessionResult:
    """Outcome of a completed session.

    teardown_error is set when the stream stopped on request but the
    unsubscribe failed; state is then FAILED.
    """

    state: SessionState
    batches_received: int
    events_dispatched: int
    teardown_error: SubscriberError | None = None


class EventSubscriber:
    """Runs the subscribe / stream / unsubscribe handshake over a transport.

    The transport must already be connected; the subscriber never opens
    or closes it. At most one request is outstanding at any time.
    """

    def __init__(
        self,
        transport: ClientTransport,
        filters: Sequence[EventFilter] = (),
        config: SubscriberConfig | None = None,
    ):
        self._transport = transport
        self._filters = tuple(filters)
        self._config = config or SubscriberConfig()
        self._state = SessionState.INIT
        self.batches_received = 0
        self.events_dispatched = 0

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def filters(self) -> tuple[EventFilter, ...]:
        return self._filters

    def build_subscribe_request(self) -> ClientEventsSubscribeRequest:
        """Block commits unfiltered, then state deltas with our filters."""
        return ClientEventsSubscribeRequest(
            subscriptions=(
                EventSubscription(event_type=BLOCK_COMMIT_EVENT),
                EventSubscription(event_type=STATE_DELTA_EVENT, filters=self._filters),
            )
        )

    async def subscribe(self) -> None:
        """Establish the subscription.

        Raises:
            RejectedSubscription: Remote returned a non-OK status
            DecodeError: Reply could not be decoded
            ProtocolViolation: Reply had the wrong message type
            TransportError: Send or receive failed
        """
        self._require(SessionState.INIT, "subscribe")
        self._transition(SessionState.SUBSCRIBING)

        request = self.build_subscribe_request()
        try:
            response = await self._request(
                MessageType.CLIENT_EVENTS_SUBSCRIBE_REQUEST,
                request,
                MessageType.CLIENT_EVENTS_SUBSCRIBE_RESPONSE,
                ClientEventsSubscribeResponse,
            )
            if response.status != SubscribeStatus.OK:
                raise RejectedSubscription(
                    status_name(response.status), response.response_message
                )
        except SubscriberError as e:
            self._fail(e)
            raise

        self._transition(SessionState.STREAMING)

    async def stream(self, sink: EventSink, shutdown: asyncio.Event | None = None) -> None:
        """Dispatch pushed event batches to sink until shutdown is set.

        Returns normally only on shutdown. A batch is fully dispatched
        before the next one is read.

        Raises:
            ProtocolViolation: A message other than CLIENT_EVENTS arrived
            DecodeError: A batch could not be decoded
            ReceiveTimeout: No batch within the configured receive timeout
            TransportError: The connection failed or closed
        """
        self._require(SessionState.STREAMING, "stream")
        logger.info("Listening to events")

        try:
            while True:
                if shutdown is not None and shutdown.is_set():
                    break

                message = await self._next_message(shutdown)
                if message is None:
                    break

                if message.message_type != MessageType.CLIENT_EVENTS.value:
                    raise ProtocolViolation(
                        f"Unexpected message type {message.message_type} while streaming",
                        message_type=message.message_type,
                    )

                batch = decode(message.content, EventList)
                self.batches_received += 1
                logger.debug(
                    f"Batch {self.batches_received}: {len(batch.events)} event(s)"
                )
                for event in batch.events:
                    self._dispatch(sink, event)
        except SubscriberError as e:
            self._fail(e)
            raise

        logger.info(
            f"Shutdown requested after {self.batches_received} batch(es), "
            f"{self.events_dispatched} event(s)"
        )

    async def unsubscribe(self) -> None:
        """Tear down the subscription.

        Raises:
            RejectedUnsubscription: Remote returned a non-OK status
            DecodeError: Reply could not be decoded
            ProtocolViolation: Reply had the wrong message type
            TransportError: Send or receive failed
        """
        self._require(SessionState.STREAMING, "unsubscribe")
        self._transition(SessionState.UNSUBSCRIBING)

        try:
            response = await self._request(
                MessageType.CLIENT_EVENTS_UNSUBSCRIBE_REQUEST,
                ClientEventsUnsubscribeRequest(),
                MessageType.CLIENT_EVENTS_UNSUBSCRIBE_RESPONSE,
                ClientEventsUnsubscribeResponse,
            )
            if response.status != UnsubscribeStatus.OK:
                raise RejectedUnsubscription(status_name(response.status))
        except SubscriberError as e:
            self._fail(e)
            raise

        self._transition(SessionState.DONE)

    async def run(
        self,
        sink: EventSink,
        shutdown: asyncio.Event | None = None,
        on_streaming: Callable[[], None] | None = None,
    ) -> SessionResult:
        """Run the full session lifecycle.

        Without a shutdown event the stream only ends by error, so this
        call never returns normally.
        """
        await self.subscribe()
        if on_streaming is not None:
            on_streaming()
        await self.stream(sink, shutdown)
        try:
            await self.unsubscribe()
        except SubscriberError as e:
            logger.warning(f"Unsubscribe failed after shutdown: {e}")
            return self.result(teardown_error=e)
        return self.result()

    def result(self, teardown_error: SubscriberError | None = None) -> SessionResult:
        return SessionResult(
            state=self._state,
            batches_received=self.batches_received,
            events_dispatched=self.events_dispatched,
            teardown_error=teardown_error,
        )

    async def _request(
        self,
        request_type: MessageType,
        payload: BaseModel,
        response_type: MessageType,
        response_model: type[R],
    ) -> R:
        """Send one request and decode its correlated reply."""
        correlation_id = await self._transport.send(request_type, encode(payload))
        reply = await self._transport.receive_by_correlation(
            correlation_id, timeout=self._config.request_timeout
        )
        if reply.message_type != response_type.value:
            raise ProtocolViolation(
                f"Expected {response_type.value} for {correlation_id}, "
                f"got {reply.message_type}",
                message_type=reply.message_type,
            )
        return decode(reply.content, response_model)

    async def _next_message(self, shutdown: asyncio.Event | None) -> Message | None:
        """Wait for the next pushed message, or None if shutdown wins."""
        timeout = self._config.receive_timeout
        if shutdown is None:
            return await self._transport.receive(timeout=timeout)

        receive = asyncio.ensure_future(self._transport.receive(timeout=timeout))
        stop = asyncio.ensure_future(shutdown.wait())
        try:
            await asyncio.wait({receive, stop}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (receive, stop):
                if not task.done():
                    task.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await task

        # A message that arrived together with shutdown is still processed
        if receive.done() and not receive.cancelled():
            return receive.result()
        return None

    def _dispatch(self, sink: EventSink, event: Event) -> None:
        self.events_dispatched += 1
        try:
            sink(event)
        except Exception as e:
            logger.warning(f"Event sink failed on {event.event_type}: {e}", exc_info=True)

    def _require(self, expected: SessionState, operation: str) -> None:
        if self._state != expected:
            raise InvalidStateError(
                f"Cannot {operation} in state {self._state.value} "
                f"(requires {expected.value})"
            )

    def _transition(self, state: SessionState) -> None:
        logger.info(f"Session {self._state.value} -> {state.value}")
        self._state = state

    def _fail(self, error: SubscriberError) -> None:
        logger.error(f"Session failed in {self._state.value}: {error}")
        self._state = SessionState.FAILED


async def listen(
    sink: EventSink,
    filters: Sequence[EventFilter] = (),
    config: SubscriberConfig | None = None,
    shutdown: asyncio.Event | None = None,
    transport: ClientTransport | None = None,
    on_streaming: Callable[[], None] | None = None,
) -> SessionResult:
    """Connect, run one subscription session, and always close the transport.

    Args:
        sink: Receives every delivered event
        filters: State delta filters; empty subscribes to all state deltas
        config: Endpoint and timeouts (default: SubscriberConfig())
        shutdown: Set to stop streaming and unsubscribe
        transport: Pre-built transport (default: WebSocket to config.url)
        on_streaming: Called once the subscription is acknowledged
    """
    config = config or SubscriberConfig()
    if transport is None:
        transport = WebSocketClientTransport(ClientTransportConfig(url=config.url))

    await transport.connect()
    try:
        subscriber = EventSubscriber(transport, filters, config)
        return await subscriber.run(sink, shutdown, on_streaming=on_streaming)
    finally:
        await transport.close()
