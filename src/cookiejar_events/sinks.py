"""Event sinks.

A sink receives decoded events one at a time, inline in the streaming
loop, so it must return promptly. Exceptions raised by a sink are logged
by the subscriber and do not end the session.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Protocol, runtime_checkable

import click

from .protocol.messages import Event

logger = logging.getLogger(__name__)

FORMAT_TEXT = "text"
FORMAT_JSON = "json"


@runtime_checkable
class EventSink(Protocol):
    """Consumer of delivered events."""

    def __call__(self, event: Event) -> None: ...


def format_event(event: Event) -> str:
    """Render an event as a single human readable line."""
    attributes = ", ".join(f"{k}={v}" for k, v in event.attributes.items())
    return f"Event: {event.event_type} [{attributes}] data={event.data.hex() or '-'}"


class EchoSink:
    """Write each event to stdout."""

    def __init__(self, output_format: str = FORMAT_TEXT):
        if output_format not in (FORMAT_TEXT, FORMAT_JSON):
            raise ValueError(f"Unknown output format: {output_format}")
        self.output_format = output_format

    def __call__(self, event: Event) -> None:
        if self.output_format == FORMAT_JSON:
            click.echo(event.model_dump_json())
        else:
            click.echo(format_event(event))


class LoggingSink:
    """Log each event at a fixed level."""

    def __init__(self, level: int = logging.INFO, name: str = __name__):
        self.level = level
        self._logger = logging.getLogger(name)

    def __call__(self, event: Event) -> None:
        self._logger.log(self.level, format_event(event))


class CollectingSink:
    """Keep every event in memory, in delivery order.

    Optionally stops after `limit` events by calling `on_limit`, which is
    how embedders end a session after a fixed number of events.
    """

    def __init__(
        self,
        limit: int | None = None,
        on_limit: Callable[[], None] | None = None,
    ):
        self.events: list[Event] = []
        self.limit = limit
        self.on_limit = on_limit

    def __call__(self, event: Event) -> None:
        self.events.append(event)
        if self.limit is not None and len(self.events) == self.limit and self.on_limit:
            self.on_limit()

    def __len__(self) -> int:
        return len(self.events)


class CallbackSink:
    """Adapt a plain callable, optionally restricted to some event types."""

    def __init__(
        self,
        callback: Callable[[Event], None],
        event_types: set[str] | None = None,
    ):
        self.callback = callback
        self.event_types = event_types

    def __call__(self, event: Event) -> None:
        if self.event_types is not None and event.event_type not in self.event_types:
            return
        self.callback(event)
