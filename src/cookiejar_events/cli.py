"""Cookiejar events CLI.

Subscribes to state changes under the cookiejar namespace and prints
every delivered event until interrupted. Ctrl+C (or SIGTERM) stops the
stream and unsubscribes before exiting.

Usage:
    cookiejar-events                                # Default address filter
    cookiejar-events --url ws://validator:4004      # Explicit endpoint
    cookiejar-events --all-events                   # No filters
    cookiejar-events -F address:REGEX_ANY:ce2292.*  # Custom filter(s)
    cookiejar-events --format json                  # One JSON object per event

Exit codes:
    0  stopped on request (a failed unsubscribe is reported on stderr)
    1  transport failure
    2  usage error
    3  protocol violation
    4  malformed response or event batch
    5  subscription rejected
    6  no event received within --timeout
"""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses
import logging
import signal
import sys

import click

from .client.subscriber import SessionResult, listen
from .config import SubscriberConfig
from .errors import SubscriberError
from .filters import InvalidFilterError, address_prefix_filter, build_filters, parse_filter_spec
from .protocol.messages import EventFilter
from .sinks import FORMAT_JSON, FORMAT_TEXT, EchoSink


def resolve_filters(
    filter_specs: tuple[str, ...],
    all_events: bool,
    prefix: str,
    prefix_given: bool = False,
) -> list[EventFilter]:
    """Turn CLI filter options into the state delta filter list.

    --prefix only shapes the default filter, so it is rejected next to
    --filter or --all-events.
    """
    if prefix_given and (all_events or filter_specs):
        other = "--all-events" if all_events else "--filter"
        raise click.UsageError(f"--prefix cannot be combined with {other}")
    if all_events:
        if filter_specs:
            raise click.UsageError("--all-events cannot be combined with --filter")
        return []
    if filter_specs:
        try:
            return build_filters(parse_filter_spec(spec) for spec in filter_specs)
        except InvalidFilterError as e:
            raise click.BadParameter(str(e), param_hint="--filter") from e
    try:
        return [address_prefix_filter(prefix)]
    except InvalidFilterError as e:
        raise click.BadParameter(str(e), param_hint="--prefix") from e


async def _run(
    config: SubscriberConfig, filters: list[EventFilter], output_format: str
) -> SessionResult:
    shutdown = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Not available on Windows; Ctrl+C then aborts without unsubscribing
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, shutdown.set)

    return await listen(
        EchoSink(output_format),
        filters,
        config,
        shutdown=shutdown,
        on_streaming=lambda: click.echo("Listening to events.", err=True),
    )


@click.command()
@click.option("--url", "-U", default=None, help="Validator URL (default: $VALIDATOR_URL)")
@click.option(
    "--filter",
    "-F",
    "filter_specs",
    multiple=True,
    help="State delta filter as key:MODE:pattern (repeatable)",
)
@click.option("--all-events", is_flag=True, help="Subscribe to all state deltas (no filters)")
@click.option("--prefix", default=None, help="Address prefix for the default filter")
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Fail if no event batch arrives within this many seconds",
)
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice([FORMAT_TEXT, FORMAT_JSON]),
    default=FORMAT_TEXT,
    help="Output format",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    help="Log level (logs go to stderr)",
)
def main(
    url: str | None,
    filter_specs: tuple[str, ...],
    all_events: bool,
    prefix: str | None,
    timeout: float | None,
    output_format: str,
    log_level: str,
) -> None:
    """Listen to cookiejar state-delta events from a validator."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    try:
        config = SubscriberConfig.from_env()
    except ValueError as e:
        raise click.UsageError(str(e)) from e

    overrides = {}
    if url:
        overrides["url"] = url
    if timeout is not None:
        overrides["receive_timeout"] = timeout
    if prefix:
        overrides["address_prefix"] = prefix
    if overrides:
        config = dataclasses.replace(config, **overrides)

    filters = resolve_filters(
        filter_specs, all_events, config.address_prefix, prefix_given=bool(prefix)
    )

    try:
        result = asyncio.run(_run(config, filters, output_format))
    except SubscriberError as e:
        click.echo(f"Error occurred: {e}", err=True)
        sys.exit(e.exit_code)
    except KeyboardInterrupt:
        click.echo("\nInterrupted before unsubscribing", err=True)
        sys.exit(130)

    summary = f"{result.events_dispatched} event(s) in {result.batches_received} batch(es)"
    if result.teardown_error is not None:
        # The stream itself ended on request, so the exit status stays 0
        click.echo(f"Stopped after {summary}", err=True)
        click.echo(f"Unsubscribe failed: {result.teardown_error}", err=True)
        return
    click.echo(f"Unsubscribed after {summary}", err=True)
