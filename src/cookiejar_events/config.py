"""Subscriber configuration.

Settings are resolved once, at startup, into a SubscriberConfig that is
passed explicitly to the transport and the subscriber.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from .filters import COOKIEJAR_ADDRESS_PREFIX

DEFAULT_VALIDATOR_URL = "ws://localhost:4004"

ENV_VALIDATOR_URL = "VALIDATOR_URL"
ENV_RECEIVE_TIMEOUT = "COOKIEJAR_RECEIVE_TIMEOUT"
ENV_REQUEST_TIMEOUT = "COOKIEJAR_REQUEST_TIMEOUT"


@dataclass(frozen=True)
class SubscriberConfig:
    """Configuration for one subscription session."""

    # Remote endpoint
    url: str = DEFAULT_VALIDATOR_URL

    # Max wait for a correlated response (subscribe/unsubscribe)
    request_timeout: float = 30.0

    # Max wait for the next pushed batch; None waits forever
    receive_timeout: float | None = None

    # Namespace for the default address filter
    address_prefix: str = COOKIEJAR_ADDRESS_PREFIX

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> SubscriberConfig:
        """Build a config from environment variables.

        Unset or empty variables fall back to the defaults.

        Raises:
            ValueError: If a timeout variable is not a positive number
        """
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            url=env.get(ENV_VALIDATOR_URL) or defaults.url,
            request_timeout=_timeout(env, ENV_REQUEST_TIMEOUT, defaults.request_timeout),
            receive_timeout=_timeout(env, ENV_RECEIVE_TIMEOUT, defaults.receive_timeout),
        )


def _timeout(env: Mapping[str, str], name: str, default: float | None) -> float | None:
    raw = env.get(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number of seconds, got {raw!r}") from e
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value
