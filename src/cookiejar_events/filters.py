"""Event filter construction.

Filters scope which state-delta events a subscription delivers. Matching
itself happens on the remote publisher; locally we only check that regex
patterns compile.
"""

from __future__ import annotations

import hashlib
import re
from collections.abc import Iterable

from .protocol.messages import EventFilter, FilterType

ADDRESS_KEY = "address"

# First 6 hex characters of SHA-512("cookiejar")
COOKIEJAR_ADDRESS_PREFIX = "ce2292"


class InvalidFilterError(ValueError):
    """Filter specification is not well-formed."""


def namespace_prefix(family_name: str, length: int = 6) -> str:
    """Compute the state address prefix for a transaction family."""
    return hashlib.sha512(family_name.encode("utf-8")).hexdigest()[:length]


def make_filter(key: str, pattern: str, mode: FilterType | str) -> EventFilter:
    """Build one EventFilter, checking regex well-formedness."""
    if not key:
        raise InvalidFilterError("Filter key must not be empty")

    try:
        filter_type = FilterType(mode.upper() if isinstance(mode, str) else mode)
    except ValueError as e:
        valid = ", ".join(t.value for t in FilterType)
        raise InvalidFilterError(f"Unknown filter mode {mode!r} (expected one of {valid})") from e

    if filter_type.is_regex:
        try:
            re.compile(pattern)
        except re.error as e:
            raise InvalidFilterError(f"Invalid regex for key {key!r}: {e}") from e

    return EventFilter(key=key, match_string=pattern, filter_type=filter_type)


def build_filters(specs: Iterable[tuple[str, str, FilterType | str]]) -> list[EventFilter]:
    """Build an ordered filter list from (key, pattern, mode) tuples.

    An empty input yields an empty list, which subscribes to every event
    of the target type.
    """
    return [make_filter(key, pattern, mode) for key, pattern, mode in specs]


def parse_filter_spec(spec: str) -> tuple[str, str, str]:
    """Parse a ``key:MODE:pattern`` string.

    The pattern is everything after the second colon, so it may itself
    contain colons.
    """
    parts = spec.split(":", 2)
    if len(parts) != 3:
        raise InvalidFilterError(f"Filter must look like key:MODE:pattern, got {spec!r}")
    key, mode, pattern = parts
    return key, pattern, mode


def address_prefix_filter(prefix: str = COOKIEJAR_ADDRESS_PREFIX) -> EventFilter:
    """Match state changes under one address namespace."""
    return make_filter(ADDRESS_KEY, f"{prefix}.*", FilterType.REGEX_ANY)
