"""Unit tests for event filter construction."""

import pytest
from pydantic import ValidationError

from cookiejar_events.filters import (
    COOKIEJAR_ADDRESS_PREFIX,
    InvalidFilterError,
    address_prefix_filter,
    build_filters,
    make_filter,
    namespace_prefix,
    parse_filter_spec,
)
from cookiejar_events.protocol.messages import EventFilter, FilterType


class TestBuildFilters:
    """Test building filter lists from (key, pattern, mode) tuples."""

    def test_empty(self):
        """No specs means no filters, i.e. every event of the type."""
        assert build_filters([]) == []

    def test_preserves_order(self):
        filters = build_filters(
            [
                ("address", "ce2292.*", "REGEX_ANY"),
                ("owner", "alice", FilterType.SIMPLE_ALL),
                ("address", "^ce2292ff", "regex_all"),
            ]
        )

        assert [(f.key, f.match_string, f.filter_type) for f in filters] == [
            ("address", "ce2292.*", FilterType.REGEX_ANY),
            ("owner", "alice", FilterType.SIMPLE_ALL),
            ("address", "^ce2292ff", FilterType.REGEX_ALL),
        ]

    def test_accepts_generator(self):
        filters = build_filters(("k", str(i), "SIMPLE_ANY") for i in range(3))

        assert [f.match_string for f in filters] == ["0", "1", "2"]

    def test_invalid_regex(self):
        with pytest.raises(InvalidFilterError, match="Invalid regex"):
            build_filters([("address", "ce2292[", "REGEX_ANY")])

    def test_simple_mode_skips_regex_check(self):
        """Simple filters are literal, so regex metacharacters are fine."""
        (f,) = build_filters([("address", "ce2292[", "SIMPLE_ANY")])

        assert f.match_string == "ce2292["

    def test_unknown_mode(self):
        with pytest.raises(InvalidFilterError, match="Unknown filter mode"):
            make_filter("address", "x", "FUZZY")

    def test_empty_key(self):
        with pytest.raises(InvalidFilterError):
            make_filter("", "x", FilterType.SIMPLE_ANY)

    def test_invalid_filter_is_value_error(self):
        assert issubclass(InvalidFilterError, ValueError)

    def test_filters_are_immutable(self):
        f = make_filter("address", "x", "SIMPLE_ANY")

        with pytest.raises(ValidationError):
            f.key = "other"


class TestParseFilterSpec:
    """Test the key:MODE:pattern CLI syntax."""

    def test_basic(self):
        assert parse_filter_spec("address:REGEX_ANY:ce2292.*") == (
            "address",
            "ce2292.*",
            "REGEX_ANY",
        )

    def test_pattern_may_contain_colons(self):
        assert parse_filter_spec("uri:SIMPLE_ANY:http://x:80") == (
            "uri",
            "http://x:80",
            "SIMPLE_ANY",
        )

    def test_missing_parts(self):
        with pytest.raises(InvalidFilterError):
            parse_filter_spec("address:ce2292.*")


class TestAddressPrefix:
    """Test the namespace default filter."""

    def test_default_filter(self):
        assert address_prefix_filter() == EventFilter(
            key="address",
            match_string="ce2292.*",
            filter_type=FilterType.REGEX_ANY,
        )

    def test_custom_prefix(self):
        assert address_prefix_filter("abcdef").match_string == "abcdef.*"

    def test_namespace_prefix_shape(self):
        prefix = namespace_prefix("intkey")

        assert len(prefix) == 6
        int(prefix, 16)

    def test_namespace_prefix_is_stable(self):
        assert namespace_prefix("cookiejar") == namespace_prefix("cookiejar")
        assert namespace_prefix("cookiejar", length=8)[:6] == namespace_prefix("cookiejar")

    def test_constant_is_hex(self):
        assert len(COOKIEJAR_ADDRESS_PREFIX) == 6
        int(COOKIEJAR_ADDRESS_PREFIX, 16)
