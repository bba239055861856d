"""
Tests for apmexport.core.mapper module.

Covers attribute formatting, tag construction, request/response gating,
URL composition and end-to-end span to transaction mapping.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import pytest

from apmexport.core.mapper import (
    attributes_to_strings,
    build_request,
    build_response,
    compose_url,
    format_attribute_value,
    map_span,
    parse_status_code,
    split_host_port,
)
from apmexport.core.model import Header, Tag
from apmexport.core.span import ZERO_SPAN_ID, SpanRecord, SpanStatus


# =============================================================================
# Fixtures
# =============================================================================


TRACE_ID = bytes(range(1, 17))
SPAN_ID = bytes(range(1, 9))
START_TIME = 1_700_000_000_000_000_000


def make_span(
    attributes: Optional[Dict[str, Any]] = None,
    status: Optional[SpanStatus] = None,
    parent_span_id: bytes = ZERO_SPAN_ID,
    **kwargs: Any,
) -> SpanRecord:
    """Build a span record with test defaults."""
    values: Dict[str, Any] = {
        "trace_id": TRACE_ID,
        "span_id": SPAN_ID,
        "name": "/foo",
        "start_time": START_TIME,
        "end_time": START_TIME,
        "parent_span_id": parent_span_id,
        "status": status if status is not None else SpanStatus(code=2, message="error"),
        "attributes": attributes if attributes is not None else {
            "double": 123.456,
            "key": "value",
        },
    }
    values.update(kwargs)
    return SpanRecord(**values)


def sorted_tags(tags: list[Tag]) -> list[Tag]:
    return sorted(tags, key=lambda tag: tag.key)


# =============================================================================
# Attribute formatting
# =============================================================================


class TestFormatAttributeValue:
    """Tests for format_attribute_value."""

    def test_string_passes_through(self) -> None:
        assert format_attribute_value("value") == "value"

    def test_empty_string(self) -> None:
        assert format_attribute_value("") == ""

    def test_float_six_decimals(self) -> None:
        """Floats render in six-decimal fixed notation."""
        assert format_attribute_value(123.456) == "123.456000"

    def test_float_whole_number(self) -> None:
        assert format_attribute_value(2.0) == "2.000000"

    def test_negative_float(self) -> None:
        assert format_attribute_value(-0.5) == "-0.500000"

    def test_bool_true(self) -> None:
        assert format_attribute_value(True) == "true"

    def test_bool_false(self) -> None:
        """Booleans are not rendered as integers."""
        assert format_attribute_value(False) == "false"

    def test_int_decimal(self) -> None:
        assert format_attribute_value(42) == "42"

    def test_large_int(self) -> None:
        assert format_attribute_value(9223372036854775807) == "9223372036854775807"

    def test_negative_int(self) -> None:
        assert format_attribute_value(-2147483648) == "-2147483648"

    @pytest.mark.parametrize("value", [None, ["a", "b"], ("x",), {"k": "v"}, b"bytes"])
    def test_unsupported_types_render_empty(self, value: Any) -> None:
        assert format_attribute_value(value) == ""


class TestAttributesToStrings:
    """Tests for attributes_to_strings."""

    def test_converts_every_value(self) -> None:
        result = attributes_to_strings({"s": "x", "f": 1.5, "b": True, "i": 7})

        assert result == {"s": "x", "f": "1.500000", "b": "true", "i": "7"}

    def test_unsupported_value_keeps_key(self) -> None:
        result = attributes_to_strings({"list": [1, 2]})

        assert result == {"list": ""}

    def test_empty_mapping(self) -> None:
        assert attributes_to_strings({}) == {}


# =============================================================================
# Tags
# =============================================================================


class TestTags:
    """Tests for status and error tags."""

    def test_status_tags_come_first(self) -> None:
        transaction = map_span(make_span())
        tags = transaction.context.tags

        assert tags[0] == Tag("status.code", "2")
        assert tags[1] == Tag("status.message", "error")

    def test_ok_status_has_no_error_tag(self) -> None:
        transaction = map_span(make_span(status=SpanStatus(code=0, message="OK"), attributes={}))

        assert transaction.context.tags == [
            Tag("status.code", "0"),
            Tag("status.message", "OK"),
        ]

    @pytest.mark.parametrize("code", [1, 2, 5, 16, -1, -100, 2 ** 31 - 1, 10 ** 12])
    def test_non_ok_status_sets_error_tag(self, code: int) -> None:
        transaction = map_span(make_span(status=SpanStatus(code=code), attributes={}))
        tags = transaction.context.tags_dict

        assert tags["error"] == "true"
        assert tags["status.code"] == str(code)

    def test_error_tag_directly_follows_status_tags(self) -> None:
        transaction = map_span(make_span())

        assert transaction.context.tags[2] == Tag("error", "true")

    def test_attributes_become_tags(self) -> None:
        transaction = map_span(make_span(attributes={"a": "1", "b": 2}))
        tags = transaction.context.tags_dict

        assert tags["a"] == "1"
        assert tags["b"] == "2"

    def test_empty_status_message(self) -> None:
        transaction = map_span(make_span(status=SpanStatus(code=0), attributes={}))

        assert transaction.context.tags_dict["status.message"] == ""


# =============================================================================
# URL composition
# =============================================================================


class TestSplitHostPort:
    """Tests for split_host_port."""

    def test_host_with_port(self) -> None:
        assert split_host_port("google.com:8080") == ("google.com", "8080")

    def test_host_without_port(self) -> None:
        assert split_host_port("google.com") == ("google.com", "")

    def test_trailing_colon(self) -> None:
        assert split_host_port("google.com:") == ("google.com", "")

    def test_non_numeric_port_stays_in_hostname(self) -> None:
        assert split_host_port("google.com:http") == ("google.com:http", "")

    def test_ipv6_with_port(self) -> None:
        assert split_host_port("[::1]:8080") == ("::1", "8080")

    def test_ipv6_without_port(self) -> None:
        assert split_host_port("[fe80::1]") == ("fe80::1", "")

    def test_case_is_preserved(self) -> None:
        assert split_host_port("Example.COM") == ("Example.COM", "")


class TestComposeUrl:
    """Tests for compose_url."""

    def test_host_port_and_path(self) -> None:
        url = compose_url("google.com:8080", "/")

        assert url.full == "http://google.com:8080/"
        assert url.protocol == "http"
        assert url.hostname == "google.com"
        assert url.port == "8080"
        assert url.path == "/"
        assert url.search == ""
        assert url.hash == ""

    def test_empty_path(self) -> None:
        url = compose_url("example.com")

        assert url.full == "http://example.com"
        assert url.path == ""
        assert url.port == ""

    def test_relative_path_gets_leading_slash(self) -> None:
        url = compose_url("example.com", "users/1")

        assert url.full == "http://example.com/users/1"
        assert url.path == "/users/1"

    def test_question_mark_is_escaped_not_a_query(self) -> None:
        url = compose_url("example.com", "/search?q=1")

        assert url.full == "http://example.com/search%3Fq=1"
        assert url.path == "/search?q=1"
        assert url.search == ""
        assert url.hash == ""

    def test_hash_is_escaped_not_a_fragment(self) -> None:
        url = compose_url("example.com", "/page#top")

        assert url.full == "http://example.com/page%23top"
        assert url.path == "/page#top"
        assert url.hash == ""

    def test_space_in_path_is_escaped(self) -> None:
        url = compose_url("example.com", "/a b")

        assert url.full == "http://example.com/a%20b"
        assert url.path == "/a b"

    def test_path_sub_delimiters_kept(self) -> None:
        url = compose_url("example.com", "/users/1;v=2/a:b@c,d+e&f$g")

        assert url.full == "http://example.com/users/1;v=2/a:b@c,d+e&f$g"

    def test_non_ascii_path_is_utf8_escaped(self) -> None:
        url = compose_url("example.com", "/café")

        assert url.full == "http://example.com/caf%C3%A9"
        assert url.path == "/café"


# =============================================================================
# Request / response
# =============================================================================


class TestBuildRequest:
    """Tests for build_request."""

    def test_no_host_no_request(self) -> None:
        assert build_request({"http.method": "GET", "http.path": "/"}) is None

    def test_empty_host_no_request(self) -> None:
        assert build_request({"http.host": ""}) is None

    def test_host_only(self) -> None:
        request = build_request({"http.host": "example.com"})

        assert request is not None
        assert request.url.full == "http://example.com"
        assert request.method == ""
        assert request.headers == []

    def test_user_agent_header(self) -> None:
        request = build_request({"http.host": "example.com", "http.user_agent": "curl/1.4"})

        assert request is not None
        assert request.headers == [Header("User-Agent", ["curl/1.4"])]

    def test_empty_user_agent_no_header(self) -> None:
        request = build_request({"http.host": "example.com", "http.user_agent": ""})

        assert request is not None
        assert request.headers == []


class TestBuildResponse:
    """Tests for build_response and parse_status_code."""

    def test_no_status_code_no_response(self) -> None:
        assert build_response({}) is None

    def test_empty_status_code_no_response(self) -> None:
        assert build_response({"http.status_code": ""}) is None

    def test_numeric_status_code(self) -> None:
        response = build_response({"http.status_code": "404"})

        assert response is not None
        assert response.status_code == 404

    def test_non_numeric_status_code_is_zero(self) -> None:
        response = build_response({"http.status_code": "OK"})

        assert response is not None
        assert response.status_code == 0

    @pytest.mark.parametrize("value,expected", [
        ("200", 200),
        ("+201", 201),
        ("-1", -1),
        ("2_00", 0),
        (" 200", 0),
        ("200.0", 0),
        ("", 0),
    ])
    def test_parse_status_code(self, value: str, expected: int) -> None:
        assert parse_status_code(value) == expected

    def test_integer_attribute_status_code(self) -> None:
        """An int http.status_code attribute is formatted, then parsed back."""
        transaction = map_span(make_span(attributes={"http.status_code": 503}))

        assert transaction.context.response is not None
        assert transaction.context.response.status_code == 503


# =============================================================================
# End-to-end mapping
# =============================================================================


class TestMapSpan:
    """Tests for map_span."""

    def test_no_parent(self) -> None:
        """Span without parent, unknown status, plain attributes."""
        transaction = map_span(make_span())

        assert transaction.name == "/foo"
        assert transaction.id == SPAN_ID
        assert transaction.trace_id == TRACE_ID
        assert transaction.parent_id == ZERO_SPAN_ID
        assert transaction.result == "error"
        assert transaction.timestamp == START_TIME
        assert transaction.sampled is True
        assert transaction.type == "0"
        assert sorted_tags(transaction.context.tags) == sorted_tags([
            Tag("status.code", "2"),
            Tag("status.message", "error"),
            Tag("error", "true"),
            Tag("key", "value"),
            Tag("double", "123.456000"),
        ])
        assert transaction.context.request is None
        assert transaction.context.response is None

    def test_parent(self) -> None:
        transaction = map_span(make_span(parent_span_id=SPAN_ID))

        assert transaction.parent_id == SPAN_ID
        assert transaction.id == SPAN_ID
        assert len(transaction.context.tags) == 5

    def test_http_request(self) -> None:
        transaction = map_span(make_span(attributes={
            "double": 123.456,
            "key": "value",
            "http.host": "google.com:8080",
            "http.status_code": "200",
            "http.path": "/",
            "http.method": "GET",
            "http.user_agent": "curl/1.4",
        }))

        assert sorted_tags(transaction.context.tags) == sorted_tags([
            Tag("status.code", "2"),
            Tag("status.message", "error"),
            Tag("error", "true"),
            Tag("key", "value"),
            Tag("double", "123.456000"),
            Tag("http.host", "google.com:8080"),
            Tag("http.status_code", "200"),
            Tag("http.path", "/"),
            Tag("http.method", "GET"),
            Tag("http.user_agent", "curl/1.4"),
        ])

        request = transaction.context.request
        assert request is not None
        assert request.method == "GET"
        assert request.url.full == "http://google.com:8080/"
        assert request.url.protocol == "http"
        assert request.url.hostname == "google.com"
        assert request.url.port == "8080"
        assert request.url.path == "/"
        assert request.headers == [Header("User-Agent", ["curl/1.4"])]

        assert transaction.context.response is not None
        assert transaction.context.response.status_code == 200

    def test_duration_in_milliseconds(self) -> None:
        transaction = map_span(make_span(end_time=START_TIME + 1_500_000))

        assert transaction.duration == pytest.approx(1.5)

    def test_zero_duration(self) -> None:
        assert map_span(make_span()).duration == 0.0

    def test_type_is_decimal_kind(self) -> None:
        assert map_span(make_span(kind=2)).type == "2"

    def test_result_is_status_message_not_code(self) -> None:
        transaction = map_span(make_span(status=SpanStatus(code=0, message="all good")))

        assert transaction.result == "all good"

    def test_span_count(self) -> None:
        transaction = map_span(make_span(child_span_count=3))

        assert transaction.span_count.started == 3
        assert transaction.span_count.dropped == 0

    def test_not_sampled(self) -> None:
        assert map_span(make_span(sampled=False)).sampled is False

    def test_request_without_method_or_path(self) -> None:
        transaction = map_span(make_span(attributes={"http.host": "example.com"}))

        assert transaction.context.request is not None
        assert transaction.context.response is None

    def test_response_without_host(self) -> None:
        transaction = map_span(make_span(attributes={"http.status_code": "500"}))

        assert transaction.context.request is None
        assert transaction.context.response is not None

    def test_non_string_host_formats_before_gating(self) -> None:
        """A non-string http.host still gates the request once formatted."""
        transaction = map_span(make_span(attributes={"http.host": 12345}))

        assert transaction.context.request is not None
        assert transaction.context.request.url.hostname == "12345"

    def test_unsupported_host_type_means_no_request(self) -> None:
        transaction = map_span(make_span(attributes={"http.host": ["a", "b"]}))

        assert transaction.context.request is None
        assert transaction.context.tags_dict["http.host"] == ""

    def test_input_span_unchanged(self) -> None:
        attributes = {"key": "value"}
        span = make_span(attributes=attributes)

        map_span(span)

        assert attributes == {"key": "value"}
