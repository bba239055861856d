"""
apmexport.core.span - Span records consumed by the transaction mapper.

This module defines the immutable span record the mapper works on, together
with the two ways of obtaining one: adapting a finished OpenTelemetry SDK
span, or parsing span data from OTLP/JSON documents.

Classes:
    SpanStatus: Numeric status code plus message
    SpanRecord: Dataclass representing a single completed span
    SpanParser: Parser for OTLP/JSON span documents

Functions:
    from_readable_span: Convert an OpenTelemetry ReadableSpan to a SpanRecord
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Union

from opentelemetry.trace import SpanKind, StatusCode

if TYPE_CHECKING:
    from opentelemetry.sdk.trace import ReadableSpan

# Attribute values the mapper knows how to format. Anything else is still
# accepted in SpanRecord.attributes and renders as an empty string.
AttributeValue = Union[str, float, bool, int]

# OpenCensus canonical status codes: 0 is OK, every other code is an error.
STATUS_CODE_OK = 0
STATUS_CODE_UNKNOWN = 2

SPAN_KIND_UNSPECIFIED = 0
SPAN_KIND_SERVER = 1
SPAN_KIND_CLIENT = 2

TRACE_ID_SIZE = 16
SPAN_ID_SIZE = 8

ZERO_SPAN_ID = bytes(SPAN_ID_SIZE)

_OTLP_STATUS_CODES = {
    0: STATUS_CODE_OK,
    1: STATUS_CODE_OK,
    2: STATUS_CODE_UNKNOWN,
    "STATUS_CODE_UNSET": STATUS_CODE_OK,
    "STATUS_CODE_OK": STATUS_CODE_OK,
    "STATUS_CODE_ERROR": STATUS_CODE_UNKNOWN,
}

# OTLP numbers span kinds from UNSPECIFIED=0; the SDK enum starts at INTERNAL=0.
_OTLP_SPAN_KINDS = {
    0: SpanKind.INTERNAL.value,
    1: SpanKind.INTERNAL.value,
    2: SpanKind.SERVER.value,
    3: SpanKind.CLIENT.value,
    4: SpanKind.PRODUCER.value,
    5: SpanKind.CONSUMER.value,
    "SPAN_KIND_UNSPECIFIED": SpanKind.INTERNAL.value,
    "SPAN_KIND_INTERNAL": SpanKind.INTERNAL.value,
    "SPAN_KIND_SERVER": SpanKind.SERVER.value,
    "SPAN_KIND_CLIENT": SpanKind.CLIENT.value,
    "SPAN_KIND_PRODUCER": SpanKind.PRODUCER.value,
    "SPAN_KIND_CONSUMER": SpanKind.CONSUMER.value,
}


@dataclass(frozen=True)
class SpanStatus:
    """Status of a completed span.

    Attributes:
        code: Canonical status code (0 means OK)
        message: Human readable status message
    """
    code: int = STATUS_CODE_OK
    message: str = ""

    @property
    def is_ok(self) -> bool:
        return self.code == STATUS_CODE_OK


@dataclass(frozen=True)
class SpanRecord:
    """Represents a single completed span.

    Attributes:
        trace_id: 16-byte trace identifier
        span_id: 8-byte span identifier
        name: Operation name
        start_time: Start timestamp in Unix epoch nanoseconds
        end_time: End timestamp in Unix epoch nanoseconds
        parent_span_id: 8-byte parent identifier, all zeros for root spans
        status: Status code and message
        kind: Numeric span kind
        child_span_count: Number of child spans started under this span
        sampled: Sampling bit from the trace options
        attributes: Attribute key to dynamically typed value
    """
    trace_id: bytes
    span_id: bytes
    name: str
    start_time: int
    end_time: int
    parent_span_id: bytes = ZERO_SPAN_ID
    status: SpanStatus = field(default_factory=SpanStatus)
    kind: int = SPAN_KIND_UNSPECIFIED
    child_span_count: int = 0
    sampled: bool = True
    attributes: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate identifier sizes after initialization."""
        if len(self.trace_id) != TRACE_ID_SIZE:
            raise ValueError(f"trace_id must be {TRACE_ID_SIZE} bytes")
        if len(self.span_id) != SPAN_ID_SIZE:
            raise ValueError(f"span_id must be {SPAN_ID_SIZE} bytes")
        if len(self.parent_span_id) != SPAN_ID_SIZE:
            raise ValueError(f"parent_span_id must be {SPAN_ID_SIZE} bytes")
        if self.child_span_count < 0:
            raise ValueError("child_span_count cannot be negative")

    @property
    def has_parent(self) -> bool:
        """Whether the span has a parent (non-zero parent_span_id)."""
        return self.parent_span_id != ZERO_SPAN_ID


def _parse_hex_id(value: Any, field: str) -> bytes:
    if not isinstance(value, str):
        raise ValueError(f"{field} must be a hex string, got {type(value).__name__}")
    return bytes.fromhex(value)


def from_readable_span(span: ReadableSpan) -> SpanRecord:
    """Convert a finished OpenTelemetry SDK span into a SpanRecord.

    OpenTelemetry statuses are mapped onto canonical codes: UNSET and OK
    become 0, ERROR becomes 2 (Unknown). The SDK does not count child spans,
    so child_span_count is always 0.

    Args:
        span: The OpenTelemetry ReadableSpan to convert.

    Returns:
        The equivalent SpanRecord.
    """
    context = span.context
    parent_span_id = ZERO_SPAN_ID
    if span.parent is not None:
        parent_span_id = span.parent.span_id.to_bytes(SPAN_ID_SIZE, "big")

    code = STATUS_CODE_OK
    message = ""
    if span.status is not None:
        if span.status.status_code == StatusCode.ERROR:
            code = STATUS_CODE_UNKNOWN
        message = span.status.description or ""

    start_time = span.start_time or 0
    end_time = span.end_time if span.end_time is not None else start_time

    return SpanRecord(
        trace_id=context.trace_id.to_bytes(TRACE_ID_SIZE, "big"),
        span_id=context.span_id.to_bytes(SPAN_ID_SIZE, "big"),
        parent_span_id=parent_span_id,
        name=span.name,
        start_time=start_time,
        end_time=end_time,
        status=SpanStatus(code=code, message=message),
        kind=span.kind.value if span.kind is not None else SPAN_KIND_UNSPECIFIED,
        sampled=context.trace_flags.sampled,
        attributes=dict(span.attributes or {}),
    )


class SpanParser:
    """Parser for span data in OTLP/JSON form.

    Supports parsing from:
    - OTLP export format with resourceSpans
    - Simplified format with a direct spans array
    - A single span object

    Example:
        >>> parser = SpanParser()
        >>> spans = parser.parse_json(json_string)
        >>> print(spans[0].name)
    """

    def parse_json(self, json_str: str) -> List[SpanRecord]:
        """Parse spans from a JSON string.

        Args:
            json_str: JSON string containing span data

        Returns:
            List of parsed SpanRecord objects

        Raises:
            json.JSONDecodeError: If JSON is invalid
            ValueError: If required fields are missing
        """
        data = json.loads(json_str)
        if not isinstance(data, dict):
            raise ValueError("Span document must be a JSON object")
        return self.parse_otlp(data)

    def parse_otlp(self, data: Dict[str, Any]) -> List[SpanRecord]:
        """Parse spans from an OTLP data structure.

        Args:
            data: Dictionary containing OTLP span data

        Returns:
            List of parsed SpanRecord objects

        Raises:
            ValueError: If required fields are missing or data is invalid
        """
        if "resourceSpans" in data:
            raw_spans = self._extract_from_resource_spans(data["resourceSpans"])
        elif "spans" in data:
            raw_spans = data["spans"]
            if not isinstance(raw_spans, list):
                raise ValueError("spans must be a list")
        elif "spanId" in data:
            raw_spans = [data]
        else:
            raise ValueError("Unsupported span format: missing resourceSpans, spans, or spanId")

        for raw_span in raw_spans:
            if not isinstance(raw_span, dict):
                raise ValueError(f"span must be an object, got {type(raw_span).__name__}")
        return [self._parse_single_span(raw_span) for raw_span in raw_spans]

    def _extract_from_resource_spans(
        self, resource_spans: List[Dict[str, Any]]
    ) -> List[Dict[str, Any]]:
        if not isinstance(resource_spans, list):
            raise ValueError("resourceSpans must be a list")

        raw_spans: List[Dict[str, Any]] = []

        for resource_span in resource_spans:
            # scopeSpans in current OTLP, instrumentationLibrarySpans in older exports
            scope_spans = resource_span.get("scopeSpans", [])
            if not scope_spans:
                scope_spans = resource_span.get("instrumentationLibrarySpans", [])

            for scope_span in scope_spans:
                raw_spans.extend(scope_span.get("spans", []))

        return raw_spans

    def _parse_single_span(self, raw_span: Dict[str, Any]) -> SpanRecord:
        """Parse a single span dictionary into a SpanRecord.

        Args:
            raw_span: Dictionary containing span data

        Returns:
            SpanRecord object
        """
        trace_id = raw_span.get("traceId") or raw_span.get("trace_id")
        span_id = raw_span.get("spanId") or raw_span.get("span_id")
        if not trace_id:
            raise ValueError("span is missing traceId")
        if not span_id:
            raise ValueError("span is missing spanId")

        parent_span_id = raw_span.get("parentSpanId") or raw_span.get("parent_span_id")

        start_time = int(raw_span.get("startTimeUnixNano") or 0)
        end_time = int(raw_span.get("endTimeUnixNano") or start_time)

        flags = raw_span.get("flags")
        sampled = bool(int(flags) & 0x01) if flags is not None else True

        return SpanRecord(
            trace_id=_parse_hex_id(trace_id, "traceId"),
            span_id=_parse_hex_id(span_id, "spanId"),
            parent_span_id=(
                _parse_hex_id(parent_span_id, "parentSpanId") if parent_span_id else ZERO_SPAN_ID
            ),
            name=raw_span.get("name", ""),
            start_time=start_time,
            end_time=end_time,
            status=self._extract_status(raw_span.get("status")),
            kind=self._extract_kind(raw_span.get("kind")),
            child_span_count=int(raw_span.get("childSpanCount") or 0),
            sampled=sampled,
            attributes=self._extract_attributes(raw_span.get("attributes")),
        )

    def _extract_status(self, status: Optional[Dict[str, Any]]) -> SpanStatus:
        if not status:
            return SpanStatus()

        code = status.get("code", 0)
        if code not in _OTLP_STATUS_CODES:
            raise ValueError(f"unknown status code: {code!r}")

        return SpanStatus(code=_OTLP_STATUS_CODES[code], message=status.get("message", ""))

    def _extract_kind(self, kind: Any) -> int:
        if kind is None:
            return SPAN_KIND_UNSPECIFIED
        if kind not in _OTLP_SPAN_KINDS:
            raise ValueError(f"unknown span kind: {kind!r}")
        return _OTLP_SPAN_KINDS[kind]

    def _extract_attributes(self, attributes: Any) -> Dict[str, Any]:
        """Extract attribute values from OTLP key/value lists or plain objects.

        Args:
            attributes: List of {"key", "value"} entries or a flat dict

        Returns:
            Dictionary of attribute key to Python value
        """
        if not attributes:
            return {}

        # Handle both list and dict attribute formats
        if isinstance(attributes, dict):
            return dict(attributes)

        result: Dict[str, Any] = {}
        for attr in attributes:
            result[attr["key"]] = self._extract_any_value(attr.get("value", {}))
        return result

    def _extract_any_value(self, value: Dict[str, Any]) -> Any:
        if "stringValue" in value:
            return value["stringValue"]
        if "boolValue" in value:
            return bool(value["boolValue"])
        if "intValue" in value:
            # int64 values are strings in OTLP/JSON
            return int(value["intValue"])
        if "doubleValue" in value:
            return float(value["doubleValue"])
        # arrayValue, kvlistValue and bytesValue have no tag rendering
        return value
