"""
apmexport.core.mapper - Span to APM transaction mapping.

``map_span`` is a pure function: it never performs I/O and never fails.
Attribute values of unknown types render as empty strings and malformed
numeric strings degrade to zero.

Example:
    >>> from apmexport.core.mapper import map_span
    >>> transaction = map_span(span_record)
    >>> transaction.context.tags_dict["status.code"]
    '0'
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import quote

from apmexport.core.model import (
    URL,
    Context,
    Header,
    Request,
    Response,
    SpanCount,
    Tag,
    Transaction,
)
from apmexport.core.span import STATUS_CODE_OK, SpanRecord

HTTP_HOST = "http.host"
HTTP_METHOD = "http.method"
HTTP_PATH = "http.path"
HTTP_USER_AGENT = "http.user_agent"
HTTP_STATUS_CODE = "http.status_code"

URL_SCHEME = "http"

NANOS_PER_MILLI = 1_000_000

_INTEGER_RE = re.compile(r"[+-]?[0-9]+")
_PORT_RE = re.compile(r"[0-9]*")
# Sub-delimiters left unescaped in a path; "?" and "#" are always escaped.
_PATH_SAFE = "/:@$&+,;="


def format_attribute_value(value: Any) -> str:
    """Render an attribute value as a tag string.

    Args:
        value: A str, float, bool or int attribute value

    Returns:
        The value as a string: floats in six-decimal fixed notation, booleans
        as "true"/"false", integers in decimal. Any other type yields "".
    """
    if isinstance(value, str):
        return value
    # bool is a subclass of int and must be matched first
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return "%d" % value
    if isinstance(value, float):
        return "%f" % value
    return ""


def attributes_to_strings(attributes: Mapping[str, Any]) -> Dict[str, str]:
    """Convert span attributes into a string-keyed string mapping."""
    return {key: format_attribute_value(value) for key, value in attributes.items()}


def build_tags(span: SpanRecord, attributes: Mapping[str, str]) -> List[Tag]:
    """Build the tag collection of a transaction.

    The two status tags always come first, followed by ``error="true"`` for
    any non-OK status code and then one tag per attribute.

    Args:
        span: The span being mapped
        attributes: Attributes already rendered as strings

    Returns:
        Ordered list of tags
    """
    tags = [
        Tag("status.code", "%d" % span.status.code),
        Tag("status.message", span.status.message),
    ]

    if span.status.code != STATUS_CODE_OK:
        tags.append(Tag("error", "true"))

    for key, value in attributes.items():
        tags.append(Tag(key, value))

    return tags


def split_host_port(host: str) -> Tuple[str, str]:
    """Split "host:port" into hostname and port.

    The split only happens at a trailing ":" followed by digits (or
    nothing); otherwise the whole string is the hostname. Bracketed IPv6
    literals lose their brackets.
    """
    hostname, port = host, ""
    colon = host.rfind(":")
    if colon != -1 and _PORT_RE.fullmatch(host[colon + 1:]):
        hostname, port = host[:colon], host[colon + 1:]

    if hostname.startswith("[") and hostname.endswith("]"):
        hostname = hostname[1:-1]
    return hostname, port


def compose_url(host: str, path: str = "") -> URL:
    """Compose an http URL from a host and path and decompose it.

    The path is always treated as a path: characters such as "?", "#" and
    spaces are percent-escaped in the full URL, so the URL never carries a
    query or fragment.

    Args:
        host: Host, optionally with ":port"
        path: URL path, may be empty

    Returns:
        URL with its full string and components
    """
    if path and not path.startswith("/"):
        path = "/" + path
    full = "%s://%s%s" % (URL_SCHEME, host, quote(path, safe=_PATH_SAFE))
    hostname, port = split_host_port(host)

    return URL(
        full=full,
        protocol=URL_SCHEME,
        hostname=hostname,
        port=port,
        path=path,
    )


def build_request(attributes: Mapping[str, str]) -> Optional[Request]:
    """Build the HTTP request sub-object, or None without an http.host."""
    host = attributes.get(HTTP_HOST, "")
    if not host:
        return None

    request = Request(
        url=compose_url(host, attributes.get(HTTP_PATH, "")),
        method=attributes.get(HTTP_METHOD, ""),
    )

    user_agent = attributes.get(HTTP_USER_AGENT, "")
    if user_agent:
        request.headers = [Header("User-Agent", [user_agent])]

    return request


def parse_status_code(value: str) -> int:
    """Parse an HTTP status code, returning 0 when it is not an integer."""
    if not _INTEGER_RE.fullmatch(value):
        return 0
    return int(value)


def build_response(attributes: Mapping[str, str]) -> Optional[Response]:
    """Build the HTTP response sub-object, or None without an http.status_code."""
    status_code = attributes.get(HTTP_STATUS_CODE, "")
    if not status_code:
        return None
    return Response(status_code=parse_status_code(status_code))


def map_span(span: SpanRecord) -> Transaction:
    """Map a completed span to an APM transaction.

    Args:
        span: The span to map

    Returns:
        The transaction record for the span
    """
    attributes = attributes_to_strings(span.attributes)

    return Transaction(
        id=span.span_id,
        trace_id=span.trace_id,
        parent_id=span.parent_span_id,
        name=span.name,
        timestamp=span.start_time,
        duration=(span.end_time - span.start_time) / NANOS_PER_MILLI,
        type="%d" % span.kind,
        result=span.status.message,
        span_count=SpanCount(started=span.child_span_count, dropped=0),
        context=Context(
            tags=build_tags(span, attributes),
            request=build_request(attributes),
            response=build_response(attributes),
        ),
        sampled=span.sampled,
    )
