"""
apmexport.core.model - Transaction records sent to the APM intake endpoint.

The dataclasses here mirror the APM intake transaction schema. Each record
knows how to render itself with ``to_dict()`` into the JSON-ready shape the
intake expects: identifiers as lowercase hex, timestamps as integer
microseconds since the epoch, tags and headers as JSON objects.

Classes:
    Tag, Header, URL, Request, Response, SpanCount, Context: Transaction parts
    Transaction: The transaction record produced by the mapper
    Agent, Service: Service metadata sent ahead of every transaction
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from apmexport.core.span import ZERO_SPAN_ID


@dataclass(frozen=True)
class Tag:
    """A flattened string key/value pair attached to a transaction."""
    key: str
    value: str


@dataclass
class Header:
    """An HTTP header with one or more values."""
    key: str
    values: List[str] = field(default_factory=list)


@dataclass
class URL:
    """A request URL decomposed into its components.

    Attributes:
        full: The complete URL string
        protocol: URL scheme, e.g. "http"
        hostname: Host without port
        port: Port as written in the host, empty if absent
        path: URL path
        search: Query string without the leading "?"
        hash: Fragment without the leading "#"
    """
    full: str = ""
    protocol: str = ""
    hostname: str = ""
    port: str = ""
    path: str = ""
    search: str = ""
    hash: str = ""

    def to_dict(self) -> Dict[str, Any]:
        fields = {
            "full": self.full,
            "protocol": self.protocol,
            "hostname": self.hostname,
            "port": self.port,
            "pathname": self.path,
            "search": self.search,
            "hash": self.hash,
        }
        return {key: value for key, value in fields.items() if value}


@dataclass
class Request:
    """HTTP request details of a transaction."""
    url: URL
    method: str
    headers: List[Header] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"url": self.url.to_dict(), "method": self.method}
        if self.headers:
            # Single-valued headers render as a plain string
            result["headers"] = {
                header.key: header.values[0] if len(header.values) == 1 else list(header.values)
                for header in self.headers
            }
        return result


@dataclass
class Response:
    """HTTP response details of a transaction."""
    status_code: int

    def to_dict(self) -> Dict[str, Any]:
        return {"status_code": self.status_code}


@dataclass
class SpanCount:
    """Counts of spans started and dropped under a transaction."""
    started: int = 0
    dropped: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"dropped": self.dropped, "started": self.started}


@dataclass
class Context:
    """Tags and optional HTTP request/response details."""
    tags: List[Tag] = field(default_factory=list)
    request: Optional[Request] = None
    response: Optional[Response] = None

    @property
    def tags_dict(self) -> Dict[str, str]:
        """Tags as a mapping, later duplicates overriding earlier ones."""
        return {tag.key: tag.value for tag in self.tags}

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"tags": self.tags_dict}
        if self.request is not None:
            result["request"] = self.request.to_dict()
        if self.response is not None:
            result["response"] = self.response.to_dict()
        return result


@dataclass
class Transaction:
    """The APM-side representation of a top-level traced operation.

    Attributes:
        id: 8-byte transaction identifier (the span id)
        trace_id: 16-byte trace identifier
        parent_id: 8-byte parent span identifier, all zeros when there is none
        name: Transaction name
        timestamp: Start time in Unix epoch nanoseconds
        duration: Duration in milliseconds
        type: Span kind rendered as a decimal string
        result: Status message of the span
        span_count: Started and dropped span counts
        context: Tags plus optional request/response
        sampled: Whether the span was sampled
    """
    id: bytes
    trace_id: bytes
    name: str
    timestamp: int
    duration: float
    type: str
    result: str
    parent_id: bytes = ZERO_SPAN_ID
    span_count: SpanCount = field(default_factory=SpanCount)
    context: Context = field(default_factory=Context)
    sampled: bool = True

    def to_dict(self) -> Dict[str, Any]:
        """Render the transaction in the intake wire shape.

        ``parent_id`` is left out for root transactions, since the intake
        treats any present parent id as a reference to an existing span.

        Returns:
            JSON-serializable dictionary
        """
        result: Dict[str, Any] = {
            "id": self.id.hex(),
            "trace_id": self.trace_id.hex(),
        }
        if self.parent_id != ZERO_SPAN_ID:
            result["parent_id"] = self.parent_id.hex()
        result.update({
            "name": self.name,
            "type": self.type,
            "timestamp": self.timestamp // 1000,
            "duration": self.duration,
            "result": self.result,
            "span_count": self.span_count.to_dict(),
            "context": self.context.to_dict(),
            "sampled": self.sampled,
        })
        return result


@dataclass(frozen=True)
class Agent:
    """Name and version of the reporting agent."""
    name: str
    version: str

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "version": self.version}


@dataclass(frozen=True)
class Service:
    """Service descriptor sent as metadata ahead of each transaction."""
    name: str
    agent: Agent

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "agent": self.agent.to_dict()}


SERVICE_METADATA = Service(
    name="apm-gateway",
    agent=Agent(name="apm-gateway", version="0.0.1"),
)
