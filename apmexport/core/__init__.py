"""
apmexport.core - Span records, transaction records and the mapping between them.

This subpackage contains the main functionality:
- span: SpanRecord and SpanStatus dataclasses, OpenTelemetry adapter, SpanParser
- model: Transaction dataclasses and the fixed service metadata
- mapper: map_span, turning one span into one APM transaction
"""

from apmexport.core.span import SpanRecord, SpanStatus, SpanParser, from_readable_span
from apmexport.core.model import Transaction, Service, Agent, SERVICE_METADATA
from apmexport.core.mapper import map_span, format_attribute_value

__all__ = [
    "SpanRecord",
    "SpanStatus",
    "SpanParser",
    "from_readable_span",
    "Transaction",
    "Service",
    "Agent",
    "SERVICE_METADATA",
    "map_span",
    "format_attribute_value",
]
