"""
apmexport - Export OpenTelemetry spans to an APM server as transactions.

This package maps completed trace spans onto the APM intake transaction
schema and posts them, one span per request, as newline-delimited JSON.

Example:
    >>> from apmexport import SpanParser, map_span, ApmSender
    >>> spans = SpanParser().parse_json(json_str)
    >>> sender = ApmSender("http://localhost:8200/intake/v2/events")
    >>> for span in spans:
    ...     sender.send(map_span(span))
"""

__version__ = "0.1.0"
__author__ = "KR"
__email__ = "Karthickrajam18@gmail.com"

from apmexport.core.span import SpanRecord, SpanStatus, SpanParser, from_readable_span
from apmexport.core.model import Transaction
from apmexport.core.mapper import map_span
from apmexport.errors import ApmExportError, SendError
from apmexport.exporters import ApmExporter, ApmSender

__all__ = [
    "SpanRecord",
    "SpanStatus",
    "SpanParser",
    "from_readable_span",
    "Transaction",
    "map_span",
    "ApmExportError",
    "SendError",
    "ApmExporter",
    "ApmSender",
]
