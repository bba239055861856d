"""
apmexport.exporters - Delivery of transactions to an APM endpoint.

This subpackage provides the HTTP sender and an OpenTelemetry SpanExporter
that maps every finished span to an APM transaction and posts it.

Example:
    >>> from opentelemetry import trace
    >>> from opentelemetry.sdk.trace import TracerProvider
    >>> from opentelemetry.sdk.trace.export import BatchSpanProcessor
    >>> from apmexport.exporters import ApmExporter
    >>>
    >>> exporter = ApmExporter("http://localhost:8200/intake/v2/events")
    >>> provider = TracerProvider()
    >>> provider.add_span_processor(BatchSpanProcessor(exporter))
    >>> trace.set_tracer_provider(provider)
"""

from apmexport.exporters.sender import ApmSender, build_payload
from apmexport.exporters.apm_exporter import ApmExporter

__all__ = ["ApmExporter", "ApmSender", "build_payload"]
