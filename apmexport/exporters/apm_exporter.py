"""
ApmExporter - OpenTelemetry SpanExporter that ships spans to an APM endpoint.

Every finished span is mapped to an APM transaction and posted on its own.
Nothing is buffered: ``force_flush`` has nothing to drain.

Example:
    >>> from opentelemetry import trace
    >>> from opentelemetry.sdk.trace import TracerProvider
    >>> from opentelemetry.sdk.trace.export import SimpleSpanProcessor
    >>> from apmexport.exporters import ApmExporter
    >>>
    >>> exporter = ApmExporter("http://localhost:8200/intake/v2/events")
    >>> provider = TracerProvider()
    >>> provider.add_span_processor(SimpleSpanProcessor(exporter))
    >>> trace.set_tracer_provider(provider)
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence

import requests
from opentelemetry.sdk.trace import ReadableSpan
from opentelemetry.sdk.trace.export import SpanExporter, SpanExportResult

from apmexport.core.mapper import map_span
from apmexport.core.span import SpanRecord, from_readable_span
from apmexport.errors import SendError
from apmexport.exporters.sender import ApmSender

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[SpanRecord, SendError], None]


class ApmExporter(SpanExporter):
    """OpenTelemetry SpanExporter that uploads spans to APM as transactions.

    Send failures never escape ``export``. They are logged and handed to
    ``on_error`` when one is configured, and the batch result is FAILURE.

    Attributes:
        endpoint: Intake URL transactions are posted to
        on_error: Optional callback(span, error) invoked for each failed send

    Example:
        >>> exporter = ApmExporter(
        ...     "http://apm:8200/intake/v2/events",
        ...     on_error=lambda span, error: print(f"lost {span.name}: {error}")
        ... )
    """

    def __init__(
        self,
        endpoint: str,
        session: Optional[requests.Session] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        """Initialize the ApmExporter.

        Args:
            endpoint: APM intake URL.
            session: HTTP session to post with. A private one is created if None.
            on_error: Optional callback(span, error) for failed sends.
        """
        self.endpoint = endpoint
        self.on_error = on_error
        self._sender = ApmSender(endpoint, session=session)
        self._shutdown = False

        logger.info("ApmExporter initialized: endpoint=%s", self.endpoint)

    def export_span(self, span: SpanRecord) -> bool:
        """Map a single span and send it.

        Args:
            span: The span to export.

        Returns:
            True if the transaction was sent, False otherwise.
        """
        if self._shutdown:
            logger.warning("ApmExporter already shut down, dropping span '%s'", span.name)
            return False

        transaction = map_span(span)
        try:
            self._sender.send(transaction)
        except SendError as e:
            logger.error("Failed to export span '%s' (%s): %s", span.name, span.span_id.hex(), e)
            self._report_error(span, e)
            return False

        logger.debug("Exported span '%s' as transaction %s", span.name, transaction.id.hex())
        return True

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        """Export a batch of spans, one request per span.

        Args:
            spans: Sequence of completed spans to export.

        Returns:
            SpanExportResult.FAILURE if any span could not be sent,
            SpanExportResult.SUCCESS otherwise.
        """
        if not spans:
            return SpanExportResult.SUCCESS

        logger.debug("Exporting %d spans", len(spans))
        failed = 0
        for span in spans:
            if not self.export_span(from_readable_span(span)):
                failed += 1

        if failed:
            logger.warning("%d of %d spans were not exported", failed, len(spans))
            return SpanExportResult.FAILURE
        return SpanExportResult.SUCCESS

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        """Nothing is buffered, so there is nothing to flush.

        Returns:
            Always True.
        """
        return True

    def shutdown(self) -> None:
        """Shutdown the exporter and release its HTTP session."""
        if self._shutdown:
            return
        self._shutdown = True
        self._sender.close()
        logger.info("ApmExporter shutdown complete")

    def _report_error(self, span: SpanRecord, error: SendError) -> None:
        if self.on_error is None:
            return
        try:
            self.on_error(span, error)
        except Exception as e:
            logger.error("Error callback failed for span '%s': %s", span.name, str(e))
