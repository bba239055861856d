"""
OpenTelemetry tracing setup with ApmExporter.

This module provides functions to configure OpenTelemetry tracing so that
every finished span is shipped to an APM server as a transaction.

Example:
    >>> from apmexport.integrations import setup_tracing, get_tracer
    >>>
    >>> # Setup tracing
    >>> setup_tracing(
    ...     service_name="my-service",
    ...     endpoint="http://apm:8200/intake/v2/events",
    ... )
    >>>
    >>> # Get a tracer and create spans
    >>> tracer = get_tracer("my-module")
    >>> with tracer.start_as_current_span("my-operation") as span:
    ...     span.set_attribute("http.host", "example.com")
"""

from __future__ import annotations

import logging
import os
from typing import Optional

import requests
from opentelemetry import trace
from opentelemetry.sdk.resources import Resource, SERVICE_NAME
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SimpleSpanProcessor,
    SpanExporter,
)

from apmexport.exporters import ApmExporter
from apmexport.exporters.apm_exporter import ErrorCallback

logger = logging.getLogger(__name__)

ENDPOINT_ENV_VAR = "APM_EXPORTER_ENDPOINT"
DEFAULT_ENDPOINT = "http://localhost:8200/intake/v2/events"

# Global reference to the configured provider
_tracer_provider: Optional[TracerProvider] = None


def resolve_endpoint(endpoint: Optional[str] = None) -> str:
    """Resolve the APM endpoint URL.

    Args:
        endpoint: Explicit endpoint; wins when given.

    Returns:
        The explicit endpoint, else $APM_EXPORTER_ENDPOINT, else the local
        APM server default.
    """
    if endpoint:
        return endpoint
    return os.environ.get(ENDPOINT_ENV_VAR) or DEFAULT_ENDPOINT


def setup_tracing(
    service_name: str,
    endpoint: Optional[str] = None,
    session: Optional[requests.Session] = None,
    on_error: Optional[ErrorCallback] = None,
    use_batch_processor: bool = True,
    additional_exporters: Optional[list[SpanExporter]] = None,
) -> TracerProvider:
    """Setup OpenTelemetry tracing with ApmExporter.

    This function configures the global TracerProvider so finished spans
    are exported to APM.

    Args:
        service_name: Name of the service, recorded on the tracer resource.
        endpoint: APM intake URL. See resolve_endpoint for the fallbacks.
        session: Optional requests session for the exporter.
        on_error: Optional callback(span, error) for failed sends.
        use_batch_processor: Use BatchSpanProcessor (True) or SimpleSpanProcessor.
        additional_exporters: Additional SpanExporters to use alongside APM.

    Returns:
        The configured TracerProvider.
    """
    global _tracer_provider

    resource = Resource.create({
        SERVICE_NAME: service_name,
    })
    provider = TracerProvider(resource=resource)

    apm_exporter = ApmExporter(
        resolve_endpoint(endpoint),
        session=session,
        on_error=on_error,
    )

    exporters: list[SpanExporter] = [apm_exporter]
    if additional_exporters:
        exporters.extend(additional_exporters)

    for exporter in exporters:
        if use_batch_processor:
            provider.add_span_processor(BatchSpanProcessor(exporter))
        else:
            provider.add_span_processor(SimpleSpanProcessor(exporter))

    # Set as global provider
    trace.set_tracer_provider(provider)
    _tracer_provider = provider

    logger.info(
        "Tracing configured: service=%s, endpoint=%s",
        service_name,
        apm_exporter.endpoint,
    )

    return provider


def get_tracer(name: str, version: Optional[str] = None) -> trace.Tracer:
    """Get a tracer instance from the configured provider.

    Args:
        name: Name of the tracer (usually module name).
        version: Optional version of the tracer.

    Returns:
        A Tracer instance for creating spans.
    """
    provider = trace.get_tracer_provider()
    return provider.get_tracer(name, version)


def shutdown_tracing() -> None:
    """Shutdown the tracing system.

    Flushes pending spans and shuts down the TracerProvider.
    """
    global _tracer_provider

    if _tracer_provider:
        logger.info("Shutting down tracing...")
        _tracer_provider.shutdown()
        _tracer_provider = None
        logger.info("Tracing shutdown complete")
