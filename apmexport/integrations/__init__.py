"""
apmexport.integrations - Tracing setup for applications.

This subpackage wires ApmExporter into a global OpenTelemetry
TracerProvider.

Example:
    >>> from apmexport.integrations import setup_tracing, get_tracer
    >>>
    >>> setup_tracing(service_name="my-api")
    >>> tracer = get_tracer(__name__)
"""

from apmexport.integrations.setup import (
    setup_tracing,
    get_tracer,
    shutdown_tracing,
    resolve_endpoint,
)

__all__ = [
    "setup_tracing",
    "get_tracer",
    "shutdown_tracing",
    "resolve_endpoint",
]
