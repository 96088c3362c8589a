"""
Distributed tracing using OpenTelemetry.

Spans cover document partitioning, worker pool runs and individual units,
Overpass queries and boundary reconciliation.
"""

from .context import add_span_attributes, add_span_event, trace_operation
from .tracer import get_tracer, initialize_tracing, shutdown_tracing

__all__ = [
    "initialize_tracing",
    "get_tracer",
    "shutdown_tracing",
    "trace_operation",
    "add_span_attributes",
    "add_span_event",
]
