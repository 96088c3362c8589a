"""
Span helpers that work on the current span without passing it around.
"""

from contextlib import contextmanager
from typing import Any, Iterator

from opentelemetry import trace

from .tracer import get_tracer


def _attribute_value(value: Any) -> Any:
    # OpenTelemetry accepts str, bool, int and float; stringify the rest
    if isinstance(value, (str, bool, int, float)):
        return value
    return str(value)


@contextmanager
def trace_operation(
    operation_name: str,
    kind: trace.SpanKind = trace.SpanKind.INTERNAL,
    **attributes,
) -> Iterator[trace.Span]:
    """
    Run a block inside a new span.

    Exceptions are recorded on the span and re-raised.

    Example:
        >>> with trace_operation("partition_document", path="notes.xml") as span:
        ...     parts = partitioner.partition(document, 8)
        ...     span.set_attribute("part_count", len(parts))
    """
    tracer = get_tracer()

    with tracer.start_as_current_span(operation_name, kind=kind) as span:
        for key, value in attributes.items():
            if value is not None:
                span.set_attribute(key, _attribute_value(value))

        try:
            yield span
        except Exception as e:
            span.set_attribute("error", True)
            span.set_attribute("error.type", type(e).__name__)
            span.record_exception(e)
            raise


def add_span_attributes(**attributes) -> None:
    """Set attributes on the current span if it is recording."""
    current_span = trace.get_current_span()
    if current_span.is_recording():
        for key, value in attributes.items():
            if value is not None:
                current_span.set_attribute(key, _attribute_value(value))


def add_span_event(name: str, **attributes) -> None:
    """Add a point-in-time event to the current span."""
    current_span = trace.get_current_span()
    if current_span.is_recording():
        current_span.add_event(
            name, attributes={k: _attribute_value(v) for k, v in attributes.items()}
        )
