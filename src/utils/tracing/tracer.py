"""
OpenTelemetry tracer setup.

Spans are always created through a real TracerProvider so attributes and
exceptions are recorded; they are exported only when an OTLP endpoint
(argument or OTLP_ENDPOINT) or console export (TRACE_CONSOLE=true) is
configured.
"""

import logging
import os

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased

logger = logging.getLogger(__name__)

SERVICE = "osm-notes-ingestion"

_tracer: trace.Tracer | None = None
_provider: TracerProvider | None = None


def initialize_tracing(
    service_name: str = SERVICE,
    otlp_endpoint: str | None = None,
    console_export: bool = False,
    sampling_rate: float = 1.0,
) -> trace.Tracer:
    """
    Initialize tracing for the process.

    Args:
        service_name: Service name attached to every span
        otlp_endpoint: OTLP gRPC collector (e.g. "localhost:4317");
            defaults to the OTLP_ENDPOINT environment variable
        console_export: Also print finished spans to stdout
        sampling_rate: Fraction of root traces to sample (0.0-1.0)

    Returns:
        Tracer bound to the configured provider
    """
    global _tracer, _provider

    if _tracer is not None:
        logger.debug("Tracing already initialized, returning existing tracer")
        return _tracer

    sampler = ParentBased(TraceIdRatioBased(max(0.0, min(sampling_rate, 1.0))))
    _provider = TracerProvider(
        resource=Resource(attributes={SERVICE_NAME: service_name}),
        sampler=sampler,
    )

    exporters = []
    otlp_endpoint = otlp_endpoint or os.getenv("OTLP_ENDPOINT")
    if otlp_endpoint:
        _provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True))
        )
        exporters.append(f"OTLP({otlp_endpoint})")

    if console_export or os.getenv("TRACE_CONSOLE", "").lower() == "true":
        _provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
        exporters.append("Console")

    # The global provider can be set only once per process; keep our own
    # provider as the source of the tracer either way
    trace.set_tracer_provider(_provider)
    _tracer = _provider.get_tracer(service_name)

    logger.info(
        f"Tracing initialized: {service_name} "
        f"(exporters: {', '.join(exporters) or 'none'}, sampling: {sampling_rate})"
    )
    return _tracer


def get_tracer() -> trace.Tracer:
    """Return the process tracer, initializing it with defaults on first use."""
    if _tracer is None:
        return initialize_tracing()
    return _tracer


def shutdown_tracing() -> None:
    """Flush pending spans and release the provider."""
    global _tracer, _provider

    if _provider is None:
        return

    try:
        _provider.shutdown()
        logger.info("Tracing shutdown complete")
    except Exception as e:
        logger.error(f"Error during tracing shutdown: {e}")
    finally:
        _provider = None
        _tracer = None
