from typing import Any, Dict, Optional
import functools
import asyncio
import logging
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.resources import Resource, SERVICE_NAME, SERVICE_VERSION
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry._logs import set_logger_provider
from opentelemetry.exporter.otlp.proto.http._log_exporter import OTLPLogExporter
from opentelemetry.sdk._logs import LoggerProvider
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from common.core.config import settings

# Configure logging at module level
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    force=True,  # This ensures it overrides any existing configuration
)


# Global flag to ensure initialization only happens once
_initialized = False
axiom_tracer = None


def _axiom_headers() -> Dict[str, str]:
    return {
        "Authorization": f"Bearer {settings.axiom_token}",
        "X-Axiom-Dataset": settings.axiom_dataset,
    }


def _initialize_telemetry():
    """Initialize telemetry once and only once."""
    global _initialized, axiom_tracer

    if _initialized:
        return

    resource = Resource(
        attributes={
            SERVICE_NAME: settings.otel_service_name,
            SERVICE_VERSION: settings.otel_service_version,
        }
    )

    # TRACING SETUP
    provider = TracerProvider(resource=resource)
    logger_provider = LoggerProvider(resource=resource)

    # Without a token spans are still created (and recorded) but never shipped
    if settings.axiom_token:
        provider.add_span_processor(
            BatchSpanProcessor(
                OTLPSpanExporter(
                    endpoint=settings.otel_traces_endpoint, headers=_axiom_headers()
                )
            )
        )
        logger_provider.add_log_record_processor(
            BatchLogRecordProcessor(
                OTLPLogExporter(
                    endpoint=settings.otel_logs_endpoint, headers=_axiom_headers()
                )
            )
        )

    trace.set_tracer_provider(provider)
    axiom_tracer = trace.get_tracer(settings.otel_service_name)
    set_logger_provider(logger_provider)

    _initialized = True
    logging.getLogger(__name__).info(
        f"Telemetry initialized (export enabled: {bool(settings.axiom_token)})"
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance. Ensures telemetry is initialized.
    Use this instead of logging.getLogger() directly.
    """
    if not _initialized:
        _initialize_telemetry()
    return logging.getLogger(name)


# Custom decorator for automatic span naming
def trace_span(func):
    """Decorator that automatically creates a span with the function name."""

    def _span_name(args) -> str:
        if args and hasattr(args[0], "__class__"):
            # If it's a method, include class name
            return f"{args[0].__class__.__name__}.{func.__name__}"
        return func.__name__

    @functools.wraps(func)
    def sync_wrapper(*args, **kwargs):
        with axiom_tracer.start_as_current_span(_span_name(args)):
            return func(*args, **kwargs)

    @functools.wraps(func)
    async def async_wrapper(*args, **kwargs):
        with axiom_tracer.start_as_current_span(_span_name(args)):
            return await func(*args, **kwargs)

    # Return appropriate wrapper based on function type
    if asyncio.iscoroutinefunction(func):
        return async_wrapper
    else:
        return sync_wrapper


def create_span_with_context(
    span_name: str, attributes: Optional[Dict[str, Any]] = None
):
    """Start a child span of the current span for a finer-grained step."""
    return axiom_tracer.start_as_current_span(span_name, attributes=attributes)
