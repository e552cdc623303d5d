import json
from typing import Any, Optional

from opentelemetry import trace

from common.core.otel_axiom_exporter import get_logger
from .interface import ErrorReporterInterface

logger = get_logger(__name__)


def _attribute_value(value: Any) -> Any:
    # Span attributes only accept primitives
    if isinstance(value, (str, bool, int, float)):
        return value
    return json.dumps(value, default=str)


class OtelErrorReporter(ErrorReporterInterface):
    """Reports exceptions on the active OpenTelemetry span and the error log."""

    def capture_exception(
        self, error: BaseException, context: Optional[dict[str, Any]] = None
    ) -> None:
        context = context or {}
        try:
            span = trace.get_current_span()
            if span.is_recording():
                span.record_exception(
                    error,
                    attributes={
                        f"error.context.{k}": _attribute_value(v)
                        for k, v in context.items()
                    },
                )
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(error)))
        except Exception as e:
            logger.warning(f"Failed to record exception on span: {e}")

        logger.error(
            f"Captured exception: {error}",
            extra={"error_type": type(error).__name__, "error_context": context},
        )
