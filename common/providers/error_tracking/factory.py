from typing import Optional

from .interface import ErrorReporterInterface
from .otel_reporter import OtelErrorReporter

_error_reporter: Optional[ErrorReporterInterface] = None


def get_error_reporter() -> ErrorReporterInterface:
    """Get the process-wide exception-tracking sink."""
    global _error_reporter

    if _error_reporter is None:
        _error_reporter = OtelErrorReporter()

    return _error_reporter
