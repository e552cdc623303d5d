from abc import ABC, abstractmethod
from typing import Any, Optional


class ErrorReporterInterface(ABC):
    """Interface for exception-tracking sinks."""

    @abstractmethod
    def capture_exception(
        self, error: BaseException, context: Optional[dict[str, Any]] = None
    ) -> None:
        """
        Report an exception for operator follow-up.

        Fire-and-forget: implementations must never raise, whatever happens
        inside the sink.

        Args:
            error: The exception to report
            context: Extra identifiers to attach (e.g. subscription id)
        """
        pass
