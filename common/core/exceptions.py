from typing import Any, Optional


class AppException(Exception):
    """Base application exception."""

    # Safe to show to an end user; the exception message may carry internals
    public_message: str = "Something went wrong. Please try again later."


class NotFoundError(AppException):
    """Resource not found exception."""

    public_message = "The requested resource was not found."


class ValidationError(AppException):
    """Validation error exception."""

    public_message = "The request could not be validated."


class ProcessingError(AppException):
    """Processing error exception."""

    pass


class WebhookValidationError(ValidationError):
    """A billing webhook payload failed schema validation with no fallback."""

    def __init__(self, message: str, errors: Optional[list[Any]] = None):
        super().__init__(message)
        self.errors = errors or []


class UnresolvableLinkageError(ProcessingError):
    """A billing event could not be tied to a user from payload or database."""

    public_message = (
        "We could not process a billing update for your account. "
        "Our team has been notified."
    )

    def __init__(self, message: str, subscription_id: Optional[str] = None):
        super().__init__(message)
        self.subscription_id = subscription_id


class QuotaExceededError(AppException):
    """Usage for a resource has reached the limit of the user's plan."""

    def __init__(
        self,
        plan: str,
        limit: int,
        resource_type: str,
        resource_label: str,
    ):
        self.plan = plan
        self.limit = limit
        self.resource_type = resource_type
        self.resource_label = resource_label
        self.message = (
            f"{resource_type.capitalize()} limit reached. "
            f"Your {plan} plan allows {limit} {resource_label}."
        )
        super().__init__(self.message)

    @property
    def public_message(self) -> str:
        return self.message
