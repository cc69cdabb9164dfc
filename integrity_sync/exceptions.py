"""
Consolidated exception system with error codes, context, and correlation support.

Every failure the engine can produce is a ``BaseError`` subclass. Errors log
themselves on construction (level chosen from the HTTP status they map to) and
carry the correlation id of the webhook delivery or notification being handled.
"""

import threading
import traceback
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

_thread_local = threading.local()


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # System errors (1xxx)
    INTERNAL_ERROR = "1000"
    DATABASE_ERROR = "1001"
    CONNECTION_ERROR = "1002"
    CONFIGURATION_ERROR = "1003"
    TIMEOUT_ERROR = "1004"

    # Validation errors (2xxx)
    VALIDATION_FAILED = "2000"
    WEBHOOK_PAYLOAD_INVALID = "2001"
    MISSING_REQUIRED = "2002"
    INVALID_FORMAT = "2003"

    # Resolution / sync outcome (3xxx)
    NOT_FOUND = "3000"
    DUPLICATE = "3001"
    SYNC_NO_LINKED_TASK = "3002"
    SYNC_NO_LIST_GROUP = "3003"
    SYNC_SKIPPED = "3004"

    # Authentication (4xxx)
    AUTH_NO_TOKEN = "4000"
    AUTH_REFRESH_FAILED = "4001"
    WEBHOOK_SIGNATURE_INVALID = "4003"
    WEBHOOK_CLIENT_STATE_INVALID = "4004"

    # External service errors (5xxx)
    EXTERNAL_API_ERROR = "5000"
    GRAPH_REQUEST_FAILED = "5001"
    GRAPH_MAILBOX_NOT_ENABLED = "5002"
    GITHUB_REQUEST_FAILED = "5003"
    GITHUB_NO_TOKEN = "5004"


class BaseError(Exception):
    """Base exception with context, error codes, logging, and error chaining."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        status_code: int = 500,
        cause: Optional[Exception] = None,
        **context: Any,
    ):
        """
        Initialize base error with rich context.

        Args:
            message: Human-readable error message
            error_code: Standardized error code from ErrorCode enum
            status_code: HTTP status code for webhook responses
            cause: Original exception that caused this error
            **context: Additional context information
        """
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.error_id = str(uuid.uuid4())
        self.context = context

        correlation_id = get_correlation_id()
        if correlation_id:
            self.context["correlation_id"] = correlation_id

        self.context["error_id"] = self.error_id

        if cause:
            self.context["cause"] = {
                "type": type(cause).__name__,
                "message": str(cause),
                "traceback": traceback.format_exception(type(cause), cause, cause.__traceback__),
            }

        self._log_error()

        super().__init__(message)

    def _log_error(self) -> None:
        """Log error with appropriate level based on status code."""
        # Imported lazily, the logger module depends on config which imports constants
        from .utils.logger import get_logger

        logger = get_logger()

        log_data = {
            "error_id": self.error_id,
            "error_code": self.error_code.value,
            "status_code": self.status_code,
            "error_message": self.message,
            "context": {k: v for k, v in self.context.items() if k not in ["cause", "traceback"]},
        }

        if "correlation_id" in self.context:
            log_data["correlation_id"] = self.context["correlation_id"]

        if self.status_code >= 500:
            logger.error(
                f"Error {self.error_code.name}: {self.message}", extra=log_data, exc_info=self.cause
            )
        elif self.status_code >= 400:
            logger.warning(f"Client error {self.error_code.name}: {self.message}", extra=log_data)
        else:
            logger.info(f"{self.error_code.name}: {self.message}", extra=log_data)

    def to_dict(self, include_cause: bool = False) -> Dict[str, Any]:
        """
        Convert to dict for webhook responses.

        Args:
            include_cause: Include cause information (useful for debugging)

        Returns:
            Dictionary representation suitable for JSON serialization
        """
        result: Dict[str, Any] = {
            "error": {
                "id": self.error_id,
                "code": self.error_code.name,
                "message": self.message,
                "timestamp": self.timestamp,
                "context": {
                    k: v
                    for k, v in self.context.items()
                    if k not in ["cause", "error_id", "correlation_id"]
                },
            }
        }

        if "correlation_id" in self.context:
            result["error"]["correlation_id"] = self.context["correlation_id"]

        if include_cause and "cause" in self.context:
            result["error"]["cause"] = {
                "type": self.context["cause"]["type"],
                "message": self.context["cause"]["message"],
            }

        return result

    def add_context(self, **kwargs: Any) -> "BaseError":
        """
        Add additional context to the error (fluent interface).

        Returns:
            Self for method chaining
        """
        self.context.update(kwargs)
        return self

    @property
    def error_chain(self) -> List[Exception]:
        """Get the full chain of errors."""
        chain: List[Exception] = [self]
        current = self.cause
        while current:
            chain.append(current)
            current = getattr(current, "cause", None)
        return chain


class RepositoryError(BaseError):
    """Persistence layer errors."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.DATABASE_ERROR,
        status_code: int = 500,
        cause: Optional[Exception] = None,
        **context,
    ):
        super().__init__(message, error_code, status_code, cause, **context)


class ServiceError(BaseError):
    """Service layer errors."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        operation: Optional[str] = None,
        cause: Optional[Exception] = None,
        **context,
    ):
        """Initialize service error with operation context."""
        if operation:
            context["operation"] = operation
        super().__init__(message, error_code, 500, cause, **context)


class ValidationError(BaseError):
    """Validation errors."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        error_code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        cause: Optional[Exception] = None,
        **context,
    ):
        """Initialize validation error with field context."""
        if field:
            context["field"] = field
        super().__init__(message, error_code, 400, cause, **context)


class PayloadInvalidError(ValidationError):
    """Webhook body is not JSON or does not match the expected event schema."""

    def __init__(self, message: str = "Invalid payload", **kwargs):
        kwargs.setdefault("error_code", ErrorCode.WEBHOOK_PAYLOAD_INVALID)
        super().__init__(message, **kwargs)


# ==================== AUTHENTICATION ====================


class AuthError(BaseError):
    """No usable OAuth credential could be produced for an outbound call."""

    def __init__(
        self,
        message: str = "No access token available",
        error_code: ErrorCode = ErrorCode.AUTH_NO_TOKEN,
        cause: Optional[Exception] = None,
        **context,
    ):
        super().__init__(message, error_code, 500, cause, **context)


class WebhookAuthError(BaseError):
    """Inbound webhook failed its authenticity check."""

    def __init__(
        self,
        message: str = "Signature mismatch",
        error_code: ErrorCode = ErrorCode.WEBHOOK_SIGNATURE_INVALID,
        **context,
    ):
        super().__init__(message, error_code, 401, None, **context)


# ==================== OUTBOUND CAPABILITIES ====================


class CapabilityError(BaseError):
    """An outbound call to Graph or GitHub failed."""

    def __init__(
        self,
        message: str,
        service_name: str,
        http_status: Optional[int] = None,
        response_body: Optional[str] = None,
        error_code: ErrorCode = ErrorCode.EXTERNAL_API_ERROR,
        cause: Optional[Exception] = None,
        **context,
    ):
        self.service_name = service_name
        self.http_status = http_status
        self.response_body = response_body
        context["service_name"] = service_name
        if http_status is not None:
            context["http_status"] = http_status
        super().__init__(message, error_code, 502, cause, **context)


class FeatureUnavailableError(CapabilityError):
    """The account behind the credential cannot use the To Do API at all."""

    def __init__(
        self,
        message: str = (
            "Microsoft To Do API is not available for personal Microsoft accounts. "
            "Use a work or school account."
        ),
        http_status: Optional[int] = None,
        response_body: Optional[str] = None,
        **context,
    ):
        super().__init__(
            message,
            service_name="graph",
            http_status=http_status,
            response_body=response_body,
            error_code=ErrorCode.GRAPH_MAILBOX_NOT_ENABLED,
            **context,
        )


# ==================== BENIGN SYNC OUTCOMES ====================


class ResolutionFailure(BaseError):
    """A structural mapping could not be established. Answered with 200."""

    def __init__(
        self,
        message: str = "No matching list group",
        error_code: ErrorCode = ErrorCode.SYNC_NO_LIST_GROUP,
        **context,
    ):
        super().__init__(message, error_code, 200, None, **context)


class SyncSkipped(BaseError):
    """Nothing to do for this event. Answered with 200."""

    def __init__(
        self, message: str, error_code: ErrorCode = ErrorCode.SYNC_SKIPPED, **context
    ):
        super().__init__(message, error_code, 200, None, **context)


# Correlation ID management
def set_correlation_id(correlation_id: str) -> None:
    """Set the correlation ID for the current thread."""
    _thread_local.correlation_id = correlation_id


def get_correlation_id() -> Optional[str]:
    """Get the current thread's correlation ID."""
    return getattr(_thread_local, "correlation_id", None)


def clear_correlation_id() -> None:
    """Clear the current thread's correlation ID."""
    if hasattr(_thread_local, "correlation_id"):
        delattr(_thread_local, "correlation_id")
