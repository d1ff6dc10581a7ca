"""
Exception classes for the Flash wallet client.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """
    Closed set of failure kinds surfaced by the client.

    Values match the error codes the backend puts in GraphQL
    ``extensions.code``, so a server-supplied code maps straight onto a kind.
    """
    INVALID_USERNAME = "INVALID_USERNAME"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    INVALID_BANK_ACCOUNT = "INVALID_BANK_ACCOUNT"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    NETWORK_ERROR = "NETWORK_ERROR"
    AUTHENTICATION_FAILED = "AUTHENTICATION_FAILED"
    RATE_LIMITED = "RATE_LIMITED"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    BANK_API_ERROR = "BANK_API_ERROR"
    SETTLEMENT_LIMIT_EXCEEDED = "SETTLEMENT_LIMIT_EXCEEDED"
    FEATURE_DISABLED = "FEATURE_DISABLED"

    @classmethod
    def from_code(cls, code: Any, default: Optional["ErrorKind"] = None) -> "ErrorKind":
        """Look up a kind by its wire code, falling back to ``default``."""
        if default is None:
            default = cls.NETWORK_ERROR
        try:
            return cls(code)
        except ValueError:
            return default


# HTTP status -> error kind for non-success responses
HTTP_STATUS_KINDS = {
    400: ErrorKind.INVALID_AMOUNT,
    401: ErrorKind.AUTHENTICATION_FAILED,
    403: ErrorKind.INSUFFICIENT_BALANCE,
    404: ErrorKind.USER_NOT_FOUND,
    429: ErrorKind.RATE_LIMITED,
    500: ErrorKind.BANK_API_ERROR,
    502: ErrorKind.BANK_API_ERROR,
    503: ErrorKind.BANK_API_ERROR,
}


def kind_for_status(status: int) -> ErrorKind:
    """Map an HTTP status code to an error kind."""
    return HTTP_STATUS_KINDS.get(status, ErrorKind.NETWORK_ERROR)


class FlashApiError(Exception):
    """
    The single error type raised across the client boundary.

    Attributes:
        kind: What went wrong, from the closed ErrorKind set
        message: Human-readable text suitable for direct display
        details: Structured extras (server error body, retryAfter, ...)
        occurred_at: When the error was raised (UTC)
        status_code: HTTP status, when one was involved
    """

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.NETWORK_ERROR,
        details: Optional[dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.kind = ErrorKind(kind)
        self.details = dict(details or {})
        self.status_code = status_code
        self.occurred_at = datetime.now(timezone.utc)

    @property
    def retry_after(self) -> Optional[int]:
        """Seconds to wait before retrying, for rate-limit errors."""
        return self.details.get("retryAfter")

    def with_message(self, message: str) -> "FlashApiError":
        """Copy of this error with a friendlier message, same kind and details."""
        error = FlashApiError(
            message,
            self.kind,
            details={**self.details, "cause": self.message},
            status_code=self.status_code,
        )
        error.occurred_at = self.occurred_at
        return error

    def to_dict(self) -> dict[str, Any]:
        details = {
            key: (str(value) if isinstance(value, BaseException) else value)
            for key, value in self.details.items()
        }
        return {
            "kind": self.kind.value,
            "message": self.message,
            "details": details,
            "occurredAt": self.occurred_at.isoformat(),
        }

    def __repr__(self) -> str:
        return f"FlashApiError(kind={self.kind.value!r}, message={self.message!r})"
