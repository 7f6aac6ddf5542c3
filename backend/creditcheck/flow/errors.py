"""Errors raised inside the credit-check flow.

Only ValidationError and SessionStartError are shown to the user as urgent
notices. Fetch attempt failures are absorbed by the retrier, exhaustion is
an informational advisory, and cache-check failures read as a cache miss.
"""

from typing import Any, Optional


class CreditCheckFlowError(Exception):
    """Base class for flow errors."""


class ValidationError(CreditCheckFlowError):
    """A form field failed its local check."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message


class PendingIntentError(CreditCheckFlowError):
    """The ``data`` parameter carried through login could not be decoded."""


class SessionStartError(CreditCheckFlowError):
    """The bureau session could not be started; the user may submit again."""


class FetchAttemptError(CreditCheckFlowError):
    """One polling attempt failed; counted, never shown."""

    def __init__(self, transaction_id: str, attempt: int, cause: Optional[BaseException] = None):
        super().__init__(f"Attempt {attempt} for transaction {transaction_id} failed: {cause!r}")
        self.transaction_id = transaction_id
        self.attempt = attempt
        self.cause = cause


class FetchExhaustedError(CreditCheckFlowError):
    """Every polling attempt failed; the bureau may still finish server-side."""

    def __init__(self, transaction_id: str, attempts: int):
        super().__init__(
            "Your report is still being processed. Please check back in a few minutes."
        )
        self.transaction_id = transaction_id
        self.attempts = attempts


class CacheCheckError(CreditCheckFlowError):
    """The cache lookup failed; treated as a miss."""


# ── API client errors ────────────────────────────────────────


class ApiError(CreditCheckFlowError):
    """Non-success response from the backend."""

    def __init__(self, status_code: int, message: str, payload: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.payload = payload


class AuthExpiredError(ApiError):
    """The stored credential was rejected (401)."""

    def __init__(self, message: str = "Session expired. Please login again."):
        super().__init__(401, message)


class ReportProcessingError(ApiError):
    """The backend answered 202: the bureau is still generating the report."""
