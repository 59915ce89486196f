"""
Structured error types for tabspine.

Every failure the repository and migration engine can surface is a
``TabspineError`` carrying a ``kind`` drawn from a closed set.  Callers
branch on ``kind`` (or on the subclass) instead of parsing messages.

Manifesto:
    - **Closed taxonomy:** Eight kinds, no ad-hoc strings
    - **Errors are data:** Retry hints, validation issues and migration
      identity travel on the error, not in the message
    - **Error chaining:** The underlying exception is kept as ``cause``
      and ``__cause__``
    - **No silent retries:** ``retryable`` is a hint for the caller; the
      only automatic retry is the single credential refresh in the HTTP
      transport

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │                       TabspineError                          │
        │        (kind, retryable, retry_after, cause)                 │
        ├──────────────────────────────────────────────────────────────┤
        │  CredentialError        AUTH_ERROR        401 after refresh  │
        │  PermissionDeniedError  PERMISSION_ERROR  403 / read-only    │
        │  RateLimitError         RATE_LIMIT        429 (+retry_after) │
        │  NetworkError           NETWORK_ERROR     call never landed  │
        │  ValidationError        VALIDATION_ERROR  issues[]           │
        │  SchemaError            SCHEMA_ERROR      registration       │
        │  MigrationError         MIGRATION_ERROR   version + name     │
        │  StoreError             API_ERROR         everything else    │
        └──────────────────────────────────────────────────────────────┘

Examples:
    >>> err = RateLimitError("Rate limited: 429", retry_after=30)
    >>> err.kind
    <ErrorKind.RATE_LIMIT: 'RATE_LIMIT'>
    >>> err.retry_after
    30

    >>> err = ValidationError(
    ...     "Validation failed",
    ...     issues=[ValidationIssue("name", "Required field is missing")],
    ... )
    >>> err.issues[0].field
    'name'

Guardrails:
    ❌ DON'T: Raise bare Exception from engine code
    ✅ DO: Raise the TabspineError subclass matching the kind

    ❌ DON'T: Swallow the transport exception
    ✅ DO: Pass it as cause=

Tags:
    error-handling, exception-hierarchy, taxonomy, tabspine
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Closed set of error kinds."""

    AUTH = "AUTH_ERROR"
    PERMISSION = "PERMISSION_ERROR"
    RATE_LIMIT = "RATE_LIMIT"
    NETWORK = "NETWORK_ERROR"
    VALIDATION = "VALIDATION_ERROR"
    SCHEMA = "SCHEMA_ERROR"
    MIGRATION = "MIGRATION_ERROR"
    API = "API_ERROR"


@dataclass(frozen=True)
class ValidationIssue:
    """One field-level problem found by schema, duplicate-key or FK checks."""

    field: str
    message: str
    value: Any = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"field": self.field, "message": self.message}
        if self.value is not None:
            result["value"] = self.value
        return result


class TabspineError(Exception):
    """
    Base exception for every tabspine failure.

    Subclasses set ``default_kind`` and ``default_retryable``; instances
    carry the message, an optional retry delay in seconds, and the
    underlying cause.

    Examples:
        >>> err = TabspineError("boom")
        >>> err.kind
        <ErrorKind.API: 'API_ERROR'>
        >>> err.to_dict()["kind"]
        'API_ERROR'
    """

    default_kind: ErrorKind = ErrorKind.API
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        kind: ErrorKind | None = None,
        retryable: bool | None = None,
        retry_after: int | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.kind = kind or self.default_kind
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.retry_after = retry_after
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "kind": self.kind.value,
            "message": self.message,
            "retryable": self.retryable,
        }
        if self.retry_after is not None:
            result["retry_after"] = self.retry_after
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, kind={self.kind.value})"


# =============================================================================
# TRANSPORT-LEVEL ERRORS
# =============================================================================


class CredentialError(TabspineError):
    """The store rejected the credential (after the one refresh, if any)."""

    default_kind = ErrorKind.AUTH


class PermissionDeniedError(TabspineError):
    """Write attempted without a write-capable credential, or store said 403."""

    default_kind = ErrorKind.PERMISSION


class RateLimitError(TabspineError):
    """The store is throttling.  ``retry_after`` holds the hint in seconds."""

    default_kind = ErrorKind.RATE_LIMIT
    default_retryable = True


class NetworkError(TabspineError):
    """The network call itself could not complete."""

    default_kind = ErrorKind.NETWORK
    default_retryable = True


class StoreError(TabspineError):
    """Any other backend failure.

    Attributes:
        status: HTTP-like status code, when the store answered at all.
        body: Raw response body text.
    """

    default_kind = ErrorKind.API

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        body: str | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.status = status
        self.body = body

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.status is not None:
            result["status"] = self.status
        return result


# =============================================================================
# ENGINE-LEVEL ERRORS
# =============================================================================


class ValidationError(TabspineError):
    """
    Schema, field, duplicate-key or foreign-key check failed.

    Never retryable - the data must be fixed.
    """

    default_kind = ErrorKind.VALIDATION

    def __init__(
        self,
        message: str,
        *,
        issues: list[ValidationIssue] | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.issues: list[ValidationIssue] = list(issues or [])

    @property
    def fields(self) -> list[str]:
        """Names of the offending fields, in issue order."""
        return [issue.field for issue in self.issues]

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["issues"] = [issue.to_dict() for issue in self.issues]
        return result


class SchemaError(TabspineError):
    """Bad table or migration registration.  Raised as early as detectable."""

    default_kind = ErrorKind.SCHEMA


class MigrationError(TabspineError):
    """A migration procedure raised; the run halted at ``version``."""

    default_kind = ErrorKind.MIGRATION

    def __init__(
        self,
        message: str,
        *,
        version: int,
        name: str,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.version = version
        self.name = name

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["migration_version"] = self.version
        result["migration_name"] = self.name
        return result


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def classify_http_error(
    status: int,
    body: str,
    *,
    retry_after: int | None = None,
    cause: BaseException | None = None,
) -> TabspineError:
    """Map a non-2xx store response to the matching error kind."""
    if status == 401:
        return CredentialError(f"Authentication failed: {status} {body}", cause=cause)
    if status == 403:
        return PermissionDeniedError(f"Permission denied: {status} {body}", cause=cause)
    if status == 429:
        return RateLimitError(
            f"Rate limited: {status} {body}",
            retry_after=retry_after,
            cause=cause,
        )
    return StoreError(
        f"Store API error: {status} {body}",
        status=status,
        body=body,
        cause=cause,
    )


def is_tabspine_error(error: object) -> bool:
    """True for any member of the taxonomy."""
    return isinstance(error, TabspineError)


def is_retryable(error: BaseException) -> bool:
    """Check if an error is worth retrying by the caller."""
    if isinstance(error, TabspineError):
        return error.retryable
    return False


def get_retry_after(error: BaseException) -> int | None:
    """Get retry delay from error, if specified."""
    if isinstance(error, TabspineError):
        return error.retry_after
    return None


__all__ = [
    "ErrorKind",
    "ValidationIssue",
    "TabspineError",
    "CredentialError",
    "PermissionDeniedError",
    "RateLimitError",
    "NetworkError",
    "StoreError",
    "ValidationError",
    "SchemaError",
    "MigrationError",
    "classify_http_error",
    "is_tabspine_error",
    "is_retryable",
    "get_retry_after",
]
