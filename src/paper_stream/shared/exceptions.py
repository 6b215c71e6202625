"""
Unified Exception Hierarchy for Paper Stream.

Exception Hierarchy:
    PaperStreamError (base)
    ├── SourceError
    │   ├── SourceUnavailableError
    │   │   └── RateLimitError
    │   └── AllSourcesFailedError
    ├── CacheError
    │   ├── CacheReadCorruptError
    │   └── CacheWriteFailedError
    ├── InvalidRequestError
    └── InternalError

Propagation policy:
    Source and cache errors are contained where they happen (logged, counted,
    degraded to "empty contribution" or "cache miss"). Only InvalidRequestError
    and InternalError are meant to reach the HTTP boundary.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any


class ErrorSeverity(Enum):
    """Severity levels for errors."""
    WARNING = auto()      # Recoverable, can continue
    ERROR = auto()        # Failed but can retry
    CRITICAL = auto()     # Cannot continue
    TRANSIENT = auto()    # Temporary, should retry automatically


class ErrorCategory(Enum):
    """Categories for error classification."""
    SOURCE = "source"
    CACHE = "cache"
    VALIDATION = "validation"
    INTERNAL = "internal"


@dataclass(frozen=True, slots=True)
class ErrorContext:
    """Structured context attached to every PaperStreamError."""
    source: str | None = None
    operation: str | None = None
    input_value: Any = None
    suggestion: str | None = None
    retry_after: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class PaperStreamError(Exception):
    """
    Base exception for all Paper Stream errors.

    Provides:
    - Structured error context
    - Severity classification
    - Retry guidance
    """

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        category: ErrorCategory = ErrorCategory.INTERNAL,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.context = context or ErrorContext()
        self.severity = severity
        self.category = category
        self.retryable = retryable

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization / structured logs."""
        result: dict[str, Any] = {
            "error": str(self),
            "category": self.category.value,
            "severity": self.severity.name.lower(),
            "retryable": self.retryable,
        }
        if self.context.source:
            result["source"] = self.context.source
        if self.context.operation:
            result["operation"] = self.context.operation
        if self.context.suggestion:
            result["suggestion"] = self.context.suggestion
        if self.context.retry_after:
            result["retry_after_seconds"] = self.context.retry_after
        return result


# =============================================================================
# Source Errors
# =============================================================================

class SourceError(PaperStreamError):
    """Base class for errors raised by or about source adapters."""

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        retryable: bool = True,
    ) -> None:
        super().__init__(
            message,
            context=context,
            severity=severity,
            category=ErrorCategory.SOURCE,
            retryable=retryable,
        )


class SourceUnavailableError(SourceError):
    """An adapter could not produce results (network, parse, or rate limit)."""

    def __init__(
        self,
        source: str,
        message: str = "Source temporarily unavailable",
        *,
        context: ErrorContext | None = None,
    ) -> None:
        ctx = context or ErrorContext()
        ctx = ErrorContext(
            source=source,
            operation=ctx.operation,
            input_value=ctx.input_value,
            suggestion=ctx.suggestion,
            retry_after=ctx.retry_after,
            metadata=ctx.metadata,
        )
        super().__init__(f"{source}: {message}", context=ctx)
        self.source = source


class RateLimitError(SourceUnavailableError):
    """Raised when a provider rate limit is exceeded or its circuit is open."""

    def __init__(
        self,
        source: str,
        message: str = "API rate limit exceeded",
        *,
        retry_after: float = 1.0,
    ) -> None:
        super().__init__(
            source,
            message,
            context=ErrorContext(
                suggestion="Wait and retry the request",
                retry_after=retry_after,
            ),
        )
        self.severity = ErrorSeverity.TRANSIENT


class AllSourcesFailedError(SourceError):
    """No real adapter produced papers; the fallback adapter takes over."""

    def __init__(
        self,
        attempted: int,
        succeeded: int,
        *,
        errors: list[Exception] | None = None,
    ) -> None:
        super().__init__(
            f"No papers from external sources ({succeeded}/{attempted} succeeded)",
            context=ErrorContext(
                operation="aggregate",
                metadata={"attempted": attempted, "succeeded": succeeded},
            ),
            severity=ErrorSeverity.WARNING,
            retryable=False,
        )
        self.attempted = attempted
        self.succeeded = succeeded
        self.errors = errors or []


# =============================================================================
# Cache Errors
# =============================================================================

class CacheError(PaperStreamError):
    """Base class for durable cache I/O problems."""

    def __init__(
        self,
        message: str,
        *,
        key: str | None = None,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(
            message,
            context=context or ErrorContext(input_value=key),
            severity=ErrorSeverity.WARNING,
            category=ErrorCategory.CACHE,
            retryable=False,
        )
        self.key = key


class CacheReadCorruptError(CacheError):
    """A durable record exists but cannot be read or parsed."""

    def __init__(self, path: str, reason: str, *, key: str | None = None) -> None:
        super().__init__(f"Corrupt cache record {path}: {reason}", key=key)
        self.path = path


class CacheWriteFailedError(CacheError):
    """A durable record could not be written."""

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"Failed to write cache record for {key!r}: {reason}", key=key)


# =============================================================================
# Request / Internal Errors
# =============================================================================

class InvalidRequestError(PaperStreamError):
    """Missing or malformed query parameters."""

    def __init__(
        self,
        message: str,
        *,
        param_name: str | None = None,
        value: Any = None,
    ) -> None:
        super().__init__(
            message,
            context=ErrorContext(
                operation=param_name,
                input_value=value,
            ),
            severity=ErrorSeverity.WARNING,
            category=ErrorCategory.VALIDATION,
            retryable=False,
        )
        self.param_name = param_name


class InternalError(PaperStreamError):
    """Unexpected failure anywhere in aggregation."""

    def __init__(self, message: str = "Internal server error", *, cause: Exception | None = None) -> None:
        super().__init__(
            message,
            context=ErrorContext(
                metadata={"cause": repr(cause)} if cause is not None else {},
            ),
            severity=ErrorSeverity.CRITICAL,
            category=ErrorCategory.INTERNAL,
            retryable=False,
        )


# =============================================================================
# Utilities
# =============================================================================

def is_retryable_error(error: Exception) -> bool:
    """Check if an error should be retried."""
    if isinstance(error, PaperStreamError):
        return error.retryable

    error_str = str(error).lower()
    transient_patterns = [
        "rate limit",
        "too many requests",
        "temporarily unavailable",
        "service unavailable",
        "connection reset",
        "timeout",
    ]
    return any(pattern in error_str for pattern in transient_patterns)


def get_retry_delay(error: Exception, attempt: int) -> float:
    """
    Calculate retry delay with exponential backoff.

    Args:
        error: The exception that occurred
        attempt: Current attempt number (0-based)

    Returns:
        Delay in seconds before next retry
    """
    base_delay = 1.0

    if isinstance(error, PaperStreamError) and error.context.retry_after:
        base_delay = error.context.retry_after

    delay = base_delay * (2 ** attempt)
    jitter = random.uniform(0, 0.1 * delay)

    # Cap at 30 seconds
    return min(delay + jitter, 30.0)
