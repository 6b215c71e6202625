"""
Shared kernel for Paper Stream.

Provides:
- Unified exception hierarchy
- Async utilities for the source fan-out
- Date parsing helpers
"""

from .async_utils import (
    CircuitBreaker,
    Settled,
    gather_settled,
    with_timeout,
)
from .dates import OLDEST, iso_from_epoch, iso_now, parse_timestamp, sort_key
from .exceptions import (
    AllSourcesFailedError,
    CacheError,
    CacheReadCorruptError,
    CacheWriteFailedError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    InternalError,
    InvalidRequestError,
    PaperStreamError,
    RateLimitError,
    SourceError,
    SourceUnavailableError,
    get_retry_delay,
    is_retryable_error,
)

__all__ = [
    # Exceptions
    "PaperStreamError",
    "ErrorContext",
    "ErrorSeverity",
    "ErrorCategory",
    "SourceError",
    "SourceUnavailableError",
    "RateLimitError",
    "AllSourcesFailedError",
    "CacheError",
    "CacheReadCorruptError",
    "CacheWriteFailedError",
    "InvalidRequestError",
    "InternalError",
    "is_retryable_error",
    "get_retry_delay",
    # Async
    "CircuitBreaker",
    "Settled",
    "gather_settled",
    "with_timeout",
    # Dates
    "OLDEST",
    "parse_timestamp",
    "sort_key",
    "iso_now",
    "iso_from_epoch",
]
