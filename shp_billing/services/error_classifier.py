"""
Error classification utilities for distinguishing retryable from fatal errors.
"""

import logging
import threading
from enum import Enum
from typing import Any, Dict, List

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from shp_billing.exceptions import BillingError, ConcurrentUpdateConflict

logger = logging.getLogger(__name__)


class ErrorType(Enum):
    """Classification of error types."""

    RETRYABLE = "retryable"  # Lost races, locked database, dropped connections
    FATAL = "fatal"  # Invalid input, missing rows, constraint violations
    UNKNOWN = "unknown"  # Unknown error type


class ErrorClassifier:
    """
    Classifies errors to distinguish between retryable and fatal errors.

    Features:
    - Optimistic-concurrency conflict detection
    - Transient database error detection
    - Error description generation
    - Thread-safe statistics tracking
    """

    def __init__(self):
        """Initialize error classifier with statistics tracking."""
        self._lock = threading.Lock()
        self._stats: Dict[str, int] = {
            "retryable": 0,
            "fatal": 0,
            "unknown": 0,
            "total": 0,
        }

    def _count(self, error_type: ErrorType) -> ErrorType:
        with self._lock:
            self._stats["total"] += 1
            self._stats[error_type.value] += 1
        return error_type

    def classify(self, exception: Exception) -> ErrorType:
        """
        Classify an exception into retryable, fatal, or unknown.

        Args:
            exception: The exception to classify

        Returns:
            ErrorType classification
        """
        # Another writer changed the client first; a fresh snapshot fixes it
        if isinstance(exception, (ConcurrentUpdateConflict, StaleDataError)):
            return self._count(ErrorType.RETRYABLE)

        # Domain errors describe the request itself; retrying cannot help
        if isinstance(exception, BillingError):
            return self._count(ErrorType.FATAL)

        if isinstance(exception, IntegrityError):
            return self._count(ErrorType.FATAL)

        # "database is locked", deadlocks, serialization failures, lost connections
        if isinstance(exception, OperationalError):
            return self._count(ErrorType.RETRYABLE)

        if isinstance(exception, DBAPIError) and exception.connection_invalidated:
            return self._count(ErrorType.RETRYABLE)

        return self._count(ErrorType.UNKNOWN)

    def is_retryable(self, exception: Exception) -> bool:
        """
        Check if an exception should be retried.

        Args:
            exception: The exception to check

        Returns:
            True if retryable, False otherwise
        """
        return self.classify(exception) == ErrorType.RETRYABLE

    def get_error_description(self, exception: Exception) -> str:
        """
        Get a human-readable error description.

        Args:
            exception: The exception to describe

        Returns:
            Error description string
        """
        error_type = self.classify(exception)

        if isinstance(exception, ConcurrentUpdateConflict):
            return (
                f"Concurrent update conflict (client {exception.client_id}) "
                f"- {error_type.value}"
            )

        if isinstance(exception, StaleDataError):
            return f"Stale row version - {error_type.value}"

        if isinstance(exception, OperationalError):
            return f"Database operational error ({exception.orig}) - {error_type.value}"

        if isinstance(exception, IntegrityError):
            return f"Database constraint violation ({exception.orig}) - {error_type.value}"

        return f"{type(exception).__name__}: {str(exception)} - {error_type.value}"

    def get_error_type_name(self, error_type: ErrorType) -> str:
        """Get human-readable name for error type."""
        return error_type.value.capitalize()

    def classify_batch(self, exceptions: List[Exception]) -> List[ErrorType]:
        """Classify multiple exceptions."""
        return [self.classify(exc) for exc in exceptions]

    def get_statistics(self) -> Dict[str, Any]:
        """
        Get error classification statistics.

        Returns:
            Dictionary with error counts
        """
        with self._lock:
            return self._stats.copy()

    def reset_statistics(self):
        """Reset error statistics."""
        with self._lock:
            self._stats = {"retryable": 0, "fatal": 0, "unknown": 0, "total": 0}
