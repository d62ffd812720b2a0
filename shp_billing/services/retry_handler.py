"""
Retry handler with exponential backoff and jitter for database transactions.
"""

import logging
import random
import threading
import time
from typing import Any, Callable, Optional

from shp_billing.services.error_classifier import ErrorClassifier

logger = logging.getLogger(__name__)


class RetryHandler:
    """
    Re-runs a whole transaction when it lost a race or hit a transient error.

    The wrapped callable must be safe to repeat from scratch: it opens its
    own session, re-reads the client and commits or rolls back as a unit.

    Features:
    - Exponential backoff with configurable base and jitter
    - Thread-safe operation
    - Configurable retry conditions (defaults to ErrorClassifier)
    - Statistics tracking
    """

    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 0.05,
        max_delay: float = 2.0,
        exponential_base: float = 2,
        jitter_factor: float = 0.1,
        retry_condition: Optional[Callable[[Exception], bool]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize retry handler.

        Args:
            max_retries: Maximum number of retry attempts
            base_delay: Base delay for exponential backoff (seconds)
            max_delay: Maximum delay between retries (seconds)
            exponential_base: Base for exponential backoff calculation
            jitter_factor: Factor for random jitter (0.0 to 1.0)
            retry_condition: Custom function to determine if retry should occur
            sleep: Function used to wait between attempts
        """
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter_factor = jitter_factor
        self.retry_condition = retry_condition or ErrorClassifier().is_retryable
        self._sleep = sleep

        # Statistics
        self._total_calls = 0
        self._total_retries = 0
        self._total_failures = 0

        # Thread safety
        self._lock = threading.Lock()

    def _calculate_delay(self, attempt: int) -> float:
        """
        Calculate delay for exponential backoff with jitter.

        Args:
            attempt: Current attempt number (0-based)

        Returns:
            Delay in seconds
        """
        delay = self.base_delay * (self.exponential_base**attempt)
        delay = min(delay, self.max_delay)

        jitter = random.uniform(-self.jitter_factor, self.jitter_factor) * delay
        return max(0, delay + jitter)

    def execute_with_retry(self, func: Callable, *args, **kwargs) -> Any:
        """
        Execute function with retry logic.

        Args:
            func: Function to execute
            *args: Positional arguments for function
            **kwargs: Keyword arguments for function

        Returns:
            Result of function execution

        Raises:
            Exception: The original exception if it is not retryable, or the
                last one once all retries are exhausted
        """
        with self._lock:
            self._total_calls += 1

        func_name = getattr(func, "__name__", repr(func))

        for attempt in range(self.max_retries + 1):  # +1 for initial attempt
            try:
                result = func(*args, **kwargs)

                if attempt > 0:
                    logger.info(f"{func_name} succeeded after {attempt} retries")
                    with self._lock:
                        self._total_retries += attempt

                return result

            except Exception as e:
                if not self.retry_condition(e):
                    logger.debug(f"Not retrying - condition not met: {type(e).__name__}")
                    raise

                if attempt >= self.max_retries:
                    logger.warning(
                        f"Max retries ({self.max_retries}) exceeded for {func_name}. "
                        f"Last error: {type(e).__name__}: {e}"
                    )
                    with self._lock:
                        self._total_retries += attempt
                        self._total_failures += 1
                    raise

                delay = self._calculate_delay(attempt)
                logger.info(
                    f"Retrying {func_name} in {delay:.3f}s "
                    f"(attempt {attempt + 1}/{self.max_retries + 1}). "
                    f"Error: {type(e).__name__}: {e}"
                )
                self._sleep(delay)

    def get_retry_statistics(self) -> dict:
        """
        Get retry statistics.

        Returns:
            Dictionary with retry statistics
        """
        with self._lock:
            return {
                "total_calls": self._total_calls,
                "total_retries": self._total_retries,
                "total_failures": self._total_failures,
            }

    def reset_statistics(self):
        """Reset retry statistics."""
        with self._lock:
            self._total_calls = 0
            self._total_retries = 0
            self._total_failures = 0
