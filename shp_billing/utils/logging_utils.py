"""Structured logging utilities with context support."""

import functools
import logging
import threading
import uuid
from typing import Any, Callable, Dict, Optional

from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

# Thread-local storage for log context
_thread_local = threading.local()


def generate_correlation_id() -> str:
    """
    Generate a unique correlation ID for tracking an operation.

    Returns:
        UUID string to use as correlation ID
    """
    return str(uuid.uuid4())


def get_correlation_id() -> Optional[str]:
    """
    Get the current correlation ID from thread-local context.

    Returns:
        Current correlation ID or None if not set
    """
    context = getattr(_thread_local, "context", None)
    if context:
        return context.get("correlation_id")
    return None


def get_log_context() -> Dict[str, Any]:
    """Return a copy of the fields currently attached to log records."""
    return dict(getattr(_thread_local, "context", {}))


class LogContext:
    """
    Context manager for adding structured fields to log records.

    Fields are stored in thread-local storage, so worker threads running a
    bulk recalculation each carry their own client_id.

    Example:
        with LogContext(client_id="c-1", correlation_id=generate_correlation_id()):
            logger.info("Recalculating billing")
            # Log will include client_id and correlation_id fields
    """

    def __init__(self, **kwargs):
        """
        Initialize log context with custom fields.

        Args:
            **kwargs: Key-value pairs to add to log records
        """
        self.fields = kwargs
        self.previous_context: Optional[Dict[str, Any]] = None

    def __enter__(self):
        if not hasattr(_thread_local, "context"):
            _thread_local.context = {}

        self.previous_context = _thread_local.context.copy()
        _thread_local.context.update(self.fields)

        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.previous_context is not None:
            _thread_local.context = self.previous_context
        else:
            _thread_local.context = {}


class _ContextFilter(logging.Filter):
    """Logging filter that adds context fields to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        if hasattr(_thread_local, "context"):
            for key, value in _thread_local.context.items():
                setattr(record, key, value)
        return True


def redact_database_url(url: str) -> str:
    """
    Mask the password of a database URL so it can be logged.

    Args:
        url: SQLAlchemy database URL

    Returns:
        The URL with its password replaced by ``***``
    """
    try:
        return make_url(url).render_as_string(hide_password=True)
    except ArgumentError:
        return "***INVALID URL***"


def log_function_call(
    func: Optional[Callable] = None, *, include_args: bool = False, level: str = "DEBUG"
) -> Callable:
    """
    Decorator to log function entry and exit.

    Exceptions are logged with their traceback and re-raised unchanged.

    Args:
        func: Function to decorate (when used without arguments)
        include_args: Whether to include function arguments in logs
        level: Log level to use (DEBUG, INFO, WARNING, ERROR)

    Returns:
        Decorated function

    Example:
        @log_function_call(include_args=True, level="INFO")
        def recalculate(self, client_id):
            ...
    """

    def decorator(f: Callable) -> Callable:
        @functools.wraps(f)
        def wrapper(*args, **kwargs):
            logger = logging.getLogger(f.__module__)
            log_level = getattr(logging, level.upper())

            if include_args:
                args_repr = [repr(a) for a in args]
                kwargs_repr = [f"{k}={v!r}" for k, v in kwargs.items()]
                signature = ", ".join(args_repr + kwargs_repr)
                logger.log(log_level, f"Entering {f.__name__} with args: {signature}")
            else:
                logger.log(log_level, f"Entering {f.__name__}")

            try:
                result = f(*args, **kwargs)
                logger.log(log_level, f"Exiting {f.__name__}")
                return result

            except Exception as e:
                logger.error(
                    f"Exception in {f.__name__}: {type(e).__name__}: {e}",
                    exc_info=True,
                )
                raise

        return wrapper

    if func is None:
        return decorator
    else:
        return decorator(func)
