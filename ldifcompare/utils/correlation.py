"""
Correlation ID Utility for LDIF Compare

Every comparison run gets a correlation ID that is attached to all log
records of the run, including those emitted from worker threads.
"""

import contextvars
import logging
import uuid
from typing import Optional

logger = logging.getLogger(__name__)

# Context variable for correlation ID
_correlation_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    'correlation_id',
    default=None
)


def generate_correlation_id() -> str:
    """
    Generate a new correlation ID using UUID4.

    Returns:
        String representation of a UUID4
    """
    correlation_id = str(uuid.uuid4())
    logger.debug(f"Generated correlation ID: {correlation_id}")
    return correlation_id


def get_correlation_id() -> Optional[str]:
    """
    Get the current correlation ID from context.

    Returns:
        Current correlation ID or None if not set
    """
    return _correlation_id.get()


def set_correlation_id(correlation_id: str) -> None:
    """
    Set the correlation ID in the current context.

    Args:
        correlation_id: Correlation ID to set

    Raises:
        ValueError: If correlation_id is empty or invalid
    """
    if not correlation_id or not isinstance(correlation_id, str):
        raise ValueError("Correlation ID must be a non-empty string")

    _correlation_id.set(correlation_id)
    logger.debug(f"Set correlation ID: {correlation_id}")


def get_or_create_correlation_id() -> str:
    """
    Get the current correlation ID or create a new one if not set.

    Returns:
        Current or newly created correlation ID
    """
    correlation_id = get_correlation_id()

    if not correlation_id:
        correlation_id = generate_correlation_id()
        set_correlation_id(correlation_id)

    return correlation_id


def clear_correlation_id() -> None:
    """Clear the correlation ID from context."""
    _correlation_id.set(None)


class CorrelationContext:
    """
    Context manager for correlation ID management.

    Sets a correlation ID for the duration of the block and restores the
    previous one on exit.
    """

    def __init__(self, correlation_id: Optional[str] = None):
        """
        Args:
            correlation_id: Correlation ID to use; generated if not provided
        """
        self.correlation_id = correlation_id
        self._token = None

    def __enter__(self) -> str:
        if not self.correlation_id:
            self.correlation_id = generate_correlation_id()
        self._token = _correlation_id.set(self.correlation_id)
        logger.debug(f"Entered correlation context: {self.correlation_id}")
        return self.correlation_id

    def __exit__(self, exc_type, exc_val, exc_tb):
        _correlation_id.reset(self._token)
        logger.debug(f"Left correlation context: {self.correlation_id}")


def correlation_id_filter(record):
    """
    Logging filter to add correlation ID to log records.

    Args:
        record: Log record to augment

    Returns:
        True (always allow record)
    """
    record.correlation_id = get_correlation_id() or "N/A"
    return True


def setup_correlation_logging(handler: logging.Handler) -> None:
    """
    Configure a handler to include correlation IDs in its records.

    Args:
        handler: Handler to configure
    """
    handler.addFilter(correlation_id_filter)
