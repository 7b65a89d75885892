"""
Exceptions for LDIF Compare

Recoverability is decided by the type:
- RecordParseError: one record is skipped, the stream continues
- StreamIOError: the owning ingestion task fails
- SinkIOError: the owning report task fails
- ConfigurationError: the run is aborted before any task is scheduled
"""

from typing import Optional


class LdifCompareError(Exception):
    """Base class for all errors raised by ldifcompare."""
    pass


class RecordParseError(LdifCompareError):
    """A single LDIF record could not be parsed."""

    def __init__(self, message: str, line_number: Optional[int] = None):
        self.line_number = line_number
        if line_number is not None:
            message = f"{message} (line {line_number})"
        super().__init__(message)


class StreamIOError(LdifCompareError):
    """Reading an input snapshot failed."""
    pass


class SinkIOError(LdifCompareError):
    """Writing an output artifact failed."""
    pass


class ConfigurationError(LdifCompareError):
    """The run configuration is invalid."""
    pass
