import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)


def global_error_handler(error: Exception, description: str = None):
    """Default handler for errors raised inside subscribers, timers and tasks."""
    if description:
        logger.error("%s: %s: %s", description, error.__class__.__name__, error, exc_info=error)
    else:
        logger.error("%s: %s", error.__class__.__name__, error, exc_info=error)


class FormError(Exception):
    """Base exception for form-related errors."""
    pass


class DuplicateFieldError(FormError):
    """Raised when merging builders that declare the same field key."""
    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Field '{key}' is already defined.")


class FieldNotFoundError(FormError, KeyError):
    """Raised when a field path does not resolve to a declared field."""
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Field '{path}' not found.")

    def __str__(self):
        return self.args[0]


class InvalidIndexError(FormError, IndexError):
    """Raised when an array operation receives an out-of-range index."""
    def __init__(self, path: str, index: int, length: int):
        self.path = path
        self.index = index
        self.length = length
        super().__init__(f"Index {index} is out of range for '{path}' (length {length}).")


class SubmitError(FormError):
    """
    Typed failure of a submit operation.

    Submit operations raise (or return) this to report a failure the
    caller expects, e.g. a rejected save. ``error`` carries the payload.
    """
    def __init__(self, error: Any = None, message: Optional[str] = None):
        self.error = error
        super().__init__(message or str(error) if error is not None else message or "Submit failed")


class DefectError(FormError):
    """Unexpected exception raised by a validator or a submit operation."""
    def __init__(self, original_error: BaseException, phase: str = "unknown"):
        self.original_error = original_error
        self.phase = phase
        super().__init__(f"Unexpected error during {phase}: {original_error!r}")
