import logging

from formstate.core import Signal, batch_updates, create_signal
from formstate.exceptions import (
    DefectError,
    DuplicateFieldError,
    FieldNotFoundError,
    FormError,
    InvalidIndexError,
    SubmitError,
    global_error_handler,
)
from formstate.form import (
    EMPTY,
    ArrayFieldHandle,
    ErrorEntry,
    FieldHandle,
    Form,
    FormBuilder,
    FormState,
    SubmitResult,
    ValidationMode,
    make_array_field,
    make_field,
    make_form,
)
from formstate.schema import ParseError, decode, decode_either, decode_sync

__version__ = "0.1.0"


def configure_logging(level=logging.INFO, fmt: str = "%(asctime)s %(name)s %(levelname)s %(message)s"):
    """Attaches a stream handler to the ``formstate`` logger; the library itself configures none."""
    logger = logging.getLogger("formstate")
    if not any(getattr(handler, "_formstate", False) for handler in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt))
        handler._formstate = True
        logger.addHandler(handler)
    logger.setLevel(level)
    return logger
