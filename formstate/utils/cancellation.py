import asyncio
import logging
from typing import Callable, List

logger = logging.getLogger(__name__)


class CancellationToken:
    """Token for cancelling in-flight validations and submissions."""

    def __init__(self):
        self.cancelled = False
        self._callbacks: List[Callable[[], None]] = []

    def cancel(self):
        """Cancel the operation and run the registered callbacks once."""
        if self.cancelled:
            return
        self.cancelled = True
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.error("Error in cancellation callback: %s", e)

    def add_callback(self, callback: Callable[[], None]):
        """Register a callback; it runs immediately if already cancelled."""
        if self.cancelled:
            callback()
        else:
            self._callbacks.append(callback)

    def link(self, task: asyncio.Future):
        """Cancel ``task`` when this token is cancelled."""
        self.add_callback(lambda: task.done() or task.cancel())
        return task

    def raise_if_cancelled(self):
        if self.cancelled:
            raise asyncio.CancelledError()

    @property
    def is_cancelled(self):
        """Check if the operation has been cancelled."""
        return self.cancelled
