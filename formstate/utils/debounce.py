import asyncio
import inspect
import logging
from typing import Any, Callable, Optional, Union

from formstate.exceptions import global_error_handler

logger = logging.getLogger(__name__)


class AsyncioTimer:
    """
    Timer service backed by the running asyncio loop.

    ``call_later`` returns a handle exposing ``cancel()``.
    """

    def call_later(self, delay_ms: Union[int, float], callback: Callable[[], None]):
        async def delayed():
            await asyncio.sleep(delay_ms / 1000)  # Convert ms to seconds
            callback()

        return asyncio.ensure_future(delayed())


_default_timer = AsyncioTimer()


class Debounced:
    """
    Call-coalescing wrapper around ``fn``.

    With ``delay_ms`` of None every call is forwarded synchronously.
    Otherwise each call (re)schedules ``fn`` after ``delay_ms``, cancelling
    the previous pending call; only the latest arguments are delivered and
    ``fn`` is read at fire time, so swapping it never loses a call.
    """

    def __init__(self, fn: Callable, delay_ms: Optional[Union[int, float]], timer=None,
                 error_handler: Callable = None):
        if delay_ms is not None and delay_ms < 0:
            raise ValueError("delay_ms must be None or a non-negative number")
        self.fn = fn
        self.delay_ms = delay_ms
        self._timer = timer or _default_timer
        self._error_handler = error_handler or global_error_handler
        self._pending = None

    def __call__(self, *args, **kwargs) -> Any:
        if self.delay_ms is None:
            return self.fn(*args, **kwargs)

        self.cancel()
        logger.debug("Debounced call scheduled in %sms", self.delay_ms)
        self._pending = self._timer.call_later(self.delay_ms, lambda: self._fire(args, kwargs))
        return None

    def _fire(self, args, kwargs) -> None:
        self._pending = None
        try:
            result = self.fn(*args, **kwargs)
            if inspect.isawaitable(result):
                asyncio.ensure_future(result).add_done_callback(self._collect)
        except Exception as e:
            self._error_handler(e, "Error in debounced call")

    def _collect(self, task: asyncio.Future) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self._error_handler(error, "Error in debounced call")

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def cancel(self) -> bool:
        """Cancels the pending call, if any."""
        if self._pending is None:
            return False
        self._pending.cancel()
        self._pending = None
        return True

    dispose = cancel


def debounce(fn: Callable, delay_ms: Optional[Union[int, float]], previous: Optional[Debounced] = None,
             timer=None, error_handler: Callable = None) -> Debounced:
    """
    Returns a debounced ``fn``.

    When ``previous`` was created with the same ``delay_ms`` it is reused
    (with ``fn`` swapped in) so its identity stays stable for subscribers;
    otherwise ``previous`` is cancelled and a new callable is created.
    """
    if previous is not None:
        if previous.delay_ms == delay_ms:
            previous.fn = fn
            return previous
        previous.cancel()
    return Debounced(fn, delay_ms, timer=timer, error_handler=error_handler)
