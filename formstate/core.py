from contextlib import contextmanager
from typing import Any, Callable, List, Optional

from formstate.exceptions import global_error_handler


_UNCHANGED = object()


def _identity(value: Any) -> Any:
    return value


def _same(a: Any, b: Any) -> bool:
    return a is b


class Subscription:
    __slots__ = ('selector', 'callback', 'equals', 'active')

    def __init__(self, selector: Callable[[Any], Any], callback: Callable[[Any, Any], None],
                 equals: Callable[[Any, Any], bool]):
        self.selector = selector
        self.callback = callback
        self.equals = equals
        self.active = True


class Signal:
    """
    Observable value holder.

    Writes are copy-on-write: ``set`` replaces the held value and listeners
    are notified when the selected slice changes. Slices are compared by
    identity unless a subscriber passes its own ``equals``.
    """
    __slots__ = ('_value', '_subscriptions', '_batch_depth', '_batch_start', '_disposed',
                 '_error_handler', '__weakref__')

    def __init__(self, initial_value: Any, error_handler: Callable = None):
        self._value = initial_value
        self._subscriptions: List[Subscription] = []
        self._batch_depth = 0
        self._batch_start = None
        self._disposed = False
        self._error_handler = error_handler or global_error_handler

    def __call__(self) -> Any:
        return self._value

    get = __call__

    def peek(self) -> Any:
        return self._value

    def set(self, new_value: Any) -> None:
        """Sets a new value, or applies ``new_value(previous)`` when given a callable."""
        if self._disposed:
            return
        if callable(new_value):
            new_value = new_value(self._value)
        if new_value is self._value:
            return

        old_value = self._value
        self._value = new_value

        if self._batch_depth:
            # Notify once, against the value held when the batch began
            return
        self._notify(old_value, new_value)

    def subscribe(self, selector: Optional[Callable[[Any], Any]], callback: Callable[[Any, Any], None],
                  equals: Callable[[Any, Any], bool] = None) -> Callable[[], None]:
        """
        Registers ``callback(new_slice, old_slice)``.
        Returns a function that removes the subscription.
        """
        subscription = Subscription(selector or _identity, callback, equals or _same)
        self._subscriptions.append(subscription)

        def unsubscribe() -> None:
            subscription.active = False
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

        return unsubscribe

    @contextmanager
    def batch(self):
        """Defers notifications until the outermost batch exits."""
        self._enter_batch()
        try:
            yield self
        finally:
            self._flush(self._exit_batch())

    def _enter_batch(self) -> None:
        if self._batch_depth == 0:
            self._batch_start = self._value
        self._batch_depth += 1

    def _exit_batch(self) -> Any:
        """Closes one batch level; returns the value held when the outermost batch began, else _UNCHANGED."""
        self._batch_depth -= 1
        if self._batch_depth:
            return _UNCHANGED
        old_value, self._batch_start = self._batch_start, None
        return old_value

    def _flush(self, old_value: Any) -> None:
        if old_value is not _UNCHANGED and old_value is not self._value:
            self._notify(old_value, self._value)

    def _notify(self, old_value: Any, new_value: Any) -> None:
        for subscription in list(self._subscriptions):
            if not subscription.active:
                continue
            try:
                old_slice = subscription.selector(old_value)
                new_slice = subscription.selector(new_value)
                if subscription.equals(old_slice, new_slice):
                    continue
                subscription.callback(new_slice, old_slice)
            except Exception as e:
                self._error_handler(e, "Error notifying subscriber")

    def dispose(self) -> None:
        self._disposed = True
        for subscription in self._subscriptions:
            subscription.active = False
        self._subscriptions.clear()

    @property
    def disposed(self) -> bool:
        return self._disposed


def create_signal(initial_value: Any, error_handler: Callable = None):
    signal = Signal(initial_value, error_handler=error_handler)
    return signal, signal.set


def batch_updates(fn: Callable[[], Any], *signals: Signal) -> Any:
    """Runs ``fn`` with notifications of every given signal deferred until it returns."""
    for signal in signals:
        signal._enter_batch()
    try:
        return fn()
    finally:
        # Close every batch before notifying, then notify in argument order
        pending = [(signal, signal._exit_batch()) for signal in signals]
        for signal, old_value in pending:
            signal._flush(old_value)
