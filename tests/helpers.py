class FakeHandle:
    def __init__(self, due: float, callback):
        self.due = due
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True


class FakeTimer:
    """Deterministic timer: callbacks run only when the test advances time."""

    def __init__(self):
        self.now = 0
        self.handles = []

    def call_later(self, delay_ms, callback):
        handle = FakeHandle(self.now + delay_ms, callback)
        self.handles.append(handle)
        return handle

    @property
    def pending(self):
        return [handle for handle in self.handles if not handle.cancelled and not handle.fired]

    def advance(self, ms):
        target = self.now + ms
        while True:
            due = sorted((h for h in self.pending if h.due <= target), key=lambda h: h.due)
            if not due:
                break
            handle = due[0]
            self.now = handle.due
            handle.fired = True
            handle.callback()
        self.now = target
