from .async_task import AsyncTask, run_async, cancel_async, maybe_await
from .cancellation import CancellationToken
from .debounce import AsyncioTimer, Debounced, debounce
