import asyncio
import inspect
from typing import Any, Callable, Dict, Optional, Tuple


async def maybe_await(value: Any) -> Any:
    """Awaits ``value`` when it is awaitable, otherwise returns it unchanged."""
    if inspect.isawaitable(value):
        return await value
    return value


class AsyncTask:
    """
    Small helpers for running sync-or-async callables as asyncio tasks.
    """

    @staticmethod
    def run(
            func: Callable,
            args: Tuple = (),
            kwargs: Dict = None,
            on_success: Optional[Callable] = None,
            on_error: Optional[Callable] = None,
            on_complete: Optional[Callable] = None,
    ) -> asyncio.Task:
        """
        Run ``func`` (sync or async) in a task with callbacks for success, error and completion.

        Args:
            func: The function to run; its result is awaited when awaitable
            args: Positional arguments to pass to the function
            kwargs: Keyword arguments to pass to the function
            on_success: Callback function that receives the result when successful
            on_error: Callback function that receives the exception when failed
            on_complete: Callback function called regardless of success/failure

        Returns:
            The created asyncio.Task object
        """
        if kwargs is None:
            kwargs = {}

        async def _wrapped_coroutine():
            try:
                result = await maybe_await(func(*args, **kwargs))

                if isinstance(result, Exception):
                    raise result

                if on_success is not None:
                    on_success(result)

                return result
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if on_error is not None:
                    on_error(e)
                return None
            finally:
                if on_complete is not None:
                    on_complete()

        return asyncio.ensure_future(_wrapped_coroutine())

    @staticmethod
    def cancel_task(task: Optional[asyncio.Future]) -> bool:
        """
        Cancel a running task.

        Returns:
            True if task was pending and is now cancelled, False otherwise
        """
        if task is None or task.done():
            return False
        task.cancel()
        return True


run_async = AsyncTask.run
cancel_async = AsyncTask.cancel_task
