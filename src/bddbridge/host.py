"""The execution context shared by step bodies and hooks of one run."""

import asyncio
import functools
import inspect
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Awaitable, Callable, Optional, TypeVar

__all__ = ["HostLoop"]

T = TypeVar("T")


class HostLoop:
    """
    Binds the behave thread to the event loop the run is awaited on.

    Entry: code running on the engine thread calls `complete()` with a coroutine and
    blocks until the coroutine has resolved on the loop.

    Blocking callables are executed with `run_blocking()` on a single dedicated thread,
    so blocking browser commands issued by step bodies and hooks always run on the same
    thread and in the order they were issued.

    Exit: `close()` stops the blocking thread once the run is over.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self.loop = loop
        self.executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="bddbridge-blocking")
        self.closed = False

    def complete(self, coro: Awaitable[T]) -> T:
        """Runs a coroutine on the loop from a foreign thread and waits for its outcome.

        Raises:
            RuntimeError: If called from the loop's own thread or after `close()`.
        """
        try:
            running: Optional[asyncio.AbstractEventLoop] = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is self.loop:
            _discard(coro)
            raise RuntimeError("HostLoop.complete() cannot block the event loop it submits to.")

        if self.closed:
            _discard(coro)
            raise RuntimeError("HostLoop is closed.")

        return asyncio.run_coroutine_threadsafe(coro, self.loop).result()

    async def run_blocking(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Runs a blocking callable on the dedicated thread, awaiting a returned awaitable."""
        result = await self.loop.run_in_executor(self.executor, functools.partial(func, *args, **kwargs))
        if inspect.isawaitable(result):
            result = await result
        return result

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        # Expired blocking attempts may still be running; they are not waited for.
        self.executor.shutdown(wait=False)


def _discard(coro: Awaitable[Any]) -> None:
    if inspect.iscoroutine(coro):
        coro.close()
