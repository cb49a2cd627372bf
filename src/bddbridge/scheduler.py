"""Turns step bodies into retryable, timeout-bound units of work."""

import asyncio
import functools
import inspect
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Set, Tuple

from .constants import DEFAULT_TIMEOUT
from .exceptions import StepCancelled, StepTimeout
from .host import HostLoop
from .retry import RetryPolicy, RetryState, parse_retry

__all__ = ["ExecutionMode", "StepOptions", "StepDefinition", "StepScheduler", "step_options", "get_step_options"]

logger = logging.getLogger(__name__)

STEP_OPTIONS_ATTR = "step_options"


class ExecutionMode(Enum):
    """How a step body completes."""

    BLOCKING = "blocking"
    """Plain function, executed on the host's blocking thread."""

    EXPLICIT = "explicit"
    """Coroutine function (or a function returning an awaitable), awaited on the loop."""

    def __str__(self):
        return self.name


@dataclass(frozen=True)
class StepOptions:
    retry: int = 0
    timeout: Optional[int] = None
    mode: Optional[ExecutionMode] = None

    @classmethod
    def parse(cls, options: Optional[Mapping[str, Any]] = None) -> "StepOptions":
        """Builds step options from a declared options mapping.

        Args:
            options (Optional[Mapping[str, Any]]): Declared options, e.g. ``{"retry": 2, "mode": "explicit"}``.

        Returns:
            StepOptions: Parsed options. Unknown keys are ignored.
        """
        options = options or {}

        mode = options.get("mode")
        if mode is not None and not isinstance(mode, ExecutionMode):
            mode = ExecutionMode(str(mode).lower())

        timeout = options.get("timeout")
        if timeout is not None:
            timeout = int(timeout)

        return cls(retry=parse_retry(options.get("retry")), timeout=timeout, mode=mode)


def step_options(**options: Any) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Attaches step options to a step function.

    Works below behave's own decorators, which take no options::

        @when("I submit the form")
        @step_options(retry=2, timeout=5000)
        def step_impl(context):
            ...
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        merged = dict(getattr(func, STEP_OPTIONS_ATTR, {}))
        merged.update(options)
        setattr(func, STEP_OPTIONS_ATTR, merged)
        return func

    return decorator


def get_step_options(func: Callable[..., Any], options: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    """Merges options attached with `step_options()` and options given at registration (which win)."""
    merged = dict(getattr(func, STEP_OPTIONS_ATTR, {}))
    merged.update(options or {})
    return merged


@dataclass
class Attempt:
    pattern: str
    number: int
    cancelled: bool = False


class StepDefinition:
    """
    A registered step: pattern, options, body and source location.

    Instances are called by behave exactly like the body. Location and signature
    are those of the body, so behave reports and argument injection are unaffected.
    """

    def __init__(
        self,
        scheduler: "StepScheduler",
        pattern: str,
        options: StepOptions,
        body: Callable[..., Any],
        uri: str,
        line: int,
        mode: ExecutionMode,
    ):
        functools.update_wrapper(self, body)
        code = getattr(body, "__code__", None)
        if code is not None:
            # behave derives step locations from __code__. The wrapper itself is never a coroutine function.
            self.__code__ = code.replace(co_flags=code.co_flags & ~inspect.CO_COROUTINE)

        self.scheduler = scheduler
        self.pattern = pattern
        self.options = options
        self.body = body
        self.uri = uri
        self.line = line
        self.mode = mode

    @property
    def location(self) -> str:
        return f"{self.uri}:{self.line}"

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        self.scheduler.host.complete(self.execute(args, kwargs))

    async def execute(self, args: Tuple[Any, ...], kwargs: Dict[str, Any]) -> None:
        await self.scheduler.execute(self, args, kwargs)

    def __repr__(self) -> str:
        return f"<StepDefinition {self.pattern!r} {self.mode} retry={self.options.retry} at {self.location}>"


class StepScheduler:
    """
    Wraps step bodies for one run.

    Every invocation of a wrapped step gets a fresh RetryState. Attempts run strictly
    one after another, each bound by the step timeout (milliseconds). A failed or
    expired attempt is retried immediately with the same arguments while the retry
    budget lasts; the last error is raised to behave as the step's outcome.
    """

    def __init__(
        self, host: HostLoop, timeout: Optional[int] = DEFAULT_TIMEOUT, sync: bool = True, backtrace: bool = False
    ):
        self.host = host
        self.default_timeout = timeout
        self.sync = sync
        self.backtrace = backtrace
        self.running_attempt: Optional[Attempt] = None
        self.blocking_thread: Optional[int] = None
        self.expired_attempts: Set["asyncio.Future[Any]"] = set()

    def set_default_timeout(self, timeout: Optional[int]) -> None:
        self.default_timeout = timeout

    def classify(self, body: Callable[..., Any], options: StepOptions) -> ExecutionMode:
        if not self.sync:
            return ExecutionMode.EXPLICIT
        if options.mode is not None:
            return options.mode
        return ExecutionMode.EXPLICIT if inspect.iscoroutinefunction(body) else ExecutionMode.BLOCKING

    def make_step_definition(
        self, pattern: str, options: Optional[Mapping[str, Any]], body: Callable[..., Any], uri: str, line: int
    ) -> StepDefinition:
        """Step-definition factory handed to the engine."""
        parsed = StepOptions.parse(get_step_options(body, options))
        return StepDefinition(self, pattern, parsed, body, uri, line, self.classify(body, parsed))

    def wrap(
        self,
        body: Callable[..., Any],
        retry: int = 0,
        pattern: Optional[str] = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> StepDefinition:
        merged = {"retry": retry}
        merged.update(options or {})
        code = getattr(body, "__code__", None)
        uri = code.co_filename if code is not None else "<unknown>"
        line = code.co_firstlineno if code is not None else 0
        return self.make_step_definition(pattern or getattr(body, "__name__", repr(body)), merged, body, uri, line)

    def timeout_for(self, definition: StepDefinition) -> Optional[int]:
        timeout = definition.options.timeout if definition.options.timeout is not None else self.default_timeout
        if timeout is None or timeout <= 0:
            return None
        return timeout

    async def execute(self, definition: StepDefinition, args: Tuple[Any, ...], kwargs: Dict[str, Any]) -> None:
        state = RetryState(max_retries=definition.options.retry)

        while True:
            try:
                await self.run_attempt(definition, state.attempts_made + 1, args, kwargs)
                return
            except Exception as error:
                if not RetryPolicy.should_retry(state):
                    raise

                state.attempts_made += 1
                logger.warning(
                    "Step %r failed on attempt %d of %d, retrying: %s",
                    definition.pattern,
                    state.attempts_made,
                    state.max_retries + 1,
                    error,
                    exc_info=error if self.backtrace else None,
                )

    async def run_attempt(
        self, definition: StepDefinition, number: int, args: Tuple[Any, ...], kwargs: Dict[str, Any]
    ) -> None:
        attempt = Attempt(definition.pattern, number)
        timeout = self.timeout_for(definition)

        if definition.mode is ExecutionMode.EXPLICIT:
            task = asyncio.ensure_future(self.call_explicit(definition.body, args, kwargs))
        else:
            await self.wait_for_expired_attempts()
            task = asyncio.ensure_future(
                self.host.run_blocking(self.call_blocking, attempt, definition.body, args, kwargs)
            )

        done, _ = await asyncio.wait({task}, timeout=None if timeout is None else timeout / 1000)
        if not done:
            attempt.cancelled = True
            task.add_done_callback(_consume_result)
            if definition.mode is ExecutionMode.EXPLICIT:
                task.cancel()
            else:
                # The body keeps the blocking thread until it returns.
                self.expired_attempts.add(task)
            raise StepTimeout(definition.pattern, timeout)

        task.result()

    async def wait_for_expired_attempts(self) -> None:
        """Waits until expired blocking bodies have released the blocking thread.

        The timeout of a blocking attempt only starts once the blocking thread is free.
        """
        if not self.expired_attempts:
            return

        logger.debug("Waiting for %d expired blocking attempt(s) to return", len(self.expired_attempts))
        await asyncio.wait(self.expired_attempts)
        self.expired_attempts.clear()

    @staticmethod
    async def call_explicit(body: Callable[..., Any], args: Tuple[Any, ...], kwargs: Dict[str, Any]) -> None:
        result = body(*args, **kwargs)
        if inspect.isawaitable(result):
            await result

    def call_blocking(
        self, attempt: Attempt, body: Callable[..., Any], args: Tuple[Any, ...], kwargs: Dict[str, Any]
    ) -> Any:
        # Runs on the host's blocking thread.
        self.blocking_thread = threading.get_ident()
        self.running_attempt = attempt
        try:
            return body(*args, **kwargs)
        finally:
            self.running_attempt = None

    def guard(self) -> None:
        """Refuses browser commands issued by a blocking attempt that already timed out.

        Raises:
            StepCancelled: If the calling attempt has expired.
        """
        attempt = self.running_attempt
        if attempt is None or not attempt.cancelled:
            return
        if threading.get_ident() == self.blocking_thread:
            raise StepCancelled(f"Step {attempt.pattern!r} attempt {attempt.number} timed out and was cancelled")


def _consume_result(task: "asyncio.Future[Any]") -> None:
    if not task.cancelled():
        task.exception()
