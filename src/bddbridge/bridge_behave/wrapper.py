import functools
import inspect
import logging
import typing
from typing import Any, Callable, Optional

from ..types import HookArgs, Hooks

__all__ = ["BrowserWrapper", "wrap_commands"]

logger = logging.getLogger(__name__)

T = typing.TypeVar("T")


class ModelWrapper(typing.Generic[T]):
    """Base class providing delegation via __getattr__."""

    wrapped: T

    def __init__(self, wrapped: T):
        self.wrapped = wrapped

    def __getattr__(self, name: str):
        """Delegates all other calls to the wrapped object."""
        return getattr(self.wrapped, name)

    def get_wrapped(self) -> T:
        return self.wrapped


class BrowserWrapper(ModelWrapper[T]):
    """
    Wrapper for the browser-automation session handed to step definitions.
    Every public method call is a browser command: `before_command` hooks run with
    (name, args) before it, `after_command` hooks run with (name, args, result, error)
    after it. Commands returning an awaitable get their after hooks once awaited.
    """

    def __init__(
        self,
        wrapped: T,
        before_command: Hooks = (),
        after_command: Hooks = (),
        guard: Optional[Callable[[], None]] = None,
    ):
        super().__init__(wrapped)
        self.before_command = before_command
        self.after_command = after_command
        self.guard = guard

    def __getattr__(self, name: str):
        attr = getattr(self.wrapped, name)
        if name.startswith("_") or not callable(attr):
            return attr
        return self.wrap_command(name, attr)

    def wrap_command(self, name: str, command: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(command)
        def run_command(*args, **kwargs):
            if self.guard is not None:
                self.guard()

            run_command_hooks(self.before_command, "before_command", [name, args])
            try:
                result = command(*args, **kwargs)
            except Exception as e:
                run_command_hooks(self.after_command, "after_command", [name, args, None, e])
                raise

            if inspect.isawaitable(result):
                return self.complete_command(name, args, result)

            run_command_hooks(self.after_command, "after_command", [name, args, result, None])
            return result

        return run_command

    async def complete_command(self, name: str, args: HookArgs, awaitable: typing.Awaitable[Any]) -> Any:
        try:
            result = await awaitable
        except Exception as e:
            run_command_hooks(self.after_command, "after_command", [name, args, None, e])
            raise

        run_command_hooks(self.after_command, "after_command", [name, args, result, None])
        return result


def run_command_hooks(hooks: Hooks, event: str, args: HookArgs) -> None:
    """Calls command hooks inline. Failures are logged and swallowed."""
    for hook in hooks:
        try:
            result = hook(*args)
        except Exception as e:
            logger.error("%s has thrown an error: %s", event, e)
            continue

        if inspect.iscoroutine(result):
            # Command hooks run inside the command call and cannot be awaited there.
            result.close()
            logger.error("%s hook %r must not be a coroutine function", event, hook)


def wrap_commands(
    browser: T,
    before_command: Hooks = (),
    after_command: Hooks = (),
    guard: Optional[Callable[[], None]] = None,
) -> BrowserWrapper[T]:
    """Wraps a browser session so the command hooks see every command it runs."""
    if isinstance(browser, BrowserWrapper):
        browser = browser.get_wrapped()
    return BrowserWrapper(browser, before_command, after_command, guard)
