"""User hooks: registry, execution and the lifecycle event bridge."""

import inspect
import logging
from dataclasses import dataclass, fields
from typing import Any, List, Optional

from .exceptions import HookFailure
from .host import HostLoop
from .types import HookArgs, HookFunction, Hooks, RunConfig

__all__ = ["HookRegistry", "HookEventBridge", "execute_hooks_with_args"]

logger = logging.getLogger(__name__)


def normalize_hooks(value: Any) -> Hooks:
    """Turns a configured hook value (None, a callable or a sequence of callables) into a tuple."""
    if value is None:
        return ()
    if callable(value):
        return (value,)

    hooks = tuple(value)
    for hook in hooks:
        if not callable(hook):
            raise TypeError(f"Hook {hook!r} is not callable")
    return hooks


@dataclass(frozen=True)
class HookRegistry:
    """Ordered user hooks per event. Built once per run, read-only afterwards."""

    before_feature: Hooks = ()
    before_scenario: Hooks = ()
    before_step: Hooks = ()
    after_step: Hooks = ()
    after_scenario: Hooks = ()
    after_feature: Hooks = ()

    before: Hooks = ()
    """Suite hooks, called with (capabilities, specs)."""

    after: Hooks = ()
    """Suite hooks, called with (result, capabilities, specs)."""

    before_command: Hooks = ()
    after_command: Hooks = ()

    @classmethod
    def from_config(cls, config: RunConfig) -> "HookRegistry":
        return cls(**{field.name: normalize_hooks(config.get(field.name)) for field in fields(cls)})

    def for_event(self, event: str) -> Hooks:
        return getattr(self, event)


async def execute_hooks_with_args(
    hooks: Hooks, args: HookArgs, event: str, host: Optional[HostLoop] = None
) -> List[Any]:
    """Runs hooks one after another with the same arguments.

    Coroutine functions are awaited on the loop. Plain callables run on the host's
    blocking thread when a host is given, otherwise inline. A failing hook is logged
    and recorded, and the remaining hooks still run.

    Args:
        hooks (Hooks): Hooks in registration order.
        args (HookArgs): Positional arguments passed to every hook.
        event (str): Event name used in log messages.
        host (Optional[HostLoop]): Execution context for blocking hooks.

    Returns:
        List[Any]: One entry per hook, the hook's return value or a HookFailure.
    """
    results: List[Any] = []

    for hook in hooks:
        try:
            results.append(await _call_hook(hook, args, host))
        except Exception as e:
            failure = HookFailure(event, e)
            logger.error("%s", failure)
            results.append(failure)

    return results


async def _call_hook(hook: HookFunction, args: HookArgs, host: Optional[HostLoop]) -> Any:
    if inspect.iscoroutinefunction(hook):
        return await hook(*args)

    if host is not None:
        return await host.run_blocking(hook, *args)

    result = hook(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


class HookEventBridge:
    """
    Lifecycle listener forwarding behave events to the user hooks of a HookRegistry.

    Each handler blocks the engine thread until every hook for the event has
    finished, so the next lifecycle phase never starts early. Hook errors are
    logged and never reach behave.
    """

    def __init__(self, hooks: HookRegistry, host: HostLoop):
        self.hooks = hooks
        self.host = host

    def before_feature(self, feature):
        self.run_hooks("before_feature", feature)

    def after_feature(self, feature):
        self.run_hooks("after_feature", feature)

    def before_scenario(self, scenario):
        self.run_hooks("before_scenario", scenario)

    def after_scenario(self, scenario):
        self.run_hooks("after_scenario", scenario)

    def before_step(self, step):
        self.run_hooks("before_step", step)

    def after_step(self, step):
        """Called with the executed step, which carries the step result."""
        self.run_hooks("after_step", step)

    def run_hooks(self, event: str, payload: Any) -> None:
        hooks = self.hooks.for_event(event)
        if not hooks:
            return

        try:
            self.host.complete(execute_hooks_with_args(hooks, [payload], event, self.host))
        except Exception as e:
            logger.error("%s has thrown an error: %s", event, e)
