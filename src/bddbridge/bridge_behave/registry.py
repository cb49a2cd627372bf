"""Per-run step registry routing every step definition through a step-definition factory."""

import logging
from typing import Any, Callable, Dict, Optional

from behave.async_step import AsyncStepFunction
from behave.step_registry import StepRegistry

from ..constants import STEP_TYPES
from ..types import StepFactory, override

__all__ = ["StepDefinitionRegistry"]

logger = logging.getLogger(__name__)


def get_step_body(func: Callable[..., Any]) -> Callable[..., Any]:
    """Returns the coroutine function behind behave's async-step adapter, else the function itself."""
    if isinstance(func, AsyncStepFunction):
        return func.coro_func
    return func


class StepDefinitionRegistry(StepRegistry):
    """
    A behave StepRegistry owned by a single run.

    Its decorators accept step options as keywords (``@given("text", retry=2)``). Every
    registered function is handed to the step factory, together with its pattern,
    options and source location, and the factory's result is what behave matches and
    calls. Without a factory the registry behaves like behave's own.
    """

    def __init__(self, step_factory: Optional[StepFactory] = None):
        super().__init__()
        self.step_factory = step_factory

    def make_step_function(
        self, step_text: str, options: Dict[str, Any], func: Callable[..., Any]
    ) -> Callable[..., Any]:
        if self.step_factory is None:
            return func

        # The scheduler awaits coroutine steps on the run's loop, not on behave's own.
        func = get_step_body(func)
        code = getattr(func, "__code__", None)
        uri = code.co_filename if code is not None else "<unknown>"
        line = code.co_firstlineno if code is not None else 0
        return self.step_factory(step_text, options, func, uri, line)

    @override
    def add_step_definition(self, keyword, step_text, func, **options):
        step_function = self.make_step_function(step_text, options, func)
        super().add_step_definition(keyword, step_text, step_function)

    @override
    def make_decorator(self, step_type):
        def decorator(step_text, **options):
            def wrapper(func):
                self.add_step_definition(step_type, step_text, func, **options)
                return func

            return wrapper

        return decorator

    def setup_step_decorators(self, run_context: Dict[str, Any]) -> None:
        """Injects given/when/then/step (and the title-case aliases) bound to this registry."""
        for step_type in STEP_TYPES:
            step_decorator = self.make_decorator(step_type)
            run_context[step_type.title()] = run_context[step_type] = step_decorator

    def adopt(self, other: StepRegistry) -> int:
        """Moves the step definitions of another registry into this one.

        Step modules that import behave's module-level decorators register into behave's
        global registry. The run takes those definitions over and leaves the global
        registry empty for the next run.

        Args:
            other (StepRegistry): Registry to drain.

        Returns:
            int: Number of adopted step definitions.
        """
        adopted = 0
        for step_type, matchers in other.steps.items():
            for matcher in list(matchers):
                step_function = self.make_step_function(matcher.pattern, {}, matcher.func)
                try:
                    matcher.func = step_function
                except AttributeError:
                    # Read-only matcher, register a fresh one with the run registry's matcher type.
                    self.add_step_definition(step_type, matcher.pattern, matcher.func)
                else:
                    self.steps.setdefault(step_type, []).append(matcher)
                adopted += 1
            del matchers[:]

        if adopted:
            logger.debug("Adopted %d step definitions from the global step registry", adopted)
        return adopted
