import asyncio
import inspect
from typing import Any, Callable, Dict, List, Tuple

import pytest
from behave.async_step import AsyncStepFunction
from behave.step_registry import StepRegistry

from bddbridge.bridge_behave.registry import StepDefinitionRegistry
from bddbridge.host import HostLoop
from bddbridge.scheduler import ExecutionMode, StepScheduler

# --- Helper Classes ---


class RecordingFactory:
    """A step-definition factory recording its calls and returning a plain forwarding function."""

    def __init__(self):
        self.calls: List[Tuple[str, Dict[str, Any], Callable[..., Any], str, int]] = []
        self.created: List[Callable[..., Any]] = []

    def __call__(self, pattern, options, func, uri, line):
        self.calls.append((pattern, dict(options), func, uri, line))

        def step_function(context, *args, **kwargs):
            return func(context, *args, **kwargs)

        self.created.append(step_function)
        return step_function


def step_body(context):
    pass


# --- Fixtures ---


@pytest.fixture
def factory() -> RecordingFactory:
    return RecordingFactory()


# --- TESTS ---


class TestStepDefinitionRegistry:
    def test_definitions_pass_through_the_factory(self, factory: RecordingFactory):
        registry = StepDefinitionRegistry(factory)

        registry.add_step_definition("given", "I have {count:d} items", step_body, retry=2)

        assert factory.calls == [
            (
                "I have {count:d} items",
                {"retry": 2},
                step_body,
                step_body.__code__.co_filename,
                step_body.__code__.co_firstlineno,
            )
        ]
        assert registry.steps["given"][0].func is factory.created[0], "behave must call the factory's result"

    def test_without_factory_the_body_is_registered(self):
        registry = StepDefinitionRegistry()

        registry.add_step_definition("then", "it works", step_body)

        assert registry.steps["then"][0].func is step_body

    def test_decorators_accept_options(self, factory: RecordingFactory):
        registry = StepDefinitionRegistry(factory)
        when = registry.make_decorator("when")

        @when("I click {element}", retry=1, timeout=500)
        def click(context, element):
            pass

        assert factory.calls[0][:3] == ("I click {element}", {"retry": 1, "timeout": 500}, click)
        assert click.__name__ == "click", "The decorator must return the original function"

    def test_setup_step_decorators(self, factory: RecordingFactory):
        registry = StepDefinitionRegistry(factory)
        run_context: Dict[str, Any] = {}

        registry.setup_step_decorators(run_context)

        assert set(run_context) == {"given", "when", "then", "step", "Given", "When", "Then", "Step"}

        run_context["Then"]("a title")(step_body)
        assert factory.calls[0][0] == "a title"
        assert len(registry.steps["then"]) == 1

    def test_adopt_drains_the_other_registry(self, factory: RecordingFactory):
        other = StepRegistry()
        other.add_step_definition("when", "I adopt {thing}", step_body)
        registry = StepDefinitionRegistry(factory)

        adopted = registry.adopt(other)

        assert adopted == 1
        assert other.steps["when"] == [], "The adopted definitions must leave the other registry"
        assert len(registry.steps["when"]) == 1
        assert registry.steps["when"][0].func is factory.created[0]
        assert factory.calls[0][:3] == ("I adopt {thing}", {}, step_body)

    def test_adopt_empty_registry(self, factory: RecordingFactory):
        assert StepDefinitionRegistry(factory).adopt(StepRegistry()) == 0
        assert factory.calls == []

    def test_adopted_async_steps_are_coroutine_functions(self, factory: RecordingFactory):
        other = StepRegistry()

        @other.make_decorator("when")("I wait for {thing}")
        async def wait_for(context, thing):
            pass

        assert isinstance(other.steps["when"][0].func, AsyncStepFunction), "behave wraps coroutine steps"

        StepDefinitionRegistry(factory).adopt(other)

        body = factory.calls[0][2]
        assert inspect.iscoroutinefunction(body), "The factory must get the coroutine function itself"
        assert factory.calls[0][3:] == (body.__code__.co_filename, body.__code__.co_firstlineno)

    def test_behave_wrapped_async_steps_are_scheduled_explicit(self):
        async def body(context):
            pass

        loop = asyncio.new_event_loop()
        host = HostLoop(loop)
        try:
            registry = StepDefinitionRegistry(StepScheduler(host).make_step_definition)
            registry.add_step_definition("when", "I wait", AsyncStepFunction(body))

            step_definition = registry.steps["when"][0].func
        finally:
            host.close()
            loop.close()

        assert step_definition.mode is ExecutionMode.EXPLICIT
        assert step_definition.body is body
