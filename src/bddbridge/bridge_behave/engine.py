"""The behave engine as seen by a bddbridge run."""

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from behave.reporter.base import Reporter

from ..constants import LIFECYCLE_EVENTS
from ..exceptions import EngineStartupFailure
from ..types import StepFactory, TimeoutSetter
from ..utils import check_engine_version
from .configuration import Configuration
from .registry import StepDefinitionRegistry
from .runner import BridgeRunner

__all__ = ["EventSource", "BehaveEngine"]

logger = logging.getLogger(__name__)

EventHandler = Callable[[Any], Any]


class EventSource:
    """Lifecycle event subscriptions, one ordered handler list per event name."""

    def __init__(self):
        self.handlers: Dict[str, List[EventHandler]] = {event: [] for event in LIFECYCLE_EVENTS}

    def get_handlers(self, event: str) -> List[EventHandler]:
        try:
            return self.handlers[event]
        except KeyError:
            raise ValueError(f"Unknown lifecycle event: {event!r}") from None

    def subscribe(self, event: str, handler: EventHandler) -> None:
        self.get_handlers(event).append(handler)

    def unsubscribe(self, event: str, handler: EventHandler) -> None:
        handlers = self.get_handlers(event)
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, event: str, payload: Any) -> None:
        """Calls the handlers of an event in subscription order, each to completion."""
        for handler in list(self.get_handlers(event)):
            handler(payload)

    def attach(self, listener: Any) -> None:
        """Subscribes every handler a listener implements (methods named after the events)."""
        for event in LIFECYCLE_EVENTS:
            handler = getattr(listener, event, None)
            if callable(handler):
                self.subscribe(event, handler)

    def detach(self, listener: Any) -> None:
        for event in LIFECYCLE_EVENTS:
            handler = getattr(listener, event, None)
            if callable(handler):
                self.unsubscribe(event, handler)


class BehaveEngine:
    """
    Runs behave for bddbridge.

    The step-definition factory and the timeout setter are injected, either at
    construction or with `install()`, and apply to runs started afterwards.
    `uninstall()` restores what was in place before the matching `install()`.
    Every `start()` builds a fresh runner and step registry, so nothing of a run
    leaks into behave's module state.
    """

    def __init__(
        self,
        config: Configuration,
        step_factory: Optional[StepFactory] = None,
        timeout_setter: Optional[TimeoutSetter] = None,
        browser: Any = None,
    ):
        self.config = config
        self.step_factory = step_factory
        self.timeout_setter = timeout_setter
        self.browser = browser
        self.events = EventSource()
        self.runner: Optional[BridgeRunner] = None
        self.installed: List[Tuple[Optional[StepFactory], Optional[TimeoutSetter]]] = []

    def install(self, step_factory: Optional[StepFactory], timeout_setter: Optional[TimeoutSetter]) -> None:
        self.installed.append((self.step_factory, self.timeout_setter))
        self.step_factory = step_factory
        self.timeout_setter = timeout_setter

    def uninstall(self) -> None:
        if self.installed:
            self.step_factory, self.timeout_setter = self.installed.pop()

    def subscribe(self, event: str, handler: EventHandler) -> None:
        self.events.subscribe(event, handler)

    def unsubscribe(self, event: str, handler: EventHandler) -> None:
        self.events.unsubscribe(event, handler)

    def attach(self, listener: Any) -> None:
        """Attaches a lifecycle listener. Behave reporters also get behave's feature/end calls."""
        self.events.attach(listener)
        if isinstance(listener, Reporter) and listener not in self.config.reporters:
            self.config.reporters.append(listener)

    def detach(self, listener: Any) -> None:
        self.events.detach(listener)
        if isinstance(listener, Reporter) and listener in self.config.reporters:
            self.config.reporters.remove(listener)

    def create_runner(self) -> BridgeRunner:
        return BridgeRunner(
            self.config,
            StepDefinitionRegistry(self.step_factory),
            self.events.publish,
            timeout_setter=self.timeout_setter,
            browser=self.browser,
        )

    def start(self, on_complete: Optional[Callable[[bool], Any]] = None) -> bool:
        """Runs the configured features.

        Args:
            on_complete (Optional[Callable[[bool], Any]]): Called with the failed flag once the run has finished.

        Raises:
            EngineStartupFailure: If behave cannot be set up; no step has run in that case.

        Returns:
            bool: True if the run failed.
        """
        try:
            check_engine_version()
            self.runner = self.create_runner()
            self.runner.setup()
        except EngineStartupFailure:
            raise
        except Exception as e:
            raise EngineStartupFailure(f"behave failed to start: {e}") from e

        logger.debug("Running %d features", len(self.runner.features))
        failed = self.runner.run_model()

        if on_complete is not None:
            on_complete(failed)
        return failed
