import logging
from typing import Any, Dict, List, Optional

from behave.model import Feature, Scenario, Step
from behave.reporter.base import Reporter

from ..constants import ASYNC_SNIPPET_SYNTAX, FAILED_STATUSES, UNDEFINED_STATUS
from ..types import override

__all__ = ["BridgeReporter", "make_async_snippet"]

logger = logging.getLogger(__name__)


def status_name(model: Any) -> str:
    status = getattr(model, "status", None)
    return getattr(status, "name", str(status))


def make_async_snippet(step: Step) -> str:
    """Builds a coroutine step definition snippet for an undefined step."""
    step_text = step.name.replace("'", "\\'")
    return (
        f"@{step.step_type}(u'{step_text}')\n"
        "async def step_impl(context):\n"
        f"    raise NotImplementedError(u'STEP: {step.keyword} {step_text}')\n"
    )


class BridgeReporter(Reporter):
    """
    A behave reporter counting failed steps of a bddbridge run.

    It listens to the run's lifecycle events: a step whose result is failed (or error)
    counts once per execution. Undefined steps never reach the step hooks, so they are
    collected when their scenario ends and count as failures unless
    `ignore_undefined_definitions` is set (`strict` always counts them).
    """

    def __init__(self, config, capabilities: Optional[Dict[str, Any]] = None, ignore_undefined_definitions=None):
        super(BridgeReporter, self).__init__(config)
        self.capabilities: Dict[str, Any] = capabilities or {}
        if ignore_undefined_definitions is None:
            ignore_undefined_definitions = getattr(config, "ignore_undefined_definitions", False)
        self.ignore_undefined_definitions: bool = ignore_undefined_definitions
        self.strict: bool = getattr(config, "strict", False)
        self.snippet_syntax: Optional[str] = getattr(config, "snippet_syntax", None)
        self.show_snippets: bool = getattr(config, "options", {}).get("snippets", True)

        self.features: List[Feature] = []
        self.undefined_steps: List[Step] = []
        self.executed_steps = 0
        self.failed_count = 0

    @property
    def counts_undefined(self) -> bool:
        return self.strict or not self.ignore_undefined_definitions

    def before_feature(self, feature: Feature):
        logger.debug("Feature started: %s", feature.name)

    def after_feature(self, feature: Feature):
        logger.debug("Feature finished: %s (%s)", feature.name, status_name(feature))

    def before_scenario(self, scenario: Scenario):
        logger.debug("Scenario started: %s", scenario.name)

    def after_scenario(self, scenario: Scenario):
        undefined = [step for step in scenario.all_steps if status_name(step) == UNDEFINED_STATUS]
        self.undefined_steps.extend(undefined)
        if self.counts_undefined:
            self.failed_count += len(undefined)

        logger.debug("Scenario finished: %s (%s)", scenario.name, status_name(scenario))

    def before_step(self, step: Step):
        logger.debug("Step started: %s %s", step.keyword, step.name)

    def after_step(self, step: Step):
        """Called with the step result (the executed step)."""
        self.executed_steps += 1
        if status_name(step) in FAILED_STATUSES:
            self.failed_count += 1

    @override
    def feature(self, feature: Feature):
        """Called after a feature was processed.

        Args:
            feature (Feature): Feature object
        """
        self.features.append(feature)

    def report_snippets(self):
        """Prints coroutine step snippets for the undefined steps of the run."""
        snippets: Dict[str, str] = {}
        for step in self.undefined_steps:
            snippets.setdefault(f"{step.step_type}:{step.name}", make_async_snippet(step))

        if not snippets:
            return

        print("\nYou can implement step definitions for undefined steps with these snippets:\n")
        for snippet in snippets.values():
            print(snippet)

    @override
    def end(self):
        """
        Called after all model elements are processed.
        """
        if self.show_snippets and self.snippet_syntax == ASYNC_SNIPPET_SYNTAX:
            self.report_snippets()

        logger.info(
            "%d features, %d steps executed, %d failed",
            len(self.features),
            self.executed_steps,
            self.failed_count,
        )
