from types import SimpleNamespace
from typing import Any, Optional

import pytest
from pytest_mock import MockerFixture

from bddbridge.bridge_behave.reporter import BridgeReporter, make_async_snippet

# --- Helper Functions ---


def make_config(**kwargs: Any) -> SimpleNamespace:
    defaults = dict(strict=False, snippet_syntax=None, options={"snippets": True}, ignore_undefined_definitions=False)
    defaults.update(kwargs)
    return SimpleNamespace(**defaults)


def make_step(status: str, name: str = "I do something", step_type: str = "when", keyword: Optional[str] = None):
    return SimpleNamespace(
        status=SimpleNamespace(name=status), name=name, step_type=step_type, keyword=keyword or step_type.title()
    )


def make_scenario(*steps) -> SimpleNamespace:
    return SimpleNamespace(name="scenario", status=SimpleNamespace(name="failed"), all_steps=list(steps))


# --- TESTS ---


class TestFailedCount:
    @pytest.mark.parametrize("status, counted", [("passed", 0), ("failed", 1), ("error", 1), ("skipped", 0)])
    def test_after_step_counts_failures(self, status: str, counted: int):
        reporter = BridgeReporter(make_config())

        reporter.after_step(make_step(status))

        assert reporter.failed_count == counted, f"Status {status!r} counted incorrectly"
        assert reporter.executed_steps == 1

    def test_each_execution_counts_once(self):
        reporter = BridgeReporter(make_config())

        for _ in range(3):
            reporter.after_step(make_step("failed"))

        assert reporter.failed_count == 3

    def test_undefined_steps_count_at_scenario_end(self):
        reporter = BridgeReporter(make_config())

        reporter.after_scenario(make_scenario(make_step("passed"), make_step("undefined"), make_step("untested")))

        assert reporter.failed_count == 1
        assert len(reporter.undefined_steps) == 1

    def test_ignore_undefined_definitions(self):
        reporter = BridgeReporter(make_config(ignore_undefined_definitions=True))

        reporter.after_scenario(make_scenario(make_step("undefined")))

        assert reporter.failed_count == 0, "Undefined steps must not count when ignored"
        assert len(reporter.undefined_steps) == 1, "Undefined steps are still collected"

    def test_capability_option_overrides_config(self):
        reporter = BridgeReporter(make_config(), {"browserName": "firefox"}, ignore_undefined_definitions=True)

        reporter.after_scenario(make_scenario(make_step("undefined")))

        assert reporter.capabilities == {"browserName": "firefox"}
        assert reporter.failed_count == 0

    def test_strict_counts_ignored_undefined_steps(self):
        reporter = BridgeReporter(make_config(strict=True, ignore_undefined_definitions=True))

        reporter.after_scenario(make_scenario(make_step("undefined")))

        assert reporter.failed_count == 1


class TestSnippets:
    def test_make_async_snippet(self):
        snippet = make_async_snippet(make_step("undefined", name="I press 'enter'", step_type="when"))

        assert snippet == (
            "@when(u'I press \\'enter\\'')\n"
            "async def step_impl(context):\n"
            "    raise NotImplementedError(u'STEP: When I press \\'enter\\'')\n"
        )

    def test_end_prints_async_snippets_once_per_step(self, mocker: MockerFixture):
        mock_print = mocker.patch("builtins.print")
        reporter = BridgeReporter(make_config(snippet_syntax="async"))
        undefined = make_step("undefined", name="I fly")

        reporter.after_scenario(make_scenario(undefined))
        reporter.after_scenario(make_scenario(undefined))
        reporter.end()

        printed = [call.args[0] for call in mock_print.call_args_list]
        assert printed.count(make_async_snippet(undefined)) == 1

    @pytest.mark.parametrize(
        "snippet_syntax, snippets",
        [
            (None, True),
            ("async", False),
        ],
    )
    def test_end_without_async_snippets(self, mocker: MockerFixture, snippet_syntax: Optional[str], snippets: bool):
        mock_print = mocker.patch("builtins.print")
        reporter = BridgeReporter(make_config(snippet_syntax=snippet_syntax, options={"snippets": snippets}))

        reporter.after_scenario(make_scenario(make_step("undefined")))
        reporter.end()

        mock_print.assert_not_called()

    def test_feature_collects_features(self):
        reporter = BridgeReporter(make_config())
        feature = SimpleNamespace(name="feature")

        reporter.feature(feature)

        assert reporter.features == [feature]
