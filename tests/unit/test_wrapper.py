import logging
from typing import Any, List

import pytest
from support import FakeBrowser, run_coroutine

from bddbridge.bridge_behave.wrapper import BrowserWrapper, wrap_commands
from bddbridge.exceptions import StepCancelled

# --- Helper Classes ---


class CommandRecorder:
    def __init__(self):
        self.trail: List[Any] = []

    def before_command(self, name, args):
        self.trail.append(("before", name, args))

    def after_command(self, name, args, result, error):
        self.trail.append(("after", name, args, result, error))


# --- Fixtures ---


@pytest.fixture
def recorder() -> CommandRecorder:
    return CommandRecorder()


@pytest.fixture
def browser() -> FakeBrowser:
    return FakeBrowser(click_failures=1)


# --- TESTS ---


class TestBrowserWrapper:
    def test_command_hooks_surround_every_command(self, browser: FakeBrowser, recorder: CommandRecorder):
        wrapped = wrap_commands(browser, (recorder.before_command,), (recorder.after_command,))

        wrapped.open("home")
        title = wrapped.title()

        assert title == "home"
        assert recorder.trail == [
            ("before", "open", ("home",)),
            ("after", "open", ("home",), None, None),
            ("before", "title", ()),
            ("after", "title", (), "home", None),
        ]

    def test_failing_command_reports_the_error(self, browser: FakeBrowser, recorder: CommandRecorder):
        wrapped = wrap_commands(browser, (recorder.before_command,), (recorder.after_command,))

        with pytest.raises(RuntimeError, match="submit is not clickable yet") as exc_info:
            wrapped.click("submit")

        assert recorder.trail[-1] == ("after", "click", ("submit",), None, exc_info.value)

    def test_awaitable_commands_get_after_hooks_once_awaited(self, browser: FakeBrowser, recorder: CommandRecorder):
        wrapped = wrap_commands(browser, (recorder.before_command,), (recorder.after_command,))

        pending = wrapped.open_async("dashboard")
        assert recorder.trail == [("before", "open_async", ("dashboard",))]

        run_coroutine(pending)

        assert browser.page == "dashboard"
        assert recorder.trail[-1] == ("after", "open_async", ("dashboard",), None, None)

    def test_attributes_pass_through(self, browser: FakeBrowser, recorder: CommandRecorder):
        wrapped = wrap_commands(browser, (recorder.before_command,), (recorder.after_command,))

        assert wrapped.trail is browser.trail
        assert wrapped.click_failures == 1
        assert recorder.trail == [], "Attribute access is not a command"

    def test_hook_failures_are_logged_and_swallowed(self, browser: FakeBrowser, caplog: pytest.LogCaptureFixture):
        caplog.set_level(logging.ERROR, logger="bddbridge.bridge_behave.wrapper")

        def broken(*args):
            raise ValueError("boom")

        wrapped = wrap_commands(browser, (broken,), (broken,))
        wrapped.open("home")

        assert browser.page == "home"
        assert "before_command has thrown an error: boom" in caplog.messages
        assert "after_command has thrown an error: boom" in caplog.messages

    def test_coroutine_hooks_are_refused(self, browser: FakeBrowser, caplog: pytest.LogCaptureFixture):
        caplog.set_level(logging.ERROR, logger="bddbridge.bridge_behave.wrapper")
        calls = []

        async def async_hook(name, args):
            calls.append(name)

        wrap_commands(browser, (async_hook,)).open("home")

        assert calls == [], "Coroutine hooks cannot run inside a command"
        assert any("must not be a coroutine function" in message for message in caplog.messages)

    def test_guard_stops_commands(self, browser: FakeBrowser, recorder: CommandRecorder):
        def guard():
            raise StepCancelled("expired")

        wrapped = wrap_commands(browser, (recorder.before_command,), (recorder.after_command,), guard)

        with pytest.raises(StepCancelled):
            wrapped.open("home")

        assert browser.page is None
        assert recorder.trail == []

    def test_rewrapping_does_not_nest(self, browser: FakeBrowser, recorder: CommandRecorder):
        first = wrap_commands(browser, (recorder.before_command,))
        second = wrap_commands(first, (recorder.before_command,))

        second.open("home")

        assert isinstance(second, BrowserWrapper)
        assert second.get_wrapped() is browser
        assert len(recorder.trail) == 1
