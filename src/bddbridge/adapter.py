"""Drives one complete bddbridge run: options, engine, suite hooks and result."""

import asyncio
import logging
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Any, Generator, List, Optional

from .bridge_behave.configuration import Configuration, merge_options
from .bridge_behave.engine import BehaveEngine
from .bridge_behave.reporter import BridgeReporter
from .bridge_behave.wrapper import wrap_commands
from .constants import CONFIG_BEHAVE_OPTS, CONFIG_ENV_FILE, CONFIG_SYNC
from .exceptions import EngineStartupFailure
from .hooks import HookEventBridge, HookRegistry, execute_hooks_with_args
from .host import HostLoop
from .scheduler import StepScheduler
from .types import Capabilities, RunConfig, Specs

__all__ = ["AdapterState", "BehaveAdapter", "AdapterFactory", "adapter_factory", "run_adapter"]

logger = logging.getLogger(__name__)


class AdapterState(Enum):
    IDLE = "idle"
    CONFIGURING = "configuring"
    RUNNING = "running"
    COMPLETED = "completed"


@contextmanager
def installed(engine: BehaveEngine, scheduler: StepScheduler, *listeners: Any) -> Generator[None, None, None]:
    """
    Context manager that hands the scheduler to the engine and attaches the listeners.
    """
    # --- SETUP ---
    engine.install(scheduler.make_step_definition, scheduler.set_default_timeout)
    for listener in listeners:
        engine.attach(listener)

    try:
        yield
    finally:
        # --- TEARDOWN ---
        for listener in reversed(listeners):
            engine.detach(listener)
        engine.uninstall()


class BehaveAdapter:
    """
    Runs the specs of one worker with behave.

    A run goes through IDLE, CONFIGURING, RUNNING and COMPLETED, in that order and
    only once. The result is the number of failed steps.
    """

    def __init__(
        self, cid: str, config: RunConfig, specs: Specs, capabilities: Capabilities, browser: Any = None
    ):
        self.cid = cid
        self.config = config
        self.specs = specs
        self.capabilities = capabilities
        self.browser = browser

        self.hooks = HookRegistry.from_config(config)
        self.state = AdapterState.IDLE
        self.options: Optional[dict] = None
        self.engine: Optional[BehaveEngine] = None
        self.reporter: Optional[BridgeReporter] = None

    def set_state(self, state: AdapterState) -> None:
        logger.debug("[%s] %s -> %s", self.cid, self.state.name, state.name)
        self.state = state

    def get_env_file(self) -> Optional[Path]:
        env_file = self.config.get(CONFIG_ENV_FILE)
        return Path(env_file) if env_file else None

    async def run(self) -> int:
        """Runs the specs.

        Raises:
            RuntimeError: If the adapter has already been run.
            EngineStartupFailure: If behave cannot be started. The after hooks do not run.

        Returns:
            int: Number of failed steps.
        """
        if self.state is not AdapterState.IDLE:
            raise RuntimeError(f"Adapter {self.cid} has already been run ({self.state.name}).")

        self.set_state(AdapterState.CONFIGURING)
        try:
            self.options = merge_options(self.config.get(CONFIG_BEHAVE_OPTS), self.get_env_file())
            configuration = Configuration(self.options, self.specs)
        except Exception as e:
            raise EngineStartupFailure(f"behave could not be configured: {e}") from e

        loop = asyncio.get_running_loop()
        host = HostLoop(loop)
        failed_counts: List[int] = []
        try:
            scheduler = StepScheduler(
                host,
                self.options["timeout"],
                sync=self.config.get(CONFIG_SYNC, True) is not False,
                backtrace=bool(self.options["backtrace"]),
            )

            browser = self.browser
            if browser is not None:
                browser = wrap_commands(browser, self.hooks.before_command, self.hooks.after_command, scheduler.guard)

            self.engine = BehaveEngine(configuration, browser=browser)
            self.reporter = BridgeReporter(configuration, self.capabilities)
            bridge = HookEventBridge(self.hooks, host)

            with installed(self.engine, scheduler, self.reporter, bridge):
                await execute_hooks_with_args(self.hooks.before, [self.capabilities, self.specs], "before", host)

                self.set_state(AdapterState.RUNNING)
                await loop.run_in_executor(
                    None, self.engine.start, lambda failed: failed_counts.append(self.reporter.failed_count)
                )
        finally:
            host.close()

        result = failed_counts[0] if failed_counts else self.reporter.failed_count
        await execute_hooks_with_args(self.hooks.after, [result, self.capabilities, self.specs], "after")

        self.set_state(AdapterState.COMPLETED)
        return result


class AdapterFactory:
    """Entry point used by the worker process."""

    @staticmethod
    async def run(cid: str, config: RunConfig, specs: Specs, capabilities: Capabilities, browser: Any = None) -> int:
        adapter = BehaveAdapter(cid, config, specs, capabilities, browser)
        return await adapter.run()


adapter_factory = AdapterFactory()


def run_adapter(cid: str, config: RunConfig, specs: Specs, capabilities: Capabilities, browser: Any = None) -> int:
    """Runs the specs on a new event loop and returns the number of failed steps."""
    return asyncio.run(adapter_factory.run(cid, config, specs, capabilities, browser))
