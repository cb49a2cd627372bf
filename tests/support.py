import asyncio
from pathlib import Path
from typing import Any, Awaitable, Callable, List, TypeVar

from bddbridge.host import HostLoop

T = TypeVar("T")


def get_project_root_dir() -> Path:
    return Path(__file__).parents[1].absolute()


def get_src_dir() -> Path:
    return get_project_root_dir() / "src"


def get_test_dir() -> Path:
    return get_project_root_dir() / "tests"


def get_mock_suite_features_dir() -> Path:
    return get_project_root_dir() / "mock_suite" / "features"


def get_mock_feature(name: str) -> str:
    """Returns the absolute path of a feature file of the mock suite (e.g. 'browser')."""
    return str(get_mock_suite_features_dir() / f"{name}.feature")


def run_on_host(func: Callable[[HostLoop], T]) -> T:
    """Runs a blocking function on a worker thread of a fresh event loop, as the engine thread would.

    Args:
        func (Callable[[HostLoop], T]): Called with the HostLoop bound to the running loop.

    Returns:
        T: The return value of `func`.
    """

    async def main() -> T:
        loop = asyncio.get_running_loop()
        host = HostLoop(loop)
        try:
            return await loop.run_in_executor(None, func, host)
        finally:
            host.close()

    return asyncio.run(main())


def run_coroutine(coro: Awaitable[T]) -> T:
    return asyncio.run(coro)


class FakeBrowser:
    """A stand-in browser session recording the commands it receives."""

    def __init__(self, click_failures: int = 2):
        self.page = None
        self.clicks = 0
        self.click_failures = click_failures
        self.trail: List[str] = []

    def open(self, name: str) -> None:
        self.page = name

    async def open_async(self, name: str) -> None:
        await asyncio.sleep(0)
        self.page = name

    def click(self, element: str) -> None:
        self.clicks += 1
        if self.clicks <= self.click_failures:
            raise RuntimeError(f"{element} is not clickable yet")

    def title(self) -> Any:
        return self.page
