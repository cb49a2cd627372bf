"""Runner for executing bddbridge runs with behave."""

import glob
import importlib
import os
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Generator, Iterator, List, Optional, Set, Tuple

from behave import step_registry as behave_step_registry
from behave.exception import ConfigError
from behave.formatter._registry import make_formatters
from behave.matchers import use_step_matcher
from behave.model_type import FileLocation as BehaveFileLocation
from behave.runner import Context, ModelRunner
from behave.runner_util import exec_file, parse_features

from ..constants import DEFAULT_STEP_MATCHER, LIFECYCLE_EVENTS
from ..types import TimeoutSetter, override
from .configuration import Configuration
from .registry import StepDefinitionRegistry

__all__ = ["BridgeRunner", "EventPublisher"]

EventPublisher = Callable[[str, Any], None]


def iter_make_paths(path: str, base_path: Path) -> Iterator[Tuple[str, Tuple[Path, Optional[int]]]]:
    """Resolve a single path string into absolute file paths.

    Args:
        path (str): Input path string (e.g., 'features/foo.feature:10' or 'features/*.feature').
        base_path (Path): Root directory for relative path resolution.

    Yields:
        Tuple[str, Tuple[Path, Optional[int]]]: Original path and resolved path/line.
    """
    # Separate the path/glob string from the optional line number suffix.
    path_str, *line_part = path.split(":", 1)
    if line_part:
        if not line_part[0].isdigit():
            raise ConfigError(
                f"Invalid format for file path and line number: '{path!r}'. "
                f"Line number part {line_part[0]!r} must be a positive integer."
            )
        line_number = int(line_part[0])
    else:
        line_number = None

    search_root = Path("/") if Path(path_str).is_absolute() else base_path

    if glob.has_magic(path_str):
        pattern = str(Path(path_str).relative_to("/")) if Path(path_str).is_absolute() else path_str
        for resolved_path in search_root.glob(pattern):
            yield (path, (resolved_path.absolute(), line_number))
    else:
        resolved_path = search_root / path_str
        yield (path, (resolved_path.absolute(), line_number))


def iter_paths(paths: List[str], base_path: Path) -> Iterator[Tuple[str, Tuple[Path, Optional[int]]]]:
    """Iterate over paths, supporting globs and @files.

    Args:
        paths (List[str]): List of path strings.
        base_path (Path): Root directory for relative path resolution.

    Yields:
        Tuple[str, Tuple[Path, Optional[int]]]: Original path and resolved path/line.
    """
    for path_str in paths:
        if path_str.startswith("@"):
            filename = path_str[1:]

            if not os.path.isfile(filename):
                raise ConfigError(f"Feature list file not found: {filename!r}")

            with open(filename, encoding="utf-8") as f:
                content: str = f.read()

            for line in content.splitlines():
                line_stripped = line.strip()
                # Skip empty lines and lines starting with '#'
                if line_stripped and not line_stripped.startswith("#"):
                    yield from iter_make_paths(line_stripped, base_path)
        else:
            yield from iter_make_paths(path_str, base_path)


class FileLocation(BehaveFileLocation):
    """
    A minimal extension of the Behave FileLocation class to make it hashable, allowing
    its use in a set for feature collection.
    """

    def __hash__(self) -> int:
        """Compute a hash based on filename and line."""
        return hash((self.filename, self.line))


def resolve_feature(path: Path, line_number: Optional[int]) -> List[FileLocation]:
    """Resolve a path to feature file locations based on file type.

    Args:
        path (Path): Resolved absolute path (file or directory).
        line_number (Optional[int]): Optional line number.

    Returns:
        List[FileLocation]: Feature file locations found.
    """
    if path.is_dir():
        # Directory targets collect every *.feature file below the directory.
        return [FileLocation(str(feature), line_number) for feature in sorted(path.rglob("*.feature"))]

    if path.is_file() and path.suffix == ".feature":
        return [FileLocation(str(path), line_number)]

    return []


def iter_step_modules(step_paths: List[Path]) -> Iterator[Path]:
    """Yield step module files: every *.py in a directory (sorted), or the file itself."""
    for step_path in step_paths:
        if step_path.is_dir():
            yield from sorted(step_path.glob("*.py"))
        elif step_path.is_file() and step_path.suffix == ".py":
            yield step_path
        else:
            raise ConfigError(f"Step definitions not found: {str(step_path)!r}")


@contextmanager
def extend_sys_path(paths: List[Path]) -> Generator[None, None, None]:
    """Temporarily prepends directories to sys.path so step modules can import their neighbours."""
    added: List[str] = []
    for path in paths:
        path_str = str(path)
        if path_str not in sys.path:
            sys.path.insert(0, path_str)
            added.append(path_str)

    try:
        yield
    finally:
        for path_str in added:
            if path_str in sys.path:
                sys.path.remove(path_str)


class BridgeRunner(ModelRunner):
    """
    A behave ModelRunner for a single bddbridge run.

    Step definitions are loaded into the run's own StepDefinitionRegistry, the
    environment hooks are composed with the event publisher, and the timeout setter
    is called every time the feature tree is walked.
    """

    config: Configuration
    """bddbridge configuration instance."""

    def __init__(
        self,
        config: Configuration,
        step_registry: StepDefinitionRegistry,
        publish: EventPublisher,
        timeout_setter: Optional[TimeoutSetter] = None,
        browser: Any = None,
    ):
        super().__init__(config)

        self.step_registry = step_registry
        self.publish = publish
        self.timeout_setter = timeout_setter
        self.browser = browser
        self.features = []
        self.feature_locations: List[FileLocation] = []
        self.base_dir: Optional[Path] = None

    def collect_feature_locations(self) -> List[FileLocation]:
        """Collect the feature files selected by the configured paths.

        Returns:
            List[FileLocation]: Sorted, de-duplicated feature file locations.
        """
        collected: Set[FileLocation] = set()

        for path, (resolved_path, line_number) in iter_paths(list(self.config.paths), Path.cwd()):
            if not resolved_path.exists():
                if self.config.verbose:
                    print(f"Skipping {str(resolved_path)!r}. File or directory not found. Resolved from {path!r}")
                continue

            resolved_feature_files = [
                location
                for location in resolve_feature(resolved_path, line_number)
                if not self.config.exclude(location.filename)
            ]

            if not resolved_feature_files and self.config.verbose:
                print(f"Skipping {str(resolved_path)!r}. No feature files. Resolved from {path!r}")

            collected.update(resolved_feature_files)

        return sorted(collected, key=lambda location: (location.filename, location.line or 0))

    def find_base_dir(self) -> Path:
        """Find the directory holding the steps directory and the environment file.

        Searches upwards from the first feature file. Without a steps directory the
        feature's own directory is used, provided `require` names the step definitions.
        """
        start = Path(self.feature_locations[0].filename).absolute().parent
        for candidate in (start, *start.parents):
            if (candidate / self.config.steps_dir).is_dir():
                return candidate

        if self.config.require:
            return start

        raise ConfigError(f"No {self.config.steps_dir!r} directory found in {str(start)!r} or its parents")

    def load_compilers(self) -> None:
        """Import the modules named by the `compiler` option ("extension:module" or "module")."""
        for compiler in self.config.compiler:
            importlib.import_module(compiler.split(":", 1)[-1])

    def load_hooks(self, base_dir: Path) -> None:
        """Load the environment file and compose its lifecycle hooks with the event publisher.

        Args:
            base_dir (Path): Directory containing the environment file.
        """
        self.hooks = {}
        hooks_path: Path = base_dir / self.config.environment_file
        if hooks_path.is_file():
            exec_file(str(hooks_path), self.hooks)

        for event in LIFECYCLE_EVENTS:
            self.hooks[event] = self.make_event_hook(event, self.hooks.get(event))

    def make_event_hook(self, event: str, hook: Optional[Callable[..., Any]]) -> Callable[..., None]:
        def event_hook(context: Context, *args: Any) -> None:
            try:
                if hook is not None:
                    hook(context, *args)
            finally:
                self.publish(event, args[0] if args else None)

        event_hook.__name__ = event
        return event_hook

    def get_step_paths(self, base_dir: Path) -> List[Path]:
        steps_dir: Path = base_dir / self.config.steps_dir

        step_paths = [steps_dir] if steps_dir.is_dir() else []
        step_paths.extend(Path(path).absolute() for path in self.config.require)
        return step_paths

    def load_step_definitions(self, base_dir: Path) -> None:
        """Load step modules into the run's step registry.

        Args:
            base_dir (Path): Directory containing the steps directory.
        """
        step_globals: Dict[str, Any] = {"use_step_matcher": use_step_matcher}
        self.step_registry.setup_step_decorators(step_globals)

        for module_path in iter_step_modules(self.get_step_paths(base_dir)):
            # Each step module starts with clean globals and the default matcher.
            exec_file(str(module_path), step_globals.copy())
            use_step_matcher(DEFAULT_STEP_MATCHER)

        global_registry = getattr(behave_step_registry, "registry", None)
        if global_registry is not None:
            self.step_registry.adopt(global_registry)

    def setup(self) -> None:
        """Prepare the run: features, base directory, hooks, steps, context and formatters."""
        self.feature_locations = self.collect_feature_locations()

        if not self.feature_locations:
            raise ConfigError("No feature files found.")

        self.base_dir = self.find_base_dir()
        self.config.base_dir = str(self.base_dir)

        self.load_compilers()

        # environment.py and the step modules may import modules living next to them.
        search_paths = [path if path.is_dir() else path.parent for path in self.get_step_paths(self.base_dir)]
        with extend_sys_path([self.base_dir, *search_paths]):
            self.load_hooks(self.base_dir)
            self.load_step_definitions(self.base_dir)

        self.features = parse_features(self.feature_locations, language=self.config.lang)

        self.context = Context(self)
        if self.browser is not None:
            self.context.browser = self.browser

        self.config.setup_logging()
        self.formatters = make_formatters(self.config, self.config.outputs)

    @override
    def run_model(self, features=None):
        """Walk the feature tree once, after handing the configured timeout to the timeout setter."""
        if self.timeout_setter is not None:
            self.timeout_setter(self.config.timeout)
        return super().run_model(features)
