from typing import Dict, Set, Tuple

from .types import DefaultValues

VERSION: str = "0.0.0-dev"

DEFAULT_TIMEOUT: int = 30000
"""Default step timeout in milliseconds."""

DEFAULT_FORMAT: str = "pretty"

DEFAULT_OPTS: DefaultValues = {
    "backtrace": False,  # show full backtrace for failed step attempts and hook errors
    "compiler": [],  # ("extension:module") import MODULE before loading step definitions (repeatable)
    "dry_run": False,  # invoke formatters without executing steps
    "fail_fast": False,  # abort the run on first failure
    "format": [DEFAULT_FORMAT],  # behave formatter names (repeatable)
    "name": [],  # only execute the scenarios with name matching the expression (repeatable)
    "colors": True,  # colored formatter output
    "snippets": True,  # show step definition snippets for undefined steps
    "source": True,  # show source locations
    "profile": [],  # profile names, exposed as userdata "profile"
    "require": [],  # step directories or files loaded before executing features
    "snippet_syntax": None,  # "async" prints coroutine step snippets
    "strict": False,  # count undefined steps as failures even when they are ignored
    "tags": [],  # only execute the features or scenarios with tags matching the expression
    "timeout": DEFAULT_TIMEOUT,  # timeout for step definitions (milliseconds)
    "ignore_undefined_definitions": False,  # do not count undefined steps as failures
}

ASYNC_SNIPPET_SYNTAX: str = "async"

ENV_PREFIX: str = "bddbridge_"

ENV_SEQUENCE_OPTIONS: Set[str] = {"compiler", "format", "name", "profile", "require", "tags"}

ENV_EXCLUDED_OPTIONS: Set[str] = {"before", "after", "before_command", "after_command", "behave_opts", "env_file"}

USER_CONFIG: str = ".bddbridge"

# Keys of the run configuration mapping.
CONFIG_BEHAVE_OPTS: str = "behave_opts"
CONFIG_SYNC: str = "sync"
CONFIG_ENV_FILE: str = "env_file"

LIFECYCLE_EVENTS: Tuple[str, ...] = (
    "before_feature",
    "after_feature",
    "before_scenario",
    "after_scenario",
    "before_step",
    "after_step",
)

SUITE_HOOKS: Tuple[str, ...] = ("before", "after")

COMMAND_HOOKS: Tuple[str, ...] = ("before_command", "after_command")

STEP_TYPES: Tuple[str, ...] = ("given", "when", "then", "step")

DEFAULT_STEP_MATCHER: str = "parse"

SUPPORTED_BEHAVE_VERSIONS: str = ">=1.3.3,<2.0"

# Behave statuses counted as a failed step.
FAILED_STATUSES: Set[str] = {"failed", "error"}

UNDEFINED_STATUS: str = "undefined"

COLOR_CHOICE: Dict[bool, str] = {True: "auto", False: "off"}
