import copy
import logging
import os
import shlex
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from behave.configuration import Configuration as BehaveConfiguration
from behave.exception import ConfigError
from dotenv import dotenv_values

from ..constants import (
    ASYNC_SNIPPET_SYNTAX,
    COLOR_CHOICE,
    DEFAULT_FORMAT,
    DEFAULT_OPTS,
    ENV_EXCLUDED_OPTIONS,
    ENV_PREFIX,
    ENV_SEQUENCE_OPTIONS,
    USER_CONFIG,
)
from ..types import DefaultValues, Specs

__all__ = ["Configuration", "merge_options", "load_environment_settings", "make_behave_defaults"]


def build_environment_values(env_file: Optional[Path] = None, verbose: Optional[bool] = None) -> Dict[str, str]:
    """Builds the environment dictionary by loading values from the environment
    and configuration sources in ascending order of precedence (lowest to highest).

    The order of loading (lowest precedence first) is:
    1. OS Environment Variables (Lowest)
    2. User Home Config (~/.bddbridge)
    3. Run Config File (`env_file` of the run configuration) (Highest)

    Args:
        env_file: Optional path to a dotenv file named by the run configuration.
        verbose: If True, prints status messages about file loading.

    Returns:
        A dictionary containing all environment key-value pairs.
    """
    # OS Environment Variables (Priority 1)
    env_values = os.environ.copy()

    # User Home Config (~/.bddbridge) (Priority 2)
    user_config_file = Path.home() / USER_CONFIG
    if user_config_file.exists():
        if verbose:
            print("Load user config file.")
        loaded_config = dotenv_values(user_config_file)
        if loaded_config is not None:
            env_values.update(loaded_config)
    elif verbose:
        print("Skipping: User config file not found.")

    # Run Config File (Priority 3)
    if env_file is not None:
        if not env_file.exists():
            raise FileNotFoundError(f"The run config file was not found at {str(env_file)!r}.")
        if verbose:
            print("Load run config file.")
        loaded_config = dotenv_values(env_file)
        if loaded_config is not None:
            env_values.update(loaded_config)
    elif verbose:
        print("Skipping: Run config file was not specified.")

    return env_values


def load_environment_settings(
    defaults: DefaultValues, env_file: Optional[Path] = None, verbose: Optional[bool] = None
) -> None:
    """Loads option values from the environment and dotenv files and applies them
    to the defaults dictionary.

    Variables prefixed with 'BDDBRIDGE_' are parsed (boolean, int, list, or string)
    and stored under the option name that follows the prefix. Names that are not
    run options are skipped.

    Args:
        defaults: The dictionary containing default options, which will be
                  updated with environment variable values.
        env_file: Optional path to a dotenv file named by the run configuration.
        verbose: If True, prints status messages about environment variable loading and parsing.
    """
    env_values = build_environment_values(env_file, verbose)

    for env_var, env_value in env_values.items():
        # Key filtering and extraction
        env_var_lowered = env_var.lower()
        if not env_var_lowered.startswith(ENV_PREFIX):
            continue

        option_name = env_var_lowered[len(ENV_PREFIX) :]
        if not option_name:
            if verbose:
                print(f"Skipping ENV[{env_var}]: Option name is empty after stripping prefix ('BDDBRIDGE_').")
            continue

        if option_name in ENV_EXCLUDED_OPTIONS:
            raise ConfigError(f"ENV[{env_var}]: Setting {option_name!r} cannot be specified as environment var.")

        if option_name not in DEFAULT_OPTS:
            if verbose:
                print(f"Skipping ENV[{env_var}]: {option_name!r} is not a known option.")
            continue

        # Value parsing
        env_parsed_value: Any = env_value.strip()
        if not env_parsed_value:
            if verbose:
                print(f"Skipping ENV[{env_var}]: Value is empty or whitespace.")
            continue

        env_value_lowered = env_parsed_value.lower()
        if env_value_lowered in ["true", "false"]:
            env_parsed_value = env_value_lowered == "true"
        elif env_parsed_value.isnumeric():
            env_parsed_value = int(env_parsed_value)
        elif option_name in ENV_SEQUENCE_OPTIONS:
            # Note: shlex.split handles quoted strings correctly for complex list elements.
            env_parsed_value = shlex.split(env_parsed_value)

        defaults[option_name] = env_parsed_value

        if verbose:
            print(f"{option_name:<15} = {env_parsed_value!r} (ENV[{env_var}] = {env_value!r})")


def merge_options(
    user_options: Optional[Mapping[str, Any]] = None, env_file: Optional[Path] = None, verbose: Optional[bool] = None
) -> DefaultValues:
    """Merges run options: defaults, then environment settings, then user options.

    DEFAULT_OPTS itself is never modified.

    Raises:
        ConfigError: If a user option is not a known option.
    """
    options = copy.deepcopy(DEFAULT_OPTS)
    load_environment_settings(options, env_file, verbose)

    user_options = dict(user_options or {})
    unknown = sorted(set(user_options) - set(DEFAULT_OPTS))
    if unknown:
        raise ConfigError(f"Unknown behave options: {', '.join(unknown)}")

    options.update(user_options)

    for name in ENV_SEQUENCE_OPTIONS:
        if isinstance(options[name], str):
            options[name] = [options[name]]

    return options


def make_behave_defaults(options: Mapping[str, Any]) -> DefaultValues:
    """Maps run options onto behave configuration settings."""
    snippets = bool(options["snippets"]) and options["snippet_syntax"] != ASYNC_SNIPPET_SYNTAX
    profile = list(options["profile"])

    return {
        "dry_run": bool(options["dry_run"]),
        "stop": bool(options["fail_fast"]),
        "format": list(options["format"]) or [DEFAULT_FORMAT],
        "name": list(options["name"]) or None,
        "color": COLOR_CHOICE[bool(options["colors"])],
        "show_snippets": snippets,
        "show_source": bool(options["source"]),
        "tags": list(options["tags"]) or None,
        "userdata_defines": [("profile", ",".join(profile))] if profile else None,
    }


class Configuration(BehaveConfiguration):
    """
    Central configuration class for a bddbridge run.
    Extends behave Configuration with the bridge's run options.
    """

    defaults: DefaultValues = {
        **BehaveConfiguration.defaults,
        "logging_level": logging.ERROR,
    }

    # This will be set by the runner
    base_dir: str = ""

    def __init__(
        self,
        options: Optional[Mapping[str, Any]] = None,
        specs: Optional[Specs] = None,
        verbose: Optional[bool] = None,
    ):
        """Initializes the behave configuration from merged run options.

        Args:
            options (Optional[Mapping[str, Any]]): Merged run options (see `merge_options`).
                                                   Defaults to DEFAULT_OPTS plus environment settings.
            specs (Optional[Specs]): Feature paths, globs, FILE:LINE entries or @files.
            verbose (Optional[bool]): Overrides the verbosity setting (Defaults to None).
        """
        if options is None:
            options = merge_options(verbose=verbose)

        super(Configuration, self).__init__(
            command_args=list(specs or []), load_config=False, verbose=verbose, **make_behave_defaults(options)
        )

        self.options: DefaultValues = dict(options)
        self.timeout: int = options["timeout"]
        self.backtrace: bool = bool(options["backtrace"])
        self.strict: bool = bool(options["strict"])
        self.compiler: List[str] = list(options["compiler"])
        self.require: List[str] = list(options["require"])
        self.profile: List[str] = list(options["profile"])
        self.snippet_syntax: Optional[str] = options["snippet_syntax"]
        self.ignore_undefined_definitions: bool = bool(options["ignore_undefined_definitions"])
