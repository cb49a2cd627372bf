from typing import Optional

from packaging.specifiers import SpecifierSet
from packaging.version import InvalidVersion, Version

from .constants import SUPPORTED_BEHAVE_VERSIONS
from .exceptions import EngineStartupFailure


def is_supported_version(version: str, supported: str = SUPPORTED_BEHAVE_VERSIONS) -> bool:
    """Checks whether a version string lies inside a specifier range.

    Args:
        version (str): The version string to check.
        supported (str): The specifier set (e.g., ">=1.3.3,<2.0").

    Returns:
        bool: True if the version is valid and satisfies the range, False otherwise.

    Examples:
        >>> is_supported_version("1.3.3")
        True
        >>> is_supported_version("2.0.0")
        False
    """
    try:
        parsed = Version(version)
    except InvalidVersion:
        return False

    return SpecifierSet(supported).contains(parsed, prereleases=True)


def check_engine_version(version: Optional[str] = None) -> str:
    """Ensures the installed behave release supports the hooks the bridge relies on.

    :param version: Version to check. Defaults to the installed behave version.
    :raises EngineStartupFailure: If the version is outside SUPPORTED_BEHAVE_VERSIONS.
    :returns: The checked version string.
    """
    if version is None:
        from behave import __version__ as version

    if not is_supported_version(version):
        raise EngineStartupFailure(
            f"behave {version} is not supported, bddbridge requires behave {SUPPORTED_BEHAVE_VERSIONS}"
        )

    return version
