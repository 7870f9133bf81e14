"""Utilities and constants for project-wide versioning."""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any, Final, Mapping

_ROOT_DIR: Final[Path] = Path(__file__).resolve().parent.parent
_PYPROJECT_PATH: Final[Path] = _ROOT_DIR / "pyproject.toml"

# Cache for lazy-loaded config
_PYPROJECT_CONFIG: Mapping[str, Any] | None = None


def _get_pyproject_config() -> Mapping[str, Any]:
    """Lazy load pyproject configuration.

    An installed copy without the source tree has no pyproject.toml; all
    values then fall back to their defaults.
    """
    global _PYPROJECT_CONFIG
    if _PYPROJECT_CONFIG is None:
        if _PYPROJECT_PATH.exists():
            with _PYPROJECT_PATH.open("rb") as fp:
                _PYPROJECT_CONFIG = tomllib.load(fp)
        else:
            _PYPROJECT_CONFIG = {}
    return _PYPROJECT_CONFIG


def _get_tool_config(section: str) -> Mapping[str, Any]:
    tool = _get_pyproject_config().get("tool", {})
    lokichunk = tool.get("lokichunk", {})
    return lokichunk.get(section, {})


def _get_major_version() -> int:
    config = _get_tool_config("versions")
    return int(config.get("project_major", 0))


def _get_minor_version() -> int:
    config = _get_tool_config("versions")
    return int(config.get("project_minor", 0))


def get_project_version() -> str:
    """Return semantic version for the overall project (major.minor)."""

    return f"{_get_major_version()}.{_get_minor_version()}"


def get_package_version(package: str) -> str:
    """Return full version of a package: project version plus its suffix.

    Args:
        package: Package name from the ``[tool.lokichunk.package_suffixes]`` table.

    Returns:
        Version string in the form `<MAJOR>.<MINOR>.<PATCH>`.
    """

    suffixes = _get_tool_config("package_suffixes")
    suffix = str(suffixes.get(package, ".0"))
    return f"{get_project_version()}{suffix}"


def get_api_version() -> str:
    """Return API semantic version string `v<major>.<minor>`."""

    api = _get_tool_config("api")
    version = api.get("current_version", "0.0")
    return f"v{version}"


def get_api_prefix() -> str:
    """Return API prefix path `/api/v<major>.<minor>`."""

    return f"/api/{get_api_version()}"
