"""Configuration management that reads from `common/config/settings.toml`."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import tzinfo
from pathlib import Path
import tomllib
from typing import Any

from dateutil import tz

from lokichunk.binary_chunk_decoder import BlockErrorPolicy


PROJECT_ROOT = Path(__file__).resolve().parent.parent
CONFIG_PATH = PROJECT_ROOT / "common" / "config" / "settings.toml"


class SettingsError(RuntimeError):
    """Raised when configuration cannot be loaded."""


def _load_config_file(path: Path) -> dict[str, Any]:
    """Load TOML configuration from disk."""
    if not path.exists():
        raise SettingsError(
            f"Configuration file '{path}' is missing. "
            "Copy 'common/config/settings.toml.template' to 'common/config/settings.toml' "
            "and adjust it for your machine."
        )
    with path.open("rb") as fp:
        try:
            return tomllib.load(fp)
        except tomllib.TOMLDecodeError as exc:
            raise SettingsError(f"Configuration file '{path}' is not valid TOML: {exc}") from exc


def _require_section(raw: dict[str, Any], section: str, path: Path) -> dict[str, Any]:
    if section not in raw or not isinstance(raw[section], dict):
        raise SettingsError(f"Section '[{section}]' is missing in '{path}'.")
    return raw[section]


def _require_value(section: dict[str, Any], key: str, *, section_name: str, path: Path) -> Any:
    if key not in section:
        raise SettingsError(f"Missing key '{section_name}.{key}' in '{path}'.")
    return section[key]


def _resolve_path(value: str) -> Path:
    """Resolve relative paths against the project root."""
    path = Path(value)
    return path if path.is_absolute() else PROJECT_ROOT / path


def _extract_settings(raw: dict[str, Any], path: Path) -> dict[str, Any]:
    """Map nested TOML structure into flat settings attributes."""
    server = _require_section(raw, "server", path)
    decoder = _require_section(raw, "decoder", path)
    report = _require_section(raw, "report", path)
    storage = _require_section(raw, "storage", path)
    logging_section = _require_section(raw, "logging", path)

    policy = _require_value(decoder, "block_error_policy", section_name="decoder", path=path)
    try:
        block_error_policy = BlockErrorPolicy(policy)
    except ValueError as exc:
        allowed = ", ".join(item.value for item in BlockErrorPolicy)
        raise SettingsError(
            f"Invalid 'decoder.block_error_policy' {policy!r} in '{path}', expected one of: {allowed}"
        ) from exc

    timezone_name = _require_value(report, "timezone", section_name="report", path=path)
    if tz.gettz(timezone_name) is None:
        raise SettingsError(f"Unknown time zone 'report.timezone' {timezone_name!r} in '{path}'")

    return {
        "host": _require_value(server, "host", section_name="server", path=path),
        "port": _require_value(server, "port", section_name="server", path=path),
        "debug": _require_value(server, "debug", section_name="server", path=path),
        "block_error_policy": block_error_policy,
        "timezone_name": timezone_name,
        "bad_chunks_dir": _resolve_path(
            _require_value(storage, "bad_chunks_dir", section_name="storage", path=path)
        ),
        "log_dir": _resolve_path(
            _require_value(logging_section, "log_dir", section_name="logging", path=path)
        ),
    }


@dataclass(slots=True)
class Settings:
    """Application settings loaded from a config file."""

    host: str
    port: int
    debug: bool
    block_error_policy: BlockErrorPolicy
    timezone_name: str
    bad_chunks_dir: Path
    log_dir: Path

    @property
    def timezone(self) -> tzinfo:
        """Time zone used to display timestamps in reports."""
        zone = tz.gettz(self.timezone_name)
        if zone is None:
            raise SettingsError(f"Unknown time zone {self.timezone_name!r}")
        return zone


def load_settings(path: Path) -> Settings:
    """Load settings from an explicit TOML file."""
    raw = _load_config_file(path)
    return Settings(**_extract_settings(raw, path))


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    global _settings
    if _settings is None:
        _settings = load_settings(CONFIG_PATH)
    return _settings
