# pyright: reportAny=false, reportExplicitAny=false
"""TOML settings file reading and writing."""

import os
import sys
import tempfile
import tomllib
from pathlib import Path
from typing import Any, final

import tomli_w
from pydantic import ValidationError

from huddle.exceptions import ConfigLoadError
from huddle.utils import get_huddle_settings_file

from ._models import HostSettings

# Environment variable -> settings key path
ENV_OVERRIDES: dict[str, tuple[str, ...]] = {
    "HUDDLE_PORT": ("port",),
    "HUDDLE_STORAGE_PATH": ("storage_path",),
    "HUDDLE_BIND_HOST": ("bind_host",),
    "HUDDLE_SECRET_KEY": ("secret",),
    "HUDDLE_LOG_LEVEL": ("logging", "level"),
}


def read_toml_file(path: Path) -> dict[str, Any]:
    """Read and parse a TOML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigLoadError: If the file cannot be parsed.
    """
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        msg = f"Failed to parse TOML file: {e}"
        raise ConfigLoadError(msg, path=path) from e


def parse_env_overrides(environ: dict[str, str] | None = None) -> dict[str, Any]:
    """Collect settings overrides from ``HUDDLE_*`` environment variables.

    Examples:
        >>> parse_env_overrides({"HUDDLE_PORT": "4000", "HUDDLE_LOG_LEVEL": "DEBUG"})
        {'port': '4000', 'logging': {'level': 'debug'}}
    """
    source = os.environ if environ is None else environ
    result: dict[str, Any] = {}
    for name, key_path in ENV_OVERRIDES.items():
        value = source.get(name)
        if value is None or value == "":
            continue
        if key_path == ("logging", "level"):
            value = value.lower()
        target = result
        for key in key_path[:-1]:
            target = target.setdefault(key, {})
        target[key_path[-1]] = value
    return result


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    result = dict(base)
    for key, value in override.items():
        current = result.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            result[key] = _merge(current, value)
        else:
            result[key] = value
    return result


def _validate(data: dict[str, Any], path: Path) -> HostSettings:
    try:
        return HostSettings.model_validate(data)
    except ValidationError as e:
        msg = f"Invalid settings: {e.error_count()} validation error(s)"
        raise ConfigLoadError(msg, path=path) from e


def _write_atomic(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        mode="w",
        dir=path.parent,
        delete=False,
        suffix=".tmp",
        encoding="utf-8",
    ) as f:
        _ = f.write(content)
        temp_path = Path(f.name)

    try:
        # On Windows, need to remove target first
        if sys.platform == "win32" and path.exists():
            path.unlink()
        _ = temp_path.rename(path)
    except OSError:
        temp_path.unlink(missing_ok=True)
        raise


@final
class SettingsStore:
    """Reads and writes the host settings file.

    Environment overrides apply when loading but are never written back.
    """

    __slots__ = ("path",)

    def __init__(self, path: Path | None = None) -> None:
        """Initialize the store.

        Args:
            path: Settings file. Defaults to ``<huddle home>/settings.toml``.
        """
        self.path: Path = path if path is not None else get_huddle_settings_file()

    def read(self) -> dict[str, Any]:
        """Return the raw file contents, or an empty dict if there is no file."""
        if not self.path.exists():
            return {}
        return read_toml_file(self.path)

    def load(self, *, include_env: bool = True) -> HostSettings:
        """Load settings from the file, then apply environment overrides.

        Raises:
            ConfigLoadError: If the file cannot be parsed or holds invalid values.
        """
        data = self.read()
        if include_env:
            data = _merge(data, parse_env_overrides())
        return _validate(data, self.path)

    def save(self, settings: HostSettings) -> None:
        """Write ``settings`` to the file atomically.

        Raises:
            OSError: If the file cannot be written.
        """
        data = settings.model_dump(mode="json", exclude_none=True)
        _write_atomic(self.path, tomli_w.dumps(data))

    def update(self, **changes: Any) -> HostSettings:
        """Apply ``changes`` to the stored settings and write them back.

        Environment overrides are not applied, so they never leak into the file.

        Returns:
            The settings as written.

        Raises:
            ConfigLoadError: If the merged settings are invalid.
            OSError: If the file cannot be written.
        """
        settings = _validate(_merge(self.read(), changes), self.path)
        self.save(settings)
        return settings
