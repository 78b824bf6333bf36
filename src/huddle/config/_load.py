import os
import sys
from pathlib import Path  # noqa: TC003

from huddle.exceptions import ConfigError

from ._models import HostSettings
from ._store import SettingsStore, parse_env_overrides


def safe_load_settings(
    *,
    settings_path: Path | None = None,
) -> tuple[HostSettings, str | None]:
    """Load host settings with error handling.

    Attempts to load settings and handles errors based on the
    HUDDLE_STRICT_CONFIG environment variable:
    - If unset or "0": warn to stderr and return default settings
    - If "1": fail fast with sys.exit(1)

    When settings_path is provided, the file must exist (explicit user request).

    Args:
        settings_path: Explicit path to the settings file (--settings flag).

    Returns:
        Tuple of (HostSettings, error_message). On success, error_message is None.
        On failure (non-strict mode), returns defaults with the error message.
    """
    strict_mode = os.environ.get("HUDDLE_STRICT_CONFIG", "0") == "1"

    if settings_path is not None and not settings_path.exists():
        print(f"Error: Settings file not found: {settings_path}", file=sys.stderr)  # noqa: T201
        sys.exit(1)

    try:
        settings = SettingsStore(settings_path).load()
    except (ConfigError, OSError) as e:
        error_msg = str(e)
        if strict_mode:
            print(f"Error: {error_msg}", file=sys.stderr)  # noqa: T201
            sys.exit(1)
        print(  # noqa: T201
            f"Warning: Failed to load settings: {error_msg}",
            file=sys.stderr,
        )
        return _defaults_with_env(), error_msg
    return settings, None


def _defaults_with_env() -> HostSettings:
    try:
        return HostSettings.model_validate(parse_env_overrides())
    except ValueError:
        return HostSettings()
