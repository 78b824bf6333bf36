"""Host settings for huddle.

Settings live in a TOML file at ``<huddle home>/settings.toml`` and can be
overridden per process with ``HUDDLE_*`` environment variables.

Key Components:
    - HostSettings: Validated settings model
    - LoggingConfig: Host logging section
    - SettingsStore: Reads, writes and updates the settings file
    - safe_load_settings: Loading with strict/lenient error handling
"""

from ._load import safe_load_settings
from ._models import HostSettings, LoggingConfig
from ._store import ENV_OVERRIDES, SettingsStore, parse_env_overrides, read_toml_file

__all__ = [
    "ENV_OVERRIDES",
    "HostSettings",
    "LoggingConfig",
    "SettingsStore",
    "parse_env_overrides",
    "read_toml_file",
    "safe_load_settings",
]
