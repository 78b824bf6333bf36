"""Filesystem locations used by huddle."""

import os
from importlib.resources import files
from pathlib import Path


def get_package_dir() -> Path:
    """Get the installed huddle package directory."""
    return Path(str(files("huddle")))


def get_huddle_home() -> Path:
    """Get the huddle home directory.

    Uses HUDDLE_HOME when set, otherwise ``~/.huddle``.
    """
    override = os.environ.get("HUDDLE_HOME")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".huddle"


def get_huddle_log_dir() -> Path:
    """Get the path to the logs/ directory inside the huddle home."""
    return get_huddle_home() / "logs"


def get_huddle_host_log_file() -> Path:
    """Get the path to the host process log file."""
    return get_huddle_log_dir() / "host.log"


def get_huddle_settings_file() -> Path:
    """Get the path to the persisted host settings file."""
    return get_huddle_home() / "settings.toml"


def get_default_storage_path() -> Path:
    """Get the default location of the chat database."""
    return get_huddle_home() / "chat-database.sqlite"
