"""Shared utilities: paths, logging and SQLite helpers."""

from ._logging import create_host_logger, create_worker_logger, get_fallback_logger
from ._paths import (
    get_default_storage_path,
    get_huddle_home,
    get_huddle_host_log_file,
    get_huddle_log_dir,
    get_huddle_settings_file,
    get_package_dir,
)

__all__ = [
    "create_host_logger",
    "create_worker_logger",
    "get_default_storage_path",
    "get_fallback_logger",
    "get_huddle_home",
    "get_huddle_host_log_file",
    "get_huddle_log_dir",
    "get_huddle_settings_file",
    "get_package_dir",
]
