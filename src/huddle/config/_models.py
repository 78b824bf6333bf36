"""Host settings models.

This module provides the Pydantic models for the persisted host settings.
"""

from typing import Annotated, ClassVar

from pydantic import BaseModel, ConfigDict, Field

from huddle.control import MAX_PORT, MIN_PORT
from huddle.enums import LogFormat, LogLevel
from huddle.utils import get_default_storage_path


def _default_storage_path() -> str:
    return str(get_default_storage_path())


class LoggingConfig(BaseModel):
    """Logging configuration section.

    Attributes:
        level: Log level threshold.
        format: Log output format.
        file: Path to log file (empty uses the default host log).
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.JSON
    file: str = ""


class HostSettings(BaseModel):
    """Settings the host reads at startup and rewrites on port or path changes.

    Attributes:
        port: Port the chat service listens on.
        storage_path: Path of the chat database file.
        bind_host: Address the chat service binds to.
        secret: Token signing secret. Random per host process when unset.
        start_timeout: Seconds to wait for the worker to report running.
        stop_timeout: Seconds to wait for a stop acknowledgement.
        settle_interval: Pause between stop and respawn on a port change.
        control_port: Port of the host's local control API.
        logging: Host logging settings.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    port: Annotated[int, Field(ge=MIN_PORT, le=MAX_PORT)] = 3001
    storage_path: str = Field(default_factory=_default_storage_path)
    bind_host: str = "0.0.0.0"  # noqa: S104
    secret: str | None = None
    start_timeout: Annotated[float, Field(gt=0)] = 15.0
    stop_timeout: Annotated[float, Field(gt=0)] = 5.0
    settle_interval: Annotated[float, Field(ge=0)] = 0.5
    control_port: Annotated[int, Field(ge=MIN_PORT, le=MAX_PORT)] = 3100
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
