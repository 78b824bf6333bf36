"""Shared test fixtures for huddle tests."""

import socket
from pathlib import Path
from typing import cast

import pytest

from huddle.config import ENV_OVERRIDES


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def huddle_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point HUDDLE_HOME at a temporary directory and clear HUDDLE_* overrides."""
    home = tmp_path / "huddle-home"
    monkeypatch.setenv("HUDDLE_HOME", str(home))
    for name in (*ENV_OVERRIDES, "HUDDLE_DEBUG", "HUDDLE_STRICT_CONFIG"):
        monkeypatch.delenv(name, raising=False)
    return home


def find_open_port() -> int:
    """Find an available port by binding to port 0."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        addr = cast("tuple[str, int]", s.getsockname())
        return addr[1]


@pytest.fixture
def open_port() -> int:
    return find_open_port()
