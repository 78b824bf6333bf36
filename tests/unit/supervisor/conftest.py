import pytest

from tests.unit.supervisor._fakes import FakeLauncher, RecordingSink


@pytest.fixture
def launcher() -> FakeLauncher:
    return FakeLauncher()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
