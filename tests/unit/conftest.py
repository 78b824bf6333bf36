from collections.abc import Callable, Iterator
from pathlib import Path

import anyio
import pytest
from fastapi.testclient import TestClient

from huddle.auth import AuthGate, TokenSigner
from huddle.realtime import ConnectionRegistry
from huddle.server import ServerContext, create_app
from huddle.storage import ChatStore
from huddle.utils import get_fallback_logger

SECRET = "test-secret"

# Cheap hashes keep user fixtures fast
TEST_HASH_ITERATIONS = 1000


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        if Path(item.path).is_relative_to(Path(__file__).parent):
            item.add_marker(pytest.mark.unit)


class FakeHandle:
    """Connection handle that records frames and close requests."""

    def __init__(self, *, fail: bool = False) -> None:
        self.frames: list[str] = []
        self.close_code: int | None = None
        self.close_reason: str | None = None
        self.fail = fail
        self._closed = anyio.Event()

    def send_nowait(self, frame: str) -> None:
        if self.fail:
            raise anyio.WouldBlock
        if self.close_code is not None:
            raise anyio.ClosedResourceError
        self.frames.append(frame)

    def close_nowait(self, code: int, reason: str = "") -> None:
        if self.close_code is None:
            self.close_code = code
            self.close_reason = reason
        self._closed.set()

    async def wait_closed(self) -> None:
        await self._closed.wait()


@pytest.fixture
def fake_handle_factory() -> Callable[..., FakeHandle]:
    return FakeHandle


@pytest.fixture
def token_secret() -> str:
    return SECRET


@pytest.fixture
def signer(token_secret: str) -> TokenSigner:
    return TokenSigner(token_secret)


@pytest.fixture
def chat_store(tmp_path: Path) -> Iterator[ChatStore]:
    store = ChatStore.connect(tmp_path / "chat.sqlite")
    yield store
    store.db.conn.close()


@pytest.fixture
def add_user(chat_store: ChatStore) -> Callable[[int, str, str], None]:
    """Return a function that inserts a user with a cheaply hashed password."""
    from huddle.auth import hash_password

    def _add(user_id: int, username: str, password: str = "secret") -> None:
        _ = chat_store.db.create_user(
            user_id,
            username,
            hash_password(password, iterations=TEST_HASH_ITERATIONS),
        )

    return _add


@pytest.fixture
def server_context(chat_store: ChatStore, signer: TokenSigner) -> ServerContext:
    return ServerContext(
        store=chat_store,
        registry=ConnectionRegistry(),
        gate=AuthGate(signer),
        logger=get_fallback_logger(),
    )


@pytest.fixture
def client(server_context: ServerContext) -> Iterator[TestClient]:
    with TestClient(create_app(server_context)) as test_client:
        yield test_client


@pytest.fixture
def auth_headers(signer: TokenSigner) -> Callable[[int, str], dict[str, str]]:
    def _headers(user_id: int, username: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {signer.issue(user_id, username)}"}

    return _headers
