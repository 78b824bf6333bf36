"""Property-based tests for connection registry presence."""

import json

from hypothesis import given, strategies as st

from huddle.auth import Identity
from huddle.realtime import ConnectionRegistry

# =============================================================================
# Strategies
# =============================================================================

user_ids = st.integers(min_value=1, max_value=5)

# ("connect", user) opens a new connection; ("disconnect", user, n) closes the
# n-th handle ever opened for that user, which may already be stale
operations = st.lists(
    st.one_of(
        st.tuples(st.just("connect"), user_ids),
        st.tuples(st.just("disconnect"), user_ids, st.integers(min_value=0, max_value=3)),
    ),
    max_size=40,
)


class RecordingHandle:
    def __init__(self) -> None:
        self.frames: list[str] = []
        self.close_code: int | None = None
        self.sent_after_close = 0

    def send_nowait(self, frame: str) -> None:
        if self.close_code is not None:
            self.sent_after_close += 1
        self.frames.append(frame)

    def close_nowait(self, code: int, reason: str = "") -> None:
        self.close_code = code

    async def wait_closed(self) -> None:
        return None


def identity(user_id: int) -> Identity:
    return Identity(user_id=user_id, username=f"user{user_id}", expires_at=0)


# =============================================================================
# Presence Properties
# =============================================================================


@given(ops=operations)
def test_presence_matches_live_connections(ops: list[tuple[object, ...]]) -> None:
    """Property: presence is exactly the set of users with a current handle."""
    registry = ConnectionRegistry()
    opened: dict[int, list[RecordingHandle]] = {}
    live: dict[int, RecordingHandle] = {}

    for op in ops:
        if op[0] == "connect":
            user_id = int(op[1])  # pyright: ignore[reportArgumentType]
            handle = RecordingHandle()
            opened.setdefault(user_id, []).append(handle)
            assert registry.register(identity(user_id), handle)
            live[user_id] = handle
        else:
            user_id, index = int(op[1]), int(op[2])  # pyright: ignore[reportArgumentType]
            handles = opened.get(user_id, [])
            if index >= len(handles):
                continue
            handle = handles[index]
            removed = registry.unregister(str(user_id), handle)
            assert removed == (live.get(user_id) is handle)
            if removed:
                del live[user_id]

        assert set(registry.presence()) == {str(u) for u in live}
        assert len(registry) == len(live)

    assert all(h.sent_after_close == 0 for hs in opened.values() for h in hs)


@given(ops=operations)
def test_live_handles_see_latest_presence(ops: list[tuple[object, ...]]) -> None:
    """Property: every live handle's last frame is the current user list."""
    registry = ConnectionRegistry()
    opened: dict[int, list[RecordingHandle]] = {}

    for op in ops:
        user_id = int(op[1])  # pyright: ignore[reportArgumentType]
        if op[0] == "connect":
            handle = RecordingHandle()
            opened.setdefault(user_id, []).append(handle)
            _ = registry.register(identity(user_id), handle)
        else:
            handles = opened.get(user_id, [])
            index = int(op[2])  # pyright: ignore[reportArgumentType]
            if index < len(handles):
                _ = registry.unregister(str(user_id), handles[index])

    presence = registry.presence()
    for key in presence:
        entry = registry.get(key)
        assert entry is not None
        frames = entry.handle.frames  # pyright: ignore[reportAttributeAccessIssue]
        assert json.loads(frames[-1]) == {"type": "user_list_update", "payload": presence}


@given(ops=operations)
def test_superseded_handles_are_closed(ops: list[tuple[object, ...]]) -> None:
    """Property: only the newest handle per user stays open."""
    registry = ConnectionRegistry()
    opened: dict[int, list[RecordingHandle]] = {}

    for op in ops:
        if op[0] != "connect":
            continue
        user_id = int(op[1])  # pyright: ignore[reportArgumentType]
        handle = RecordingHandle()
        opened.setdefault(user_id, []).append(handle)
        _ = registry.register(identity(user_id), handle)

    for handles in opened.values():
        assert handles[-1].close_code is None
        assert all(h.close_code == 4000 for h in handles[:-1])


@given(ops=operations)
def test_shutdown_closes_everything(ops: list[tuple[object, ...]]) -> None:
    """Property: after shutdown nothing is live and new handles are refused."""
    registry = ConnectionRegistry()
    current: dict[int, RecordingHandle] = {}
    for op in ops:
        if op[0] == "connect":
            user_id = int(op[1])  # pyright: ignore[reportArgumentType]
            current[user_id] = RecordingHandle()
            _ = registry.register(identity(user_id), current[user_id])

    registry.shutdown()
    late = RecordingHandle()

    assert registry.presence() == []
    assert all(h.close_code == 1001 for h in current.values())
    assert not registry.register(identity(99), late)
    assert late.close_code == 1001
