from collections.abc import Callable
from pathlib import Path

import pytest

from huddle.exceptions import StorageConflictError, StorageError, StorageOpenError
from huddle.storage import DEFAULT_CHANNELS, ChatStore


class TestConnect:
    def test_seeds_default_channels(self, chat_store: ChatStore) -> None:
        channels = chat_store.db.list_channels(1)

        assert [channel.name for channel in channels] == list(DEFAULT_CHANNELS)
        assert not any(channel.is_deletable for channel in channels)

    def test_reopening_is_idempotent(self, tmp_path: Path) -> None:
        path = tmp_path / "chat.sqlite"
        ChatStore.connect(path).db.conn.close()

        store = ChatStore.connect(path)

        assert len(store.db.list_channels(1)) == len(DEFAULT_CHANNELS)
        store.db.conn.close()

    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "dir" / "chat.sqlite"

        store = ChatStore.connect(path)

        assert path.exists()
        store.db.conn.close()

    def test_non_database_file_is_storage_open_error(self, tmp_path: Path) -> None:
        path = tmp_path / "garbage.sqlite"
        _ = path.write_bytes(b"this is definitely not a sqlite database" * 100)

        with pytest.raises(StorageOpenError) as exc_info:
            _ = ChatStore.connect(path)

        assert exc_info.value.path == path
        assert exc_info.value.code == "StorageOpenFailure"

    @pytest.mark.anyio
    async def test_open_runs_in_thread(self, tmp_path: Path) -> None:
        store = await ChatStore.open(tmp_path / "chat.sqlite")

        channels = await store.run(store.db.list_channels, 1)

        assert len(channels) == len(DEFAULT_CHANNELS)
        await store.aclose()


class TestChatStoreLifecycle:
    @pytest.mark.anyio
    async def test_run_after_close_raises(self, chat_store: ChatStore) -> None:
        await chat_store.aclose()

        assert chat_store.closed
        with pytest.raises(StorageError, match="closed"):
            _ = await chat_store.run(chat_store.db.list_users)

    @pytest.mark.anyio
    async def test_close_is_idempotent(self, chat_store: ChatStore) -> None:
        await chat_store.aclose()
        await chat_store.aclose()

        assert chat_store.closed


class TestUsers:
    def test_duplicate_id_is_rejected(self, chat_store: ChatStore) -> None:
        assert chat_store.db.create_user(1, "alice", "hash")
        assert not chat_store.db.create_user(1, "mallory", "hash")

        user = chat_store.db.get_user(1)
        assert user is not None
        assert user.username == "alice"

    def test_import_counts_skipped_duplicates(self, chat_store: ChatStore) -> None:
        _ = chat_store.db.create_user(1, "alice", "hash")

        result = chat_store.db.import_users([(1, "again", "h"), (2, "bob", "h"), (3, "cy", "h")])

        assert (result.imported, result.skipped) == (2, 1)
        assert [user.username for user in chat_store.db.list_users()] == ["alice", "bob", "cy"]

    def test_unknown_user_is_none(self, chat_store: ChatStore) -> None:
        assert chat_store.db.get_user(42) is None


class TestChannels:
    def test_create_and_rename(self, chat_store: ChatStore) -> None:
        channel = chat_store.db.create_channel("random")

        renamed = chat_store.db.rename_channel(channel.id, "off-topic")

        assert renamed is not None
        assert renamed.name == "off-topic"
        assert renamed.is_deletable

    def test_duplicate_name_conflicts(self, chat_store: ChatStore) -> None:
        with pytest.raises(StorageConflictError):
            _ = chat_store.db.create_channel("general")

    def test_rename_missing_channel_is_none(self, chat_store: ChatStore) -> None:
        assert chat_store.db.rename_channel(999, "ghost") is None

    def test_default_channels_cannot_be_deleted(self, chat_store: ChatStore) -> None:
        general = next(c for c in chat_store.db.list_channels(1) if c.name == "general")

        assert not chat_store.db.delete_channel(general.id)
        assert chat_store.db.get_channel(general.id) is not None

    def test_delete_channel(self, chat_store: ChatStore) -> None:
        channel = chat_store.db.create_channel("temp")

        assert chat_store.db.delete_channel(channel.id)
        assert chat_store.db.get_channel(channel.id) is None


class TestGroups:
    def test_group_visible_only_to_members(
        self, chat_store: ChatStore, add_user: Callable[..., None]
    ) -> None:
        for user_id, name in [(1, "alice"), (2, "bob"), (3, "carol")]:
            add_user(user_id, name)

        group = chat_store.db.create_group("secret", 1, [2, 2, 99])

        assert group.is_group
        assert [m.id for m in chat_store.db.list_members(group.id)] == [1, 2]
        assert "secret" in [c.name for c in chat_store.db.list_channels(2)]
        assert "secret" not in [c.name for c in chat_store.db.list_channels(3)]
        assert chat_store.db.is_channel_member(group.id, 1)
        assert not chat_store.db.is_channel_member(group.id, 3)

    def test_public_channels_admit_everyone(self, chat_store: ChatStore) -> None:
        general = chat_store.db.list_channels(1)[1]

        assert chat_store.db.is_channel_member(general.id, 12345)

    def test_add_and_remove_members(
        self, chat_store: ChatStore, add_user: Callable[..., None]
    ) -> None:
        for user_id, name in [(1, "alice"), (2, "bob"), (3, "carol")]:
            add_user(user_id, name)
        group = chat_store.db.create_group("team", 1, [])

        assert chat_store.db.add_members(group.id, [2, 3, 1]) == 2
        assert chat_store.db.remove_members(group.id, [3, 7]) == 1
        assert chat_store.db.remove_members(group.id, []) == 0
        assert [m.id for m in chat_store.db.list_members(group.id)] == [1, 2]


class TestMessages:
    def test_reply_is_joined_with_target(self, chat_store: ChatStore) -> None:
        general = chat_store.db.list_channels(1)[1]
        first = chat_store.db.create_message(general.id, 1, "alice", "hello")

        reply = chat_store.db.create_message(general.id, 2, "bob", "hi!", reply_to_id=first.id)

        assert reply.reply_to_id == first.id
        assert reply.replied_to_username == "alice"
        assert reply.replied_to_text == "hello"
        assert [m.id for m in chat_store.db.list_messages(general.id)] == [first.id, reply.id]

    def test_missing_channel_conflicts(self, chat_store: ChatStore) -> None:
        with pytest.raises(StorageConflictError):
            _ = chat_store.db.create_message(999, 1, "alice", "into the void")

    def test_deleting_target_clears_reply_link(self, chat_store: ChatStore) -> None:
        general = chat_store.db.list_channels(1)[1]
        first = chat_store.db.create_message(general.id, 1, "alice", "hello")
        reply = chat_store.db.create_message(general.id, 2, "bob", "hi", reply_to_id=first.id)

        assert chat_store.db.delete_message(first.id)

        refreshed = chat_store.db.get_message(reply.id)
        assert refreshed is not None
        assert refreshed.reply_to_id is None
        assert refreshed.replied_to_text is None
        assert not chat_store.db.delete_message(first.id)


class TestReadReceipts:
    def test_unread_counts_follow_read_marker(
        self, chat_store: ChatStore, add_user: Callable[..., None]
    ) -> None:
        add_user(1, "alice")
        announcements, general = chat_store.db.list_channels(1)
        messages = [chat_store.db.create_message(general.id, 1, "alice", f"m{i}") for i in range(3)]

        assert chat_store.db.unread_counts(1) == {announcements.id: 0, general.id: 3}

        chat_store.db.mark_read(1, general.id, messages[1].id)

        assert chat_store.db.unread_counts(1)[general.id] == 1
        assert chat_store.db.last_read(1, general.id) == messages[1].id

    def test_mark_read_moves_marker(
        self, chat_store: ChatStore, add_user: Callable[..., None]
    ) -> None:
        add_user(1, "alice")
        general = chat_store.db.list_channels(1)[1]

        chat_store.db.mark_read(1, general.id, 5)
        chat_store.db.mark_read(1, general.id, 2)

        assert chat_store.db.last_read(1, general.id) == 2

    def test_last_read_defaults_to_zero(self, chat_store: ChatStore) -> None:
        assert chat_store.db.last_read(1, 1) == 0

    def test_mark_read_for_unknown_user_conflicts(self, chat_store: ChatStore) -> None:
        with pytest.raises(StorageConflictError):
            chat_store.db.mark_read(404, 1, 1)
