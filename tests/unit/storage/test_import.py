import pytest

from huddle.exceptions import StorageError
from huddle.storage import parse_users_csv


class TestParseUsersCsv:
    def test_parses_valid_rows(self) -> None:
        rows, dropped = parse_users_csv("id,username,password\n1,alice,pw1\n2,bob,pw2\n")

        assert rows == [(1, "alice", "pw1"), (2, "bob", "pw2")]
        assert dropped == 0

    def test_drops_incomplete_rows(self) -> None:
        text = "id,username,password\nx,alice,pw\n2,,pw\n3,carol,\n4,dave,pw\n"

        rows, dropped = parse_users_csv(text)

        assert rows == [(4, "dave", "pw")]
        assert dropped == 3

    def test_extra_columns_are_ignored(self) -> None:
        rows, _ = parse_users_csv("email,password,username,id\na@x,pw,alice, 7 \n")

        assert rows == [(7, "alice", "pw")]

    def test_missing_column_is_rejected(self) -> None:
        with pytest.raises(StorageError, match="password"):
            _ = parse_users_csv("id,username\n1,alice\n")
