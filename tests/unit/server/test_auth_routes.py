from collections.abc import Callable

from fastapi.testclient import TestClient

from huddle.auth import TokenSigner
from huddle.storage import ChatStore


class TestRegisterAndLogin:
    def test_register_then_login(self, client: TestClient, signer: TokenSigner) -> None:
        response = client.post(
            "/register", json={"id": 1, "username": "alice", "password": "pw"}
        )
        assert response.status_code == 201

        response = client.post("/login", json={"id": 1, "password": "pw"})

        assert response.status_code == 200
        body = response.json()
        assert body["user"] == {"id": 1, "username": "alice"}
        assert signer.verify(body["token"]).user_id == 1

    def test_duplicate_registration_conflicts(
        self, client: TestClient, add_user: Callable[..., None]
    ) -> None:
        add_user(1, "alice")

        response = client.post(
            "/register", json={"id": 1, "username": "again", "password": "pw"}
        )

        assert response.status_code == 409

    def test_register_rejects_empty_fields(self, client: TestClient) -> None:
        response = client.post("/register", json={"id": 1, "username": "", "password": "pw"})

        assert response.status_code == 422

    def test_wrong_password_is_unauthorized(
        self, client: TestClient, add_user: Callable[..., None]
    ) -> None:
        add_user(1, "alice", "right")

        response = client.post("/login", json={"id": 1, "password": "wrong"})

        assert response.status_code == 401

    def test_unknown_user_is_unauthorized(self, client: TestClient) -> None:
        response = client.post("/login", json={"id": 404, "password": "pw"})

        assert response.status_code == 401


class TestAutoLogin:
    def test_valid_token_is_refreshed(
        self, client: TestClient, add_user: Callable[..., None], signer: TokenSigner
    ) -> None:
        add_user(1, "alice")

        response = client.post("/login/auto", json={"token": signer.issue(1, "alice")})

        assert response.status_code == 200
        assert response.json()["user"]["username"] == "alice"

    def test_token_from_other_secret_is_unauthorized(self, client: TestClient) -> None:
        token = TokenSigner("another-secret").issue(1, "alice")

        response = client.post("/login/auto", json={"token": token})

        assert response.status_code == 401

    def test_deleted_user_is_unauthorized(self, client: TestClient, signer: TokenSigner) -> None:
        response = client.post("/login/auto", json={"token": signer.issue(9, "ghost")})

        assert response.status_code == 401
        assert response.json()["detail"] == "User no longer exists"


class TestImportUsers:
    def test_imports_csv_rows(
        self,
        client: TestClient,
        chat_store: ChatStore,
        auth_headers: Callable[[int, str], dict[str, str]],
    ) -> None:
        _ = chat_store.db.create_user(1, "admin", "x")
        csv_body = "\ufeffid,username,password\n1,dup,pw\n2,bob,pw\nbad,row,pw\n"

        response = client.post(
            "/import-users-csv",
            content=csv_body.encode(),
            headers={**auth_headers(1, "admin"), "Content-Type": "text/csv"},
        )

        assert response.status_code == 200
        assert response.json() == {"imported": 1, "skipped": 2}
        assert client.post("/login", json={"id": 2, "password": "pw"}).status_code == 200

    def test_missing_column_is_bad_request(
        self, client: TestClient, auth_headers: Callable[[int, str], dict[str, str]]
    ) -> None:
        response = client.post(
            "/import-users-csv", content=b"id,username\n1,a\n", headers=auth_headers(1, "a")
        )

        assert response.status_code == 400

    def test_requires_authentication(self, client: TestClient) -> None:
        response = client.post("/import-users-csv", content=b"id,username,password\n")

        assert response.status_code == 401
