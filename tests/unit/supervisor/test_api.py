from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager
from pathlib import Path

import anyio
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from huddle.supervisor import ServiceSupervisor, create_control_router
from tests.unit.supervisor._fakes import Behavior, FakeLauncher


@pytest.fixture
def control_client(launcher: FakeLauncher, tmp_path: Path) -> Iterator[TestClient]:
    supervisor = ServiceSupervisor(
        port=3001,
        storage_path=str(tmp_path / "chat.sqlite"),
        launcher=launcher,
        start_timeout=1.0,
        stop_timeout=0.3,
        settle_interval=0.0,
    )

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        async with anyio.create_task_group() as tg:
            launcher.task_group = tg
            async with supervisor:
                yield

    app = FastAPI(lifespan=lifespan)
    app.include_router(create_control_router(supervisor))
    with TestClient(app) as client:
        yield client


class TestControlApi:
    def test_status_when_stopped(self, control_client: TestClient, tmp_path: Path) -> None:
        response = control_client.get("/supervisor/status")

        assert response.status_code == 200
        assert response.json() == {
            "name": "chat",
            "state": "stopped",
            "port": 3001,
            "storage_path": str(tmp_path / "chat.sqlite"),
            "pid": None,
            "error": None,
            "code": None,
        }

    def test_start_then_stop(self, control_client: TestClient, launcher: FakeLauncher) -> None:
        started = control_client.post("/supervisor/start", json={"port": 3005})

        assert started.status_code == 200
        assert started.json()["state"] == "running"
        assert started.json()["port"] == 3005
        assert control_client.get("/supervisor/status").json()["pid"] == launcher.workers[0].pid

        stopped = control_client.post("/supervisor/stop")

        assert stopped.status_code == 200
        assert stopped.json() == {"success": True, "state": "stopped", "error": None, "reason": None}

    def test_invalid_port_is_400(self, control_client: TestClient) -> None:
        response = control_client.post("/supervisor/start", json={"port": 80})

        assert response.status_code == 400
        assert response.json()["error"] == "InvalidPort"
        assert response.json()["success"] is False

    def test_worker_failure_is_502(
        self, control_client: TestClient, launcher: FakeLauncher
    ) -> None:
        launcher.default = Behavior.BIND_FAILURE

        response = control_client.post("/supervisor/start", json={"port": 3001})

        assert response.status_code == 502
        assert response.json()["error"] == "BindFailure"
        status = control_client.get("/supervisor/status").json()
        assert status["state"] == "failed"
        assert status["code"] == "BindFailure"

    def test_escalated_stop_is_502(
        self, control_client: TestClient, launcher: FakeLauncher
    ) -> None:
        launcher.default = Behavior.HANG_ON_STOP
        _ = control_client.post("/supervisor/start", json={"port": 3001})

        response = control_client.post("/supervisor/stop")

        assert response.status_code == 502
        assert response.json()["error"] == "EscalatedShutdown"
        assert response.json()["state"] == "stopped"

    def test_storage_path_change(self, control_client: TestClient, tmp_path: Path) -> None:
        new_path = str(tmp_path / "elsewhere.sqlite")

        response = control_client.put("/supervisor/storage-path", json={"storage_path": new_path})

        assert response.json() == {"storage_path": new_path, "restart_required": False}
        assert control_client.get("/supervisor/status").json()["storage_path"] == new_path
