"""Tests for the HTTP/WebSocket shell."""

import pytest


@pytest.fixture
def client(make_orchestrator, monkeypatch):
    from fastapi.testclient import TestClient
    from mindloom import server
    from mindloom.common.config import MindloomConfig

    monkeypatch.setattr(server, "load_config", lambda: MindloomConfig())
    monkeypatch.setattr(server, "ensure_directories", lambda: None)
    monkeypatch.setattr(server, "load_dotenv", lambda *args, **kwargs: False)
    monkeypatch.setattr(
        server,
        "create_orchestrator",
        lambda cfg, broker: make_orchestrator(notifier=broker, poll_interval=0.05),
    )

    with TestClient(server.app) as test_client:
        yield test_client


HEADERS = {"X-User-Id": "u1"}


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["initialized"] is True
        assert data["agents"] == 4


class TestTasks:
    def test_submit_returns_task_id(self, client):
        response = client.post("/tasks", json={"prompt": "Explain quantum entanglement"}, headers=HEADERS)

        assert response.status_code == 201
        body = response.json()
        assert body["taskId"].startswith("task-")
        assert body["status"] == "pending"

    def test_submit_requires_user(self, client):
        response = client.post("/tasks", json={"prompt": "hello"})
        assert response.status_code == 401

    @pytest.mark.parametrize("prompt", ["", "x" * 5001])
    def test_prompt_length_validated(self, client, prompt):
        response = client.post("/tasks", json={"prompt": prompt}, headers=HEADERS)
        assert response.status_code == 422

    def test_context_must_be_object(self, client):
        response = client.post("/tasks", json={"prompt": "hi", "context": ["not", "an", "object"]}, headers=HEADERS)
        assert response.status_code == 422

    def test_get_task_is_scoped_to_owner(self, client):
        task_id = client.post("/tasks", json={"prompt": "Explain entropy"}, headers=HEADERS).json()["taskId"]

        mine = client.get(f"/tasks/{task_id}", headers=HEADERS)
        theirs = client.get(f"/tasks/{task_id}", headers={"X-User-Id": "someone-else"})

        assert mine.status_code == 200
        assert mine.json()["id"] == task_id
        assert mine.json()["status"] in {"pending", "processing", "completed", "failed"}
        assert theirs.status_code == 404

    def test_unknown_task(self, client):
        assert client.get("/tasks/task-0-missing", headers=HEADERS).status_code == 404

    def test_history(self, client):
        for prompt in ("first", "second"):
            client.post("/tasks", json={"prompt": prompt}, headers=HEADERS)

        data = client.get("/tasks", headers=HEADERS).json()

        assert data["count"] == 2
        assert {item["prompt"] for item in data["items"]} == {"first", "second"}

    @pytest.mark.parametrize("limit", [0, -1, 501])
    def test_history_limit_is_bounded(self, client, limit):
        response = client.get("/tasks", params={"limit": limit}, headers=HEADERS)
        assert response.status_code == 422

    def test_history_limit(self, client):
        for prompt in ("first", "second", "third"):
            client.post("/tasks", json={"prompt": prompt}, headers=HEADERS)

        data = client.get("/tasks", params={"limit": 2}, headers=HEADERS).json()

        assert data["count"] == 2


class TestAgents:
    def test_status(self, client):
        agents = client.get("/agents/status").json()["agents"]

        assert [a["name"] for a in agents] == ["Aria", "Zephyr", "Sage", "Nova"]
        assert all(a["status"] in {"idle", "busy", "learning"} for a in agents)
        assert set(agents[0]) == {
            "id", "name", "status", "specialization", "knowledgeBaseSize", "curiosityLevel",
        }

    def test_metrics(self, client):
        client.post("/tasks", json={"prompt": "Explain entropy"}, headers=HEADERS)

        metrics = client.get("/agents/metrics", headers=HEADERS).json()

        assert metrics["total_tasks"] == 1


class TestEvents:
    def test_completed_task_is_pushed_to_user_channel(self, client):
        with client.websocket_connect("/ws/u1") as ws:
            task_id = client.post(
                "/tasks", json={"prompt": "Explain quantum entanglement"}, headers=HEADERS
            ).json()["taskId"]

            message = ws.receive_json()

        assert message["event"] == "task-progress"
        assert message["data"]["taskId"] == task_id
        assert message["data"]["status"] == "completed"
        assert message["data"]["result"]["content"]

    def test_disconnect_unsubscribes(self, client):
        import time
        from mindloom import server

        with client.websocket_connect("/ws/u2"):
            assert server.broker.subscriber_count("u2") == 1

        deadline = time.monotonic() + 2.0
        while server.broker.subscriber_count("u2") and time.monotonic() < deadline:
            time.sleep(0.01)
        assert server.broker.subscriber_count("u2") == 0


class TestStorage:
    def test_default_config_persists_under_data_dir(self, tmp_path, monkeypatch):
        from fastapi.testclient import TestClient
        from mindloom import server
        from mindloom.common.config import MindloomConfig

        monkeypatch.setattr(server, "load_config", lambda: MindloomConfig())
        monkeypatch.setattr(server, "ensure_directories", lambda: None)
        monkeypatch.setattr(server, "load_dotenv", lambda *args, **kwargs: False)
        monkeypatch.setattr("mindloom.orchestrator.orchestrator.DATA_DIR", tmp_path)

        with TestClient(server.app):
            assert server.orchestrator.queue.path == tmp_path / "queue.json"
            assert len(server.orchestrator.queue) == 0
