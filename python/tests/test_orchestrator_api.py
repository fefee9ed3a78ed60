"""Tests for the orchestrator FastAPI application (orchestrator/api/orchestrator_api.py).

Uses httpx AsyncClient over ASGITransport.  Collaborator services are
replaced by an in-process fake invoker.
"""

import pytest
from httpx import AsyncClient, ASGITransport

from orchestrator.config.settings import Settings
from orchestrator.middleware.request_id import get_request_id


class RecordingInvoker:
    def __init__(self):
        self.calls = []
        self.request_ids = []

    async def invoke(self, route, payload):
        self.calls.append((route, payload))
        self.request_ids.append(get_request_id())
        return {"service": route.service}

    async def close(self):
        pass


@pytest.fixture(autouse=True)
def _reset_container():
    """Reset DI container between tests."""
    from orchestrator import di_container
    di_container._container = None
    yield
    di_container._container = None


@pytest.fixture
def invoker():
    return RecordingInvoker()


@pytest.fixture
def container(invoker):
    from orchestrator import di_container
    container = di_container.OrchestratorContainer(settings=Settings(_env_file=None))
    container._invoker = invoker
    di_container._container = container
    return container


@pytest.fixture
async def client(container):
    from orchestrator.api.orchestrator_api import app
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


PIPELINE = [
    {"id": "t1", "type": "research", "payload": {"query": "ai"}},
    {"id": "t2", "type": "social_trends", "dependsOn": ["t1"]},
]


async def _create(client, tasks=PIPELINE, session="s1"):
    resp = await client.post("/orchestrator/graphs", json={"sessionId": session, "tasks": tasks})
    assert resp.status_code == 201
    return resp.json()["graph"]["id"]


# --- Health & routes ---

async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["mode"] == "live"
    assert "X-Request-ID" in resp.headers


async def test_request_id_echoed(client):
    resp = await client.get("/health", headers={"X-Request-ID": "req-1"})
    assert resp.headers["X-Request-ID"] == "req-1"


async def test_routes(client):
    resp = await client.get("/orchestrator/routes")
    assert resp.status_code == 200
    routes = resp.json()["routes"]
    assert routes["social_post"] == {
        "service": "codex-social",
        "method": "POST",
        "endpoint": "http://localhost:4800/social/upload",
    }
    assert routes["get_revenue"]["method"] == "GET"


# --- Graph creation ---

async def test_create_graph(client):
    resp = await client.post("/orchestrator/graphs", json={"sessionId": "s1", "tasks": PIPELINE})
    assert resp.status_code == 201
    data = resp.json()
    assert data["ok"] is True
    assert data["stats"]["total"] == 2
    assert data["stats"]["pending"] == 2
    assert [t["status"] for t in data["graph"]["tasks"]] == ["pending", "pending"]
    assert data["blocked"] == {"t2": ["t1"]}
    assert data["failed"] is False


async def test_list_graphs(client):
    graph_id = await _create(client)
    resp = await client.get("/orchestrator/graphs", params={"sessionId": "s1"})
    assert resp.json()["graphIds"] == [graph_id]

    other = await client.get("/orchestrator/graphs", params={"sessionId": "s2"})
    assert other.json()["graphIds"] == []


async def test_create_duplicate_ids_rejected(client):
    resp = await client.post("/orchestrator/graphs", json={
        "sessionId": "s1",
        "tasks": [{"id": "a", "type": "research"}, {"id": "a", "type": "research"}],
    })
    assert resp.status_code == 400
    data = resp.json()
    assert data["ok"] is False
    assert data["error"] == "validation"
    assert data["details"] == {"task_id": "a"}


async def test_create_dangling_dependency_rejected(client):
    resp = await client.post("/orchestrator/graphs", json={
        "sessionId": "s1",
        "tasks": [{"id": "a", "type": "research", "dependsOn": ["ghost"]}],
    })
    assert resp.status_code == 400
    assert "ghost" in resp.json()["message"]


async def test_create_requires_tasks(client):
    resp = await client.post("/orchestrator/graphs", json={"sessionId": "s1", "tasks": []})
    assert resp.status_code == 422


# --- Execution ---

async def test_execute_stored_graph(client, invoker):
    graph_id = await _create(client)

    resp = await client.post("/orchestrator/execute", json={"sessionId": "s1", "graphId": graph_id})

    assert resp.status_code == 200
    data = resp.json()
    assert data["report"]["reason"] == "complete"
    assert data["report"]["dispatched"] == [["t1"], ["t2"]]
    assert data["stats"]["done"] == 2
    assert data["graph"]["tasks"][1]["result"] == {"service": "codex-social"}
    assert invoker.calls[1][1]["dependencyResults"] == {"t1": {"service": "codex-knowledge-v2"}}

    status = await client.get("/orchestrator/status", params={"sessionId": "s1", "graphId": graph_id})
    assert status.json()["stats"]["done"] == 2
    assert status.json()["executing"] is False


async def test_execute_unknown_graph(client):
    resp = await client.post("/orchestrator/execute", json={"sessionId": "s1", "graphId": "nope"})
    assert resp.status_code == 404
    data = resp.json()
    assert data["error"] == "not_found"
    assert data["message"] == "No graph found with ID nope"


async def test_execute_graph_from_other_session(client):
    graph_id = await _create(client, session="s1")
    resp = await client.post("/orchestrator/execute", json={"sessionId": "s2", "graphId": graph_id})
    assert resp.status_code == 404


async def test_execute_conflict(client, container, invoker):
    graph_id = await _create(client)
    container.executing.add(("s1", graph_id))

    resp = await client.post("/orchestrator/execute", json={"sessionId": "s1", "graphId": graph_id})

    assert resp.status_code == 409
    assert resp.json()["error"] == "conflict"
    assert invoker.calls == []


async def test_run_creates_and_executes(client, invoker):
    resp = await client.post(
        "/orchestrator/run",
        json={"sessionId": "s1", "tasks": PIPELINE},
        headers={"X-Request-ID": "req-run"},
    )

    assert resp.status_code == 200
    data = resp.json()
    assert data["stats"]["done"] == 2
    assert invoker.request_ids == ["req-run", "req-run"]

    listed = await client.get("/orchestrator/graphs", params={"sessionId": "s1"})
    assert listed.json()["graphIds"] == [data["graph"]["id"]]


async def test_run_records_task_failures(client):
    resp = await client.post("/orchestrator/run", json={
        "sessionId": "s1",
        "tasks": [
            {"id": "a", "type": "xyz_unknown"},
            {"id": "b", "type": "research", "dependsOn": ["a"]},
        ],
    })

    assert resp.status_code == 200
    data = resp.json()
    assert data["stats"]["failed"] == 2
    tasks = {t["id"]: t for t in data["graph"]["tasks"]}
    assert tasks["a"]["error"].startswith("Route planning failed: Unknown task type")
    assert tasks["b"]["error"] == "blocked by failed dependency a"
    assert data["report"]["cascaded"] == ["b"]


async def test_status_unknown_graph(client):
    resp = await client.get("/orchestrator/status", params={"sessionId": "s1", "graphId": "nope"})
    assert resp.status_code == 404
