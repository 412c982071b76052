"""Tests for the HTTP API."""
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.api.dependencies import get_diagram_repository, get_project_repository, get_user_repository
from app.db.repositories import DiagramRepository, ProjectRepository, UserRepository
from app.main import app

from conftest import FakeTransport


@pytest_asyncio.fixture
async def client(session_factory, gateway):
    app.state.gateway = gateway
    app.dependency_overrides[get_diagram_repository] = lambda: DiagramRepository(session_factory)
    app.dependency_overrides[get_project_repository] = lambda: ProjectRepository(session_factory)
    app.dependency_overrides[get_user_repository] = lambda: UserRepository(session_factory)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


class TestDiagrams:
    async def test_empty_project(self, client, project):
        response = await client.get(f"/api/diagrams/{project}")

        assert response.status_code == 200
        body = response.json()
        assert body["data"] == {"nodes": [], "edges": []}
        assert body["version"] is None

    async def test_save_requires_user(self, client, project):
        response = await client.post(f"/api/diagrams/{project}", json={"data": {"nodes": [], "edges": []}})
        assert response.status_code == 400

    async def test_save_creates_then_versions(self, client, project):
        graph = {"nodes": [{"id": "n1", "type": "table"}], "edges": []}

        response = await client.post(f"/api/diagrams/{project}", json={"data": graph, "userId": "editor"})
        assert response.status_code == 200
        created = response.json()
        assert created["version"] == 1
        assert created["name"] == "Auto Diagram"
        assert created["data"] == graph

        graph["edges"].append({"id": "e1", "source": "n1", "target": "n1"})
        response = await client.post(f"/api/diagrams/{project}", json={"data": graph, "user_id": "owner"})
        assert response.json()["version"] == 2
        assert response.json()["id"] == created["id"]

        response = await client.get(f"/api/diagrams/{project}")
        assert response.json()["version"] == 2
        assert response.json()["data"] == graph


class TestLocks:
    async def test_acquire_list_release(self, client):
        response = await client.post(
            "/api/locks/acquire",
            json={"diagramId": "P1", "resourceId": "node-1", "userId": "editor"}
        )
        assert response.status_code == 200
        lock = response.json()
        assert lock["owner_id"] == "editor"

        response = await client.get("/api/locks/P1")
        assert [item["id"] for item in response.json()] == [lock["id"]]

        response = await client.post("/api/locks/release", json={"lockId": lock["id"]})
        assert response.json() == {"released": True}
        response = await client.post("/api/locks/release", json={"lockId": lock["id"]})
        assert response.status_code == 200

        response = await client.get("/api/locks/P1", params={"include_expired": True})
        assert response.json() == []

    async def test_acquire_validates_body(self, client):
        response = await client.post("/api/locks/acquire", json={"diagramId": "P1"})
        assert response.status_code == 422

    async def test_expired_locks_hidden_by_default(self, client, clock):
        await client.post("/api/locks/acquire", json={"diagramId": "P1", "resourceId": "n1", "userId": "editor"})
        clock.advance(31)

        assert (await client.get("/api/locks/P1")).json() == []
        assert len((await client.get("/api/locks/P1", params={"include_expired": True})).json()) == 1


async def test_room_presence(client, gateway):
    connection = await gateway.connect(FakeTransport())
    await gateway.handle_message(connection, {"type": "join", "data": {"userId": "editor", "projectId": "P1"}})

    response = await client.get("/api/collaboration/rooms/P1/presence")

    body = response.json()
    assert body["room"] == "P1"
    assert body["total_users"] == 1
    assert body["entries"][0]["identity"] == "editor"
    assert body["entries"][0]["role"] == "EDITOR"


async def test_project_role(client, project):
    response = await client.get(f"/api/projects/{project}/role", params={"user_id": "viewer"})
    assert response.json() == {"role": "VIEWER"}

    response = await client.get(f"/api/projects/{project}/role", params={"user_id": "stranger"})
    assert response.json() == {"role": None}
