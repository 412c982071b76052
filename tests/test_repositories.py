"""Tests for the SQLAlchemy repositories."""
from datetime import datetime

import pytest

from app.db import models
from app.db.repositories import DiagramNotFound, DiagramRepository, ProjectRepository, UserRepository
from app.domains.collaboration.entities import Role


@pytest.fixture
def diagrams(session_factory):
    return DiagramRepository(session_factory)


async def test_get_latest_without_snapshot(diagrams, project):
    assert await diagrams.get_latest(project) is None


async def test_create_starts_at_version_one(diagrams, project):
    graph = {"nodes": [{"id": "n1"}], "edges": []}
    snapshot = await diagrams.create(project, "editor", graph)

    assert snapshot.version == 1
    assert snapshot.name == "Diagram for P1"
    assert snapshot.graph.to_dict() == graph
    assert snapshot.created_at.tzinfo is not None

    latest = await diagrams.get_latest(project)
    assert latest.id == snapshot.id


async def test_update_graph_increments_version(diagrams, project):
    snapshot = await diagrams.create(project, "editor", {"nodes": [], "edges": []})

    updated = await diagrams.update_graph(snapshot.id, {"nodes": [{"id": "n1"}], "edges": []})
    assert updated.version == 2
    updated = await diagrams.update_graph(snapshot.id, {"nodes": [], "edges": [{"id": "e1"}]})
    assert updated.version == 3

    latest = await diagrams.get_latest(project)
    assert latest.version == 3
    assert latest.graph.to_dict() == {"nodes": [], "edges": [{"id": "e1"}]}


async def test_update_missing_snapshot(diagrams):
    with pytest.raises(DiagramNotFound):
        await diagrams.update_graph("missing", {"nodes": [], "edges": []})


async def test_latest_is_most_recently_updated(diagrams, session_factory, project):
    async with session_factory() as session:
        session.add_all([
            models.Diagram(
                id="stale", project_id=project, author_id="owner", name="Old", data={"nodes": [], "edges": []},
                created_at=datetime(2026, 3, 1), updated_at=datetime(2026, 3, 1)
            ),
            models.Diagram(
                id="fresh", project_id=project, author_id="owner", name="Main", data={"nodes": [], "edges": []},
                created_at=datetime(2026, 1, 1), updated_at=datetime(2026, 5, 1)
            ),
        ])
        await session.commit()

    assert (await diagrams.get_latest(project)).id == "fresh"


async def test_ensure_exists_creates_placeholder_once(session_factory):
    users = UserRepository(session_factory)

    assert await users.ensure_exists("u-42") is True
    assert await users.ensure_exists("u-42") is False

    async with session_factory() as session:
        user = await session.get(models.User, "u-42")
    assert user.email == "u-42@auto.local"


async def test_ensure_exists_keeps_existing_user(session_factory, project):
    users = UserRepository(session_factory)
    assert await users.ensure_exists("editor") is False

    async with session_factory() as session:
        user = await session.get(models.User, "editor")
    assert user.email == "editor@example.com"


async def test_project_roles(session_factory, project):
    projects = ProjectRepository(session_factory)

    assert await projects.project_exists(project) is True
    assert await projects.project_exists("P404") is False
    assert await projects.resolve_role(project, "owner") is Role.OWNER
    assert await projects.resolve_role(project, "editor") is Role.EDITOR
    assert await projects.resolve_role(project, "viewer") is Role.VIEWER
    assert await projects.resolve_role(project, "stranger") is None


async def test_ensure_exists_skips_guests(session_factory):
    users = UserRepository(session_factory, guest_prefix="anon-")

    assert await users.ensure_exists("anon-1") is False
    assert await users.ensure_exists("guest_1") is True

    async with session_factory() as session:
        assert await session.get(models.User, "anon-1") is None
