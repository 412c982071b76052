"""Pytest configuration and fixtures."""
import asyncio
import copy
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

# Settings читаются при импорте app.core.config
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.db import Base
from app.db import models
from app.db.repositories import LockRepository
from app.domains.collaboration.entities import DiagramGraph, DiagramSnapshot, Role
from app.domains.collaboration.gateway import CollaborationGateway
from app.domains.collaboration.locks import LockRegistry
from app.domains.collaboration.presence import PresenceTracker
from app.domains.collaboration.rooms import ConnectionManager
from app.domains.collaboration.services import MutationProcessor


class FakeClock:
    """Управляемые часы для presence и блокировок"""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeTransport:
    """Записывает все, что сервер отправил клиенту"""

    def __init__(self, fail: bool = False):
        self.sent: List[Dict[str, Any]] = []
        self.fail = fail

    async def send_json(self, data: Any) -> None:
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(data)

    def events(self, event_type: str) -> List[Any]:
        return [message["data"] for message in self.sent if message["type"] == event_type]

    def clear(self) -> None:
        self.sent.clear()


class FakeRoles:
    def __init__(self, projects: Dict[str, Dict[str, Role]]):
        self.projects = projects

    async def project_exists(self, project_id: str) -> bool:
        return project_id in self.projects

    async def resolve_role(self, project_id: str, identity: str) -> Optional[Role]:
        return self.projects.get(project_id, {}).get(identity)


class FakeIdentities:
    def __init__(self, guest_prefix: str = "guest_"):
        self.guest_prefix = guest_prefix
        self.created: set = set()
        self.calls: List[str] = []

    async def ensure_exists(self, identity: str) -> bool:
        self.calls.append(identity)
        if identity.startswith(self.guest_prefix) or identity in self.created:
            return False
        self.created.add(identity)
        return True


class InMemoryDiagramStore:
    """Хранилище снимков в памяти.

    Чтение уступает управление event loop, как настоящий запрос к БД:
    параллельные read-modify-write успевают прочитать одну и ту же версию.
    """

    def __init__(self):
        self.snapshots: Dict[str, DiagramSnapshot] = {}
        self.writes = 0
        self.fail_with: Optional[Exception] = None

    def seed(self, project_id: str, graph: Dict[str, Any], version: int = 1) -> DiagramSnapshot:
        snapshot = DiagramSnapshot(
            id=f"diagram-{project_id}",
            project_id=project_id,
            author_id="owner",
            name=f"Diagram for {project_id}",
            graph=DiagramGraph.from_dict(copy.deepcopy(graph)),
            version=version
        )
        self.snapshots[project_id] = snapshot
        return snapshot

    async def get_latest(self, project_id: str) -> Optional[DiagramSnapshot]:
        if self.fail_with is not None:
            raise self.fail_with
        snapshot = self.snapshots.get(project_id)
        result = copy.deepcopy(snapshot) if snapshot else None
        await asyncio.sleep(0)
        return result

    async def create(self, project_id: str, author_id: str, graph: Dict[str, Any]) -> DiagramSnapshot:
        self.writes += 1
        snapshot = DiagramSnapshot(
            id=f"diagram-{project_id}",
            project_id=project_id,
            author_id=author_id,
            name=f"Diagram for {project_id}",
            graph=DiagramGraph.from_dict(copy.deepcopy(graph)),
            version=1
        )
        self.snapshots[project_id] = snapshot
        return copy.deepcopy(snapshot)

    async def update_graph(self, snapshot_id: str, graph: Dict[str, Any]) -> DiagramSnapshot:
        self.writes += 1
        snapshot = next(s for s in self.snapshots.values() if s.id == snapshot_id)
        snapshot.graph = DiagramGraph.from_dict(copy.deepcopy(graph))
        snapshot.version += 1
        return copy.deepcopy(snapshot)


def node_ids(snapshot: DiagramSnapshot) -> List[str]:
    return [node["id"] for node in snapshot.graph.nodes]


def bind(manager: ConnectionManager, room: str, identity: str, role: Role) -> tuple:
    """Соединение, уже вошедшее в комнату с заданной ролью"""
    transport = FakeTransport()
    connection = manager.register(transport)
    manager.join_room(connection, room)
    connection.bind(room, identity, role, identity.upper())
    return connection, transport


@pytest_asyncio.fixture
async def session_factory():
    """In-memory SQLite с общей схемой на время теста"""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    yield factory

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def project(session_factory):
    """Проект P1 с владельцем, редактором и наблюдателем"""
    async with session_factory() as session:
        for user_id in ("owner", "editor", "viewer"):
            session.add(models.User(id=user_id, email=f"{user_id}@example.com", name=user_id.title()))
        await session.flush()
        session.add(models.Project(id="P1", name="Shop schema", owner_id="owner"))
        await session.flush()
        session.add_all([
            models.ProjectMember(project_id="P1", user_id="owner", role=models.MemberRole.OWNER),
            models.ProjectMember(project_id="P1", user_id="editor", role=models.MemberRole.EDITOR),
            models.ProjectMember(project_id="P1", user_id="viewer", role=models.MemberRole.VIEWER),
        ])
        await session.commit()
    return "P1"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def identities():
    return FakeIdentities()


@pytest.fixture
def store():
    return InMemoryDiagramStore()


@pytest_asyncio.fixture
async def gateway(session_factory, clock, identities, store):
    """Движок с фейковыми ролями и хранилищем диаграмм, блокировки в SQLite"""
    manager = ConnectionManager()
    gw = CollaborationGateway(
        manager=manager,
        presence=PresenceTracker(clock=clock),
        locks=LockRegistry(LockRepository(session_factory), identities, clock=clock),
        processor=MutationProcessor(store, identities, manager),
        roles=FakeRoles({
            "P1": {"owner": Role.OWNER, "editor": Role.EDITOR, "viewer": Role.VIEWER},
            "P2": {"editor": Role.EDITOR},
        }),
        identities=identities,
    )
    yield gw
    await gw.stop()
