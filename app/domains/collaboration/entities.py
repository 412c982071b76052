import copy
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite возвращает naive datetime, считаем такие значения UTC"""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class Role(Enum):
    """Роль участника проекта"""
    OWNER = "OWNER"
    EDITOR = "EDITOR"
    VIEWER = "VIEWER"

    @property
    def can_edit(self) -> bool:
        return self is not Role.VIEWER


class PresenceEntry:
    """Присутствие пользователя в комнате проекта"""

    def __init__(
        self,
        identity: str,
        display_name: str,
        role: Role,
        connection_id: str,
        joined_at: Optional[datetime] = None,
        last_heartbeat: Optional[datetime] = None
    ):
        self.identity = identity
        self.display_name = display_name
        self.role = role
        self.connection_id = connection_id
        self.joined_at = joined_at or utcnow()
        self.last_heartbeat = last_heartbeat or self.joined_at

    def touch(self, now: datetime) -> None:
        """Обновление времени последнего heartbeat"""
        self.last_heartbeat = now

    def is_stale(self, now: datetime, timeout: timedelta) -> bool:
        return now - self.last_heartbeat >= timeout

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identity": self.identity,
            "display_name": self.display_name,
            "role": self.role.value,
            "connection_id": self.connection_id,
            "joined_at": self.joined_at.isoformat(),
            "last_heartbeat": self.last_heartbeat.isoformat()
        }

    def __repr__(self) -> str:
        return f"PresenceEntry(identity={self.identity}, role={self.role.value}, conn={self.connection_id})"


class Lock:
    """Advisory-блокировка ресурса диаграммы.

    Блокировка ничего не запрещает: повторный acquire перезаписывает
    владельца, а истечение срока интерпретирует потребитель (UI).
    """

    def __init__(
        self,
        id: str,
        diagram_id: str,
        resource_id: str,
        owner_id: str,
        acquired_at: datetime,
        expires_at: datetime
    ):
        self.id = id
        self.diagram_id = diagram_id
        self.resource_id = resource_id
        self.owner_id = owner_id
        self.acquired_at = acquired_at
        self.expires_at = expires_at

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) >= self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "diagram_id": self.diagram_id,
            "resource_id": self.resource_id,
            "owner_id": self.owner_id,
            "acquired_at": self.acquired_at.isoformat(),
            "expires_at": self.expires_at.isoformat()
        }

    def __repr__(self) -> str:
        return f"Lock(diagram={self.diagram_id}, resource={self.resource_id}, owner={self.owner_id})"


class DiagramGraph:
    """Граф диаграммы: упорядоченные списки узлов и связей.

    Узлы и связи хранятся как JSON-объекты в том виде, в каком их прислал
    клиент; сервер опирается только на поле ``id``.
    """

    def __init__(
        self,
        nodes: Optional[List[Dict[str, Any]]] = None,
        edges: Optional[List[Dict[str, Any]]] = None
    ):
        self.nodes = nodes if nodes is not None else []
        self.edges = edges if edges is not None else []

    def add_node(self, node: Dict[str, Any]) -> bool:
        """Идемпотентная вставка узла"""
        if any(n.get("id") == node["id"] for n in self.nodes):
            return False
        self.nodes.append(node)
        return True

    def update_node(self, node_id: str, fields: Dict[str, Any]) -> None:
        """Поверхностное слияние полей в узел"""
        self.nodes = [{**n, **fields} if n.get("id") == node_id else n for n in self.nodes]

    def move_node(self, node_id: str, position: Dict[str, Any]) -> None:
        self.nodes = [{**n, "position": position} if n.get("id") == node_id else n for n in self.nodes]

    def delete_node(self, node_id: str) -> None:
        self.nodes = [n for n in self.nodes if n.get("id") != node_id]

    def add_edge(self, edge: Dict[str, Any]) -> bool:
        """Идемпотентная вставка связи"""
        if any(e.get("id") == edge["id"] for e in self.edges):
            return False
        self.edges.append(edge)
        return True

    def delete_edge(self, edge_id: str) -> None:
        self.edges = [e for e in self.edges if e.get("id") != edge_id]

    def sync_edges(self, edges: List[Dict[str, Any]]) -> None:
        self.edges = list(edges)

    def copy(self) -> "DiagramGraph":
        return DiagramGraph(copy.deepcopy(self.nodes), copy.deepcopy(self.edges))

    def to_dict(self) -> Dict[str, Any]:
        return {"nodes": self.nodes, "edges": self.edges}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "DiagramGraph":
        data = data or {}
        return cls(
            nodes=list(data.get("nodes") or []),
            edges=list(data.get("edges") or [])
        )

    def __repr__(self) -> str:
        return f"DiagramGraph(nodes={len(self.nodes)}, edges={len(self.edges)})"


class DiagramSnapshot:
    """Последнее сохраненное состояние диаграммы проекта"""

    def __init__(
        self,
        id: str,
        project_id: str,
        author_id: str,
        name: str,
        graph: DiagramGraph,
        version: int = 1,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None
    ):
        self.id = id
        self.project_id = project_id
        self.author_id = author_id
        self.name = name
        self.graph = graph
        self.version = version
        self.created_at = created_at or utcnow()
        self.updated_at = updated_at or self.created_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "author_id": self.author_id,
            "name": self.name,
            "data": self.graph.to_dict(),
            "version": self.version,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat()
        }

    def __repr__(self) -> str:
        return f"DiagramSnapshot(project={self.project_id}, version={self.version}, {self.graph!r})"
