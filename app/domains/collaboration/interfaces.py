from typing import Any, Dict, Optional, Protocol

from app.domains.collaboration.entities import DiagramSnapshot, Role


class RoleResolver(Protocol):
    """Членство в проектах и роли участников"""

    async def project_exists(self, project_id: str) -> bool:
        ...

    async def resolve_role(self, project_id: str, identity: str) -> Optional[Role]:
        ...


class IdentityProvisioner(Protocol):
    """Идемпотентное создание записи пользователя-заглушки; гости не материализуются"""

    async def ensure_exists(self, identity: str) -> bool:
        ...


class DiagramStore(Protocol):
    """Хранилище последнего снимка диаграммы проекта"""

    async def get_latest(self, project_id: str) -> Optional[DiagramSnapshot]:
        ...

    async def create(self, project_id: str, author_id: str, graph: Dict[str, Any]) -> DiagramSnapshot:
        ...

    async def update_graph(self, snapshot_id: str, graph: Dict[str, Any]) -> DiagramSnapshot:
        ...


class Transport(Protocol):
    """Канал до клиента (WebSocket или тестовая заглушка)"""

    async def send_json(self, data: Any) -> None:
        ...
