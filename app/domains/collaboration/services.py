import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from app.domains.collaboration.entities import DiagramSnapshot
from app.domains.collaboration.exceptions import AuthorizationDenied, PersistenceFailure
from app.domains.collaboration.interfaces import DiagramStore, IdentityProvisioner
from app.domains.collaboration.rooms import Connection, ConnectionManager
from app.domains.collaboration.schemas import Mutation, parse_mutation, room_of

logger = logging.getLogger(__name__)

DIAGRAM_UPDATE = "diagram-update"


class MutationProcessor:
    """Применение инкрементальных правок графа.

    Порядок обработки: проверка роли соединения, рассылка остальным
    участникам комнаты (до сохранения), затем read-modify-write снимка.

    По умолчанию read-modify-write разных отправителей не сериализуется:
    два параллельных изменения одной версии дают lost update, выигрывает
    последняя запись. Клиенты при этом уже получили оба изменения через
    рассылку и расходятся со снимком до перезагрузки. С ``serialize=True``
    чтение и запись снимка выполняются под asyncio.Lock проекта.
    """

    def __init__(
        self,
        store: DiagramStore,
        identities: IdentityProvisioner,
        manager: ConnectionManager,
        serialize: bool = False
    ):
        self.store = store
        self.identities = identities
        self.manager = manager
        self.serialize = serialize
        self._project_locks: Dict[str, asyncio.Lock] = {}
        # Сколько корутин держат или ждут блокировку проекта
        self._lock_users: Dict[str, int] = {}

    async def process(self, connection: Connection, data: Dict[str, Any]) -> DiagramSnapshot:
        """Обработка mutate-события от соединения"""
        room = self._authorize(connection, data)
        mutation = parse_mutation(data)

        logger.info(f"{mutation.action} by {connection.identity} in project {room}")

        # Оптимистичная рассылка до сохранения; при ошибке не отзывается
        await self.manager.broadcast(
            room,
            DIAGRAM_UPDATE,
            {"action": mutation.action, "payload": data.get("payload")},
            exclude=connection
        )

        try:
            async with self._critical_section(room):
                return await self._persist(room, connection.identity, mutation)
        except Exception as e:
            logger.exception(f"Failed to persist {mutation.action} for project {room}")
            raise PersistenceFailure("Failed to process diagram change") from e

    def _authorize(self, connection: Connection, data: Dict[str, Any]) -> str:
        """Роль берется из привязки соединения, никогда из payload"""
        room = room_of(data) or connection.room

        if not connection.is_bound or room != connection.room:
            logger.warning(f"Mutation rejected: connection {connection.id} is not authenticated for {room}")
            raise AuthorizationDenied("Not authenticated")

        if not connection.role or not connection.role.can_edit:
            logger.warning(f"Mutation rejected: VIEWER {connection.identity} attempted to modify {room}")
            raise AuthorizationDenied("VIEWER cannot modify diagram")

        return room

    @asynccontextmanager
    async def _critical_section(self, project_id: str):
        if not self.serialize:
            yield
            return

        lock = self._project_locks.setdefault(project_id, asyncio.Lock())
        self._lock_users[project_id] = self._lock_users.get(project_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[project_id] -= 1
            if not self._lock_users[project_id]:
                del self._lock_users[project_id]
                del self._project_locks[project_id]

    async def _persist(self, project_id: str, author_id: str, mutation: Mutation) -> DiagramSnapshot:
        existing: Optional[DiagramSnapshot] = await self.store.get_latest(project_id)

        if existing is not None:
            graph = existing.graph.copy()
            mutation.apply_to(graph)
            return await self.store.update_graph(existing.id, graph.to_dict())

        logger.warning(f"No diagram found for project {project_id}, creating new one")
        await self.identities.ensure_exists(author_id)
        return await self.store.create(project_id, author_id, mutation.seed().to_dict())
