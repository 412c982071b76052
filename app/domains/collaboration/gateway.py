import asyncio
import contextlib
import logging
from datetime import timedelta
from typing import Any, Awaitable, Callable, Dict, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import Settings
from app.domains.collaboration.entities import Role
from app.domains.collaboration.exceptions import CollaborationError, MalformedInput, MissingFields, NotFound
from app.domains.collaboration.interfaces import IdentityProvisioner, RoleResolver, Transport
from app.domains.collaboration.locks import LockRegistry
from app.domains.collaboration.presence import PresenceTracker
from app.domains.collaboration.rooms import Connection, ConnectionManager
from app.domains.collaboration.schemas import (
    HeartbeatEvent, JoinEvent, LeaveEvent, LockAcquireEvent, LockReleaseEvent
)
from app.domains.collaboration.services import MutationProcessor

logger = logging.getLogger(__name__)

PRESENCE_UPDATE = "presence-update"
LOCK_UPDATE = "lock-update"
LOCK_REMOVED = "lock-removed"

DEFAULT_DISPLAY_NAME = "Guest"

EventT = TypeVar("EventT", bound=BaseModel)


class CollaborationGateway:
    """Точка входа движка совместного редактирования.

    Принимает соединения, привязывает к ним identity и роль, раскладывает
    входящие события по компонентам и рассылает исходящие участникам
    комнаты. Владеет фоновой задачей очистки присутствия: ``start()`` при
    старте приложения, ``stop()`` при остановке.
    """

    def __init__(
        self,
        manager: ConnectionManager,
        presence: PresenceTracker,
        locks: LockRegistry,
        processor: MutationProcessor,
        roles: RoleResolver,
        identities: IdentityProvisioner,
        sweep_interval: float = 60,
        heartbeat_interval: float = 30
    ):
        self.manager = manager
        self.presence = presence
        self.locks = locks
        self.processor = processor
        self.roles = roles
        self.identities = identities
        self.sweep_interval = sweep_interval
        self.heartbeat_interval = heartbeat_interval
        self._sweep_task: Optional[asyncio.Task] = None

        self._handlers: Dict[str, Callable[[Connection, Dict[str, Any]], Awaitable[None]]] = {
            "join": self._on_join,
            "heartbeat": self._on_heartbeat,
            "leave": self._on_leave,
            "mutate": self._on_mutate,
            "lock-acquire": self._on_lock_acquire,
            "lock-release": self._on_lock_release,
            "ping": self._on_ping,
        }

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession]
    ) -> "CollaborationGateway":
        """Сборка движка поверх репозиториев SQLAlchemy"""
        from app.db.repositories import DiagramRepository, LockRepository, ProjectRepository, UserRepository

        users = UserRepository(session_factory, guest_prefix=settings.guest_prefix)
        manager = ConnectionManager()
        return cls(
            manager=manager,
            presence=PresenceTracker(timeout=timedelta(seconds=settings.presence_timeout_seconds)),
            locks=LockRegistry(
                LockRepository(session_factory),
                users,
                ttl=timedelta(seconds=settings.lock_ttl_seconds)
            ),
            processor=MutationProcessor(
                DiagramRepository(session_factory),
                users,
                manager,
                serialize=settings.serialize_mutations
            ),
            roles=ProjectRepository(session_factory),
            identities=users,
            sweep_interval=settings.presence_sweep_interval_seconds,
            heartbeat_interval=settings.heartbeat_interval_seconds
        )

    # --- Жизненный цикл ---

    async def start(self) -> None:
        if self._sweep_task is None:
            self._sweep_task = asyncio.create_task(self._sweep_loop())
            logger.info(f"Presence sweep started (every {self.sweep_interval}s)")

    async def stop(self) -> None:
        if self._sweep_task is None:
            return
        self._sweep_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._sweep_task
        self._sweep_task = None
        logger.info("Presence sweep stopped")

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            try:
                await self.sweep()
            except Exception:
                logger.exception("Presence sweep failed")

    async def sweep(self) -> None:
        """Одна итерация очистки: presence-update только в комнаты, где кто-то удален"""
        for room, entries in self.presence.sweep().items():
            await self.manager.broadcast(room, PRESENCE_UPDATE, [e.to_dict() for e in entries])

    # --- Соединения ---

    async def connect(self, transport: Transport) -> Connection:
        connection = self.manager.register(transport)
        await connection.send("connected", {
            "connection_id": connection.id,
            "heartbeat_interval": self.heartbeat_interval
        })
        return connection

    async def disconnect(self, connection: Connection) -> None:
        room, identity = connection.room, connection.identity
        self.manager.unregister(connection)
        connection.unbind()

        if room and identity:
            entries = self.presence.remove_connection(room, identity, connection.id)
            if entries is not None:
                await self.manager.broadcast(room, PRESENCE_UPDATE, [e.to_dict() for e in entries])
            logger.info(f"{identity} disconnected from {room}")

    async def handle_message(self, connection: Connection, message: Any) -> None:
        """Обработка одного входящего события {"type": ..., "data": {...}}"""
        event_type = message.get("type") if isinstance(message, dict) else None
        data = message.get("data", {}) if isinstance(message, dict) else None
        if data is None:
            data = {}

        handler = self._handlers.get(event_type)
        try:
            if handler is None:
                raise MalformedInput(f"Unknown event type: {event_type}")
            if not isinstance(data, dict):
                raise MalformedInput(f"Event {event_type} requires an object payload")
            await handler(connection, data)
        except CollaborationError as e:
            logger.warning(f"[{event_type}] {type(e).__name__} for connection {connection.id}: {e.message}")
            await connection.send(e.event, e.to_dict())
        except Exception:
            logger.exception(f"[{event_type}] unexpected error for connection {connection.id}")
            await connection.send("error", {"message": f"Failed to process {event_type}"})

    # --- Обработчики событий ---

    async def _on_join(self, connection: Connection, data: Dict[str, Any]) -> None:
        event = self._parse(JoinEvent, data)
        if not event.identity or not event.room:
            raise MissingFields()

        # Повторный join того же соединения не создает дублей
        if self.manager.is_member(connection, event.room):
            logger.warning(f"Connection {connection.id} already in room {event.room}, skipping re-join")
            return

        if not await self.roles.project_exists(event.room):
            raise NotFound(event.room)

        # Гостей провайдер пропускает сам
        await self.identities.ensure_exists(event.identity)

        role = await self.roles.resolve_role(event.room, event.identity) or Role.VIEWER
        display_name = event.display_name or DEFAULT_DISPLAY_NAME

        # Соединение состоит не более чем в одной комнате
        if connection.room and connection.room != event.room:
            await self._detach(connection)

        self.manager.join_room(connection, event.room)
        connection.bind(event.room, event.identity, role, display_name)

        entries = self.presence.join(event.room, event.identity, display_name, role, connection.id)
        await self.manager.broadcast(event.room, PRESENCE_UPDATE, [e.to_dict() for e in entries])
        logger.info(f"Broadcasting presence: {len(entries)} user(s) online in {event.room}")

    async def _on_heartbeat(self, connection: Connection, data: Dict[str, Any]) -> None:
        event = self._parse(HeartbeatEvent, data)
        self.presence.heartbeat(event.room or connection.room, event.identity or connection.identity)

    async def _on_leave(self, connection: Connection, data: Dict[str, Any]) -> None:
        event = self._parse(LeaveEvent, data)
        room = event.room or connection.room
        identity = event.identity or connection.identity
        if not room or not identity:
            raise MissingFields()

        entries = self.presence.leave(room, identity)
        self.manager.leave_room(connection, room)
        if connection.room == room:
            connection.unbind()
        await self.manager.broadcast(room, PRESENCE_UPDATE, [e.to_dict() for e in entries])

    async def _on_mutate(self, connection: Connection, data: Dict[str, Any]) -> None:
        await self.processor.process(connection, data)

    async def _on_lock_acquire(self, connection: Connection, data: Dict[str, Any]) -> None:
        event = self._parse(LockAcquireEvent, data)
        room = event.room or event.diagram_id or connection.room
        diagram_id = event.diagram_id or room
        owner_id = event.owner_id or connection.identity
        if not diagram_id or not owner_id:
            raise MissingFields("Missing room or owner")

        lock = await self.locks.acquire(diagram_id, event.resource_id, owner_id)
        await self.manager.broadcast(room, LOCK_UPDATE, lock.to_dict())

    async def _on_lock_release(self, connection: Connection, data: Dict[str, Any]) -> None:
        event = self._parse(LockReleaseEvent, data)
        room = event.room or event.diagram_id or connection.room
        if not room:
            raise MissingFields("Missing room")

        await self.locks.release(event.lock_id)
        await self.manager.broadcast(room, LOCK_REMOVED, {"lock_id": event.lock_id})

    async def _on_ping(self, connection: Connection, data: Dict[str, Any]) -> None:
        await connection.send("pong", {})

    async def _detach(self, connection: Connection) -> None:
        """Отвязка соединения от текущей комнаты с рассылкой присутствия"""
        room, identity = connection.room, connection.identity
        self.manager.leave_room(connection, room)
        connection.unbind()
        entries = self.presence.remove_connection(room, identity, connection.id)
        if entries is not None:
            await self.manager.broadcast(room, PRESENCE_UPDATE, [e.to_dict() for e in entries])

    @staticmethod
    def _parse(model: Type[EventT], data: Dict[str, Any]) -> EventT:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise MalformedInput(f"Invalid {model.__name__} payload", context={"errors": e.errors()}) from e
