import logging
import uuid
from typing import Any, Dict, List, Optional, Set

from app.domains.collaboration.entities import Role
from app.domains.collaboration.interfaces import Transport

logger = logging.getLogger(__name__)


class Connection:
    """Клиентское соединение и его привязка к комнате.

    Роль хранится здесь и берется только отсюда: роль из входящих
    сообщений клиента не учитывается.
    """

    def __init__(self, transport: Transport, connection_id: Optional[str] = None):
        self.id = connection_id or str(uuid.uuid4())
        self.transport = transport
        self.identity: Optional[str] = None
        self.room: Optional[str] = None
        self.role: Optional[Role] = None
        self.display_name: Optional[str] = None

    @property
    def is_bound(self) -> bool:
        return bool(self.identity and self.room)

    def bind(self, room: str, identity: str, role: Role, display_name: str) -> None:
        self.room = room
        self.identity = identity
        self.role = role
        self.display_name = display_name

    def unbind(self) -> None:
        self.room = None
        self.identity = None
        self.role = None
        self.display_name = None

    async def send(self, event: str, data: Any) -> None:
        await self.transport.send_json({"type": event, "data": data})

    def __repr__(self) -> str:
        return f"Connection(id={self.id}, identity={self.identity}, room={self.room})"


class ConnectionManager:
    """Реестр соединений и комнат: {room: {connection_id}}"""

    def __init__(self):
        self.connections: Dict[str, Connection] = {}
        self.rooms: Dict[str, Set[str]] = {}

    def register(self, transport: Transport) -> Connection:
        connection = Connection(transport)
        self.connections[connection.id] = connection
        logger.info(f"Connection {connection.id} registered")
        return connection

    def unregister(self, connection: Connection) -> None:
        """Отключение: соединение удаляется из всех комнат"""
        self.connections.pop(connection.id, None)
        for room in list(self.rooms):
            self._discard(room, connection.id)
        logger.info(f"Connection {connection.id} unregistered")

    def join_room(self, connection: Connection, room: str) -> None:
        self.rooms.setdefault(room, set()).add(connection.id)

    def leave_room(self, connection: Connection, room: str) -> None:
        self._discard(room, connection.id)

    def is_member(self, connection: Connection, room: Optional[str]) -> bool:
        return connection.id in self.rooms.get(room, set())

    def members(self, room: Optional[str]) -> List[Connection]:
        return [
            self.connections[connection_id]
            for connection_id in self.rooms.get(room, set())
            if connection_id in self.connections
        ]

    async def broadcast(
        self,
        room: Optional[str],
        event: str,
        data: Any,
        exclude: Optional[Connection] = None
    ) -> int:
        """Рассылка события всем участникам комнаты, кроме exclude"""
        delivered = 0
        failed: List[Connection] = []

        for connection in self.members(room):
            if exclude is not None and connection.id == exclude.id:
                continue
            try:
                await connection.send(event, data)
                delivered += 1
            except Exception as e:
                logger.warning(f"Failed to deliver {event} to connection {connection.id}: {e}")
                failed.append(connection)

        # Удаляем отключенные соединения
        for connection in failed:
            self.unregister(connection)

        return delivered

    def _discard(self, room: str, connection_id: str) -> None:
        members = self.rooms.get(room)
        if members is None:
            return
        members.discard(connection_id)
        # Пустые комнаты не храним
        if not members:
            del self.rooms[room]
