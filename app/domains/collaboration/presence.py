import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from app.domains.collaboration.entities import PresenceEntry, Role, utcnow
from app.domains.collaboration.exceptions import MissingFields

logger = logging.getLogger(__name__)


class PresenceTracker:
    """Присутствие пользователей по комнатам: {room: {identity: PresenceEntry}}.

    Методы синхронные и не уступают управление event loop, поэтому
    каждый вызов атомарен относительно других корутин.
    """

    def __init__(
        self,
        timeout: timedelta = timedelta(seconds=60),
        clock: Callable[[], datetime] = utcnow
    ):
        self.timeout = timeout
        self.clock = clock
        self._rooms: Dict[str, Dict[str, PresenceEntry]] = {}

    def join(
        self,
        room: Optional[str],
        identity: Optional[str],
        display_name: str,
        role: Role,
        connection_id: str
    ) -> List[PresenceEntry]:
        """Вход в комнату: запись для identity создается или заменяется"""
        if not room or not identity:
            raise MissingFields()

        now = self.clock()
        entries = self._rooms.setdefault(room, {})
        # Переподключение заменяет старую запись, а не дублирует ее
        entries[identity] = PresenceEntry(
            identity=identity,
            display_name=display_name,
            role=role,
            connection_id=connection_id,
            joined_at=now,
            last_heartbeat=now
        )
        logger.info(f"Presence: {identity} joined room {room} as {role.value}")
        return self.list(room)

    def heartbeat(self, room: Optional[str], identity: Optional[str]) -> bool:
        """Обновление lastHeartbeat; опоздавший heartbeat после вытеснения игнорируется"""
        entry = self.get(room, identity)
        if entry is None:
            logger.debug(f"Presence: heartbeat ignored for {identity} in room {room}")
            return False
        entry.touch(self.clock())
        return True

    def leave(self, room: Optional[str], identity: Optional[str]) -> List[PresenceEntry]:
        """Выход из комнаты; отсутствующая запись не является ошибкой"""
        entries = self._rooms.get(room)
        if entries is None:
            return []
        if entries.pop(identity, None) is not None:
            logger.info(f"Presence: {identity} left room {room}")
        if not entries:
            del self._rooms[room]
        return self.list(room)

    def remove_connection(self, room: str, identity: str, connection_id: str) -> Optional[List[PresenceEntry]]:
        """Удаление записи при разрыве соединения.

        Запись удаляется, только если она принадлежит этому соединению:
        переподключившийся пользователь уже заменил ее новой.
        Возвращает обновленный список или None, если ничего не изменилось.
        """
        entry = self.get(room, identity)
        if entry is None or entry.connection_id != connection_id:
            return None
        return self.leave(room, identity)

    def sweep(self) -> Dict[str, List[PresenceEntry]]:
        """Вытеснение записей без heartbeat дольше timeout.

        Возвращает только комнаты, из которых что-то было удалено.
        """
        now = self.clock()
        pruned: Dict[str, List[PresenceEntry]] = {}

        for room in list(self._rooms):
            entries = self._rooms[room]
            stale = [identity for identity, entry in entries.items() if entry.is_stale(now, self.timeout)]
            if not stale:
                continue

            for identity in stale:
                del entries[identity]
            logger.info(f"Presence sweep: removed {len(stale)} inactive user(s) from {room}")

            pruned[room] = list(entries.values())
            if not entries:
                del self._rooms[room]

        return pruned

    def get(self, room: Optional[str], identity: Optional[str]) -> Optional[PresenceEntry]:
        return self._rooms.get(room, {}).get(identity)

    def list(self, room: Optional[str]) -> List[PresenceEntry]:
        return list(self._rooms.get(room, {}).values())

    def rooms(self) -> List[str]:
        return list(self._rooms)
