import logging
from datetime import datetime, timedelta
from typing import Callable, List

from app.db.repositories.lock_repository import LockRepository
from app.domains.collaboration.entities import Lock, utcnow
from app.domains.collaboration.interfaces import IdentityProvisioner

logger = logging.getLogger(__name__)


class LockRegistry:
    """Advisory-блокировки ресурсов диаграммы.

    Это подсказка для UI, а не взаимное исключение: acquire всегда
    успешен и перезаписывает владельца (побеждает последний запросивший),
    истечение срока ничего не удаляет. Мутации блокировки не проверяют.
    """

    def __init__(
        self,
        repository: LockRepository,
        identities: IdentityProvisioner,
        ttl: timedelta = timedelta(seconds=30),
        clock: Callable[[], datetime] = utcnow
    ):
        self.repository = repository
        self.identities = identities
        self.ttl = ttl
        self.clock = clock

    async def acquire(self, diagram_id: str, resource_id: str, owner_id: str) -> Lock:
        """Захват или перезапись блокировки ресурса"""
        await self.identities.ensure_exists(owner_id)

        now = self.clock()
        lock = await self.repository.upsert(
            diagram_id=diagram_id,
            resource_id=resource_id,
            owner_id=owner_id,
            acquired_at=now,
            expires_at=now + self.ttl
        )
        logger.info(f"Lock {lock.id} on {diagram_id}/{resource_id} acquired by {owner_id}")
        return lock

    async def release(self, lock_id: str) -> bool:
        """Снятие блокировки; отсутствующая блокировка не считается ошибкой"""
        released = await self.repository.delete(lock_id)
        if released:
            logger.info(f"Lock {lock_id} released")
        else:
            logger.debug(f"Lock {lock_id} not found on release, ignoring")
        return released

    async def list_for_diagram(self, diagram_id: str, include_expired: bool = False) -> List[Lock]:
        """Блокировки диаграммы; истекшие по умолчанию отфильтровываются"""
        locks = await self.repository.list_by_diagram(diagram_id)
        if include_expired:
            return locks
        now = self.clock()
        return [lock for lock in locks if not lock.is_expired(now)]
