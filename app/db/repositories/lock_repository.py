from datetime import datetime
from typing import List, Optional

from sqlalchemy import and_, delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.db import SessionLocal
from app.db.models.lock import Lock as LockModel
from app.domains.collaboration.entities import Lock, as_utc


class LockRepository:
    """Репозиторий advisory-блокировок"""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = SessionLocal):
        self.session_factory = session_factory

    async def upsert(
        self,
        diagram_id: str,
        resource_id: str,
        owner_id: str,
        acquired_at: datetime,
        expires_at: datetime
    ) -> Lock:
        """Создание или перезапись блокировки ресурса (одна запись на ресурс)"""
        async with self.session_factory() as session:
            db_lock = await self._get_by_resource(session, diagram_id, resource_id)
            if db_lock is None:
                db_lock = LockModel(
                    diagram_id=diagram_id,
                    resource_id=resource_id,
                    user_id=owner_id,
                    acquired_at=acquired_at,
                    expires_at=expires_at
                )
                session.add(db_lock)
                try:
                    await session.commit()
                except IntegrityError:
                    # Параллельный acquire успел вставить запись, перезаписываем ее
                    await session.rollback()
                    db_lock = await self._get_by_resource(session, diagram_id, resource_id)
                    self._overwrite(db_lock, owner_id, acquired_at, expires_at)
                    await session.commit()
            else:
                self._overwrite(db_lock, owner_id, acquired_at, expires_at)
                await session.commit()

            await session.refresh(db_lock)
            return self._to_domain(db_lock)

    async def list_by_diagram(self, diagram_id: str) -> List[Lock]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(LockModel)
                .where(LockModel.diagram_id == diagram_id)
                .order_by(LockModel.acquired_at.asc())
            )
            return [self._to_domain(db_lock) for db_lock in result.scalars().all()]

    async def delete(self, lock_id: str) -> bool:
        async with self.session_factory() as session:
            result = await session.execute(delete(LockModel).where(LockModel.id == lock_id))
            await session.commit()
            return result.rowcount > 0

    async def _get_by_resource(
        self,
        session: AsyncSession,
        diagram_id: str,
        resource_id: str
    ) -> Optional[LockModel]:
        result = await session.execute(
            select(LockModel).where(
                and_(
                    LockModel.diagram_id == diagram_id,
                    LockModel.resource_id == resource_id
                )
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    def _overwrite(db_lock: LockModel, owner_id: str, acquired_at: datetime, expires_at: datetime) -> None:
        db_lock.user_id = owner_id
        db_lock.acquired_at = acquired_at
        db_lock.expires_at = expires_at

    def _to_domain(self, db_lock: LockModel) -> Lock:
        """Преобразование модели БД в доменную сущность"""
        return Lock(
            id=db_lock.id,
            diagram_id=db_lock.diagram_id,
            resource_id=db_lock.resource_id,
            owner_id=db_lock.user_id,
            acquired_at=as_utc(db_lock.acquired_at),
            expires_at=as_utc(db_lock.expires_at)
        )
