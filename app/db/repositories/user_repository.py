import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.db import SessionLocal
from app.db.models.user import User as UserModel

logger = logging.getLogger(__name__)


class UserRepository:
    """Репозиторий для работы с пользователями"""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] = SessionLocal,
        guest_prefix: str = "guest_"
    ):
        self.session_factory = session_factory
        self.guest_prefix = guest_prefix

    async def ensure_exists(self, user_id: str) -> bool:
        """Создание пользователя-заглушки, если его еще нет.

        Гостевые идентификаторы в таблицу не попадают.
        Возвращает True, если запись была создана.
        """
        if user_id.startswith(self.guest_prefix):
            return False

        async with self.session_factory() as session:
            existing = await session.get(UserModel, user_id)
            if existing is not None:
                return False

            session.add(UserModel(id=user_id, email=f"{user_id}@auto.local", name=user_id))
            try:
                await session.commit()
            except IntegrityError:
                # Заглушку параллельно создал другой запрос
                await session.rollback()
                return False

        logger.info(f"Created user placeholder: {user_id}")
        return True
