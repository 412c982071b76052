import logging
from typing import Any, Dict

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

from app.core.config import settings

logger = logging.getLogger(__name__)

# Базовый класс для моделей
Base = declarative_base()


def _engine_options(database_url: str) -> Dict[str, Any]:
    """Параметры движка: in-memory SQLite должен жить в одном соединении"""
    options: Dict[str, Any] = {"echo": settings.sql_echo}
    if database_url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
        if ":memory:" in database_url:
            options["poolclass"] = StaticPool
    return options


# Асинхронный движок
engine = create_async_engine(settings.database_url, **_engine_options(settings.database_url))

# Сессии
SessionLocal = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


async def init_db() -> None:
    """Создание таблиц при старте приложения"""
    # Импорт моделей регистрирует таблицы в Base.metadata
    from app.db import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ready")


async def close_db() -> None:
    """Освобождение пула соединений"""
    await engine.dispose()
    logger.info("Database connection closed")
