import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.http.health import router as health_router
from app.api.router import api_router
from app.api.ws.sync import router as websocket_router
from app.core.config import settings
from app.core.db import SessionLocal, close_db, init_db
from app.domains.collaboration.gateway import CollaborationGateway

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    """Старт и остановка: схема БД и фоновая очистка присутствия"""
    await init_db()

    gateway = CollaborationGateway.from_settings(settings, SessionLocal)
    fastapi_app.state.gateway = gateway
    await gateway.start()
    logger.info("Collaboration gateway started")

    try:
        yield
    finally:
        await gateway.stop()
        await close_db()


app = FastAPI(
    title="DiagramCollab",
    description="Совместное редактирование ER/UML-диаграмм в реальном времени",
    version="1.0.0",
    lifespan=lifespan
)

# Настройка CORS для работы с frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Подключаем роутеры
app.include_router(health_router)
app.include_router(api_router)
app.include_router(websocket_router)
