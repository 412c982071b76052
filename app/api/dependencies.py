from fastapi import Request

from app.core.config import settings
from app.core.db import SessionLocal
from app.db.repositories import DiagramRepository, ProjectRepository, UserRepository
from app.domains.collaboration.gateway import CollaborationGateway


def get_gateway(request: Request) -> CollaborationGateway:
    """Движок совместного редактирования, созданный в lifespan приложения"""
    return request.app.state.gateway


def get_diagram_repository() -> DiagramRepository:
    return DiagramRepository(SessionLocal)


def get_project_repository() -> ProjectRepository:
    return ProjectRepository(SessionLocal)


def get_user_repository() -> UserRepository:
    return UserRepository(SessionLocal, guest_prefix=settings.guest_prefix)
