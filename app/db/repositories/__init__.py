from app.db.repositories.user_repository import UserRepository
from app.db.repositories.project_repository import ProjectRepository
from app.db.repositories.diagram_repository import DiagramRepository, DiagramNotFound
from app.db.repositories.lock_repository import LockRepository

__all__ = [
    "UserRepository",
    "ProjectRepository",
    "DiagramRepository",
    "DiagramNotFound",
    "LockRepository"
]
