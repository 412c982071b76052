from app.api.http.health import router as health_router
from app.api.http.diagrams import router as diagrams_router
from app.api.http.locks import router as locks_router
from app.api.http.collaboration import router as collaboration_router
from app.api.http.projects import router as projects_router

__all__ = [
    "health_router",
    "diagrams_router",
    "locks_router",
    "collaboration_router",
    "projects_router"
]
