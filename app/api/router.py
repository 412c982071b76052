from fastapi import APIRouter

from app.api.http import collaboration_router, diagrams_router, locks_router, projects_router

api_router = APIRouter(prefix="/api")
api_router.include_router(diagrams_router)
api_router.include_router(locks_router)
api_router.include_router(collaboration_router)
api_router.include_router(projects_router)
