import logging

from fastapi import APIRouter, Depends, Query

from app.api.dependencies import get_project_repository
from app.db.repositories import ProjectRepository
from app.domains.collaboration.schemas import RoleResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects", tags=["projects"])


@router.get("/{project_id}/role", response_model=RoleResponse)
async def get_project_role(
    project_id: str,
    user_id: str = Query(..., min_length=1),
    projects: ProjectRepository = Depends(get_project_repository)
):
    """Роль пользователя в проекте; null, если он не участник"""
    role = await projects.resolve_role(project_id, user_id)
    if role is None:
        logger.info(f"User {user_id} is not a member of project {project_id}")
    return RoleResponse(role=role)
