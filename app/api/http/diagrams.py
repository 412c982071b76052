import logging

from fastapi import APIRouter, Depends, HTTPException, status

from app.api.dependencies import get_diagram_repository, get_user_repository
from app.db.repositories import DiagramRepository, UserRepository
from app.domains.collaboration.entities import DiagramGraph
from app.domains.collaboration.schemas import DiagramResponse, DiagramSaveRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/diagrams", tags=["diagrams"])


@router.get("/{project_id}", response_model=DiagramResponse)
async def get_diagram(
    project_id: str,
    diagrams: DiagramRepository = Depends(get_diagram_repository)
):
    """Текущий снимок диаграммы проекта (пустой граф, если снимка нет)"""
    snapshot = await diagrams.get_latest(project_id)

    if snapshot is None:
        logger.info(f"No diagram found for project {project_id}")
        return DiagramResponse(data=DiagramGraph().to_dict())

    return DiagramResponse(**snapshot.to_dict())


@router.post("/{project_id}", response_model=DiagramResponse)
async def save_diagram(
    project_id: str,
    request: DiagramSaveRequest,
    diagrams: DiagramRepository = Depends(get_diagram_repository),
    users: UserRepository = Depends(get_user_repository)
):
    """Полное сохранение графа: новая версия существующего снимка или снимок v1"""
    if not request.user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="user_id is required"
        )

    graph = DiagramGraph.from_dict(request.data).to_dict()
    existing = await diagrams.get_latest(project_id)

    if existing is not None:
        snapshot = await diagrams.update_graph(existing.id, graph)
    else:
        await users.ensure_exists(request.user_id)
        snapshot = await diagrams.create(project_id, request.user_id, graph, name="Auto Diagram")

    return DiagramResponse(**snapshot.to_dict())
