from typing import List

from fastapi import APIRouter, Depends, Query

from app.api.dependencies import get_gateway
from app.domains.collaboration.gateway import CollaborationGateway
from app.domains.collaboration.schemas import (
    LockAcquireRequest, LockReleaseRequest, LockReleaseResponse, LockResponse
)

router = APIRouter(prefix="/locks", tags=["locks"])


@router.post("/acquire", response_model=LockResponse)
async def acquire_lock(
    request: LockAcquireRequest,
    gateway: CollaborationGateway = Depends(get_gateway)
):
    """Захват advisory-блокировки (перезаписывает текущего владельца)"""
    lock = await gateway.locks.acquire(request.diagram_id, request.resource_id, request.user_id)
    return LockResponse.model_validate(lock)


@router.post("/release", response_model=LockReleaseResponse)
async def release_lock(
    request: LockReleaseRequest,
    gateway: CollaborationGateway = Depends(get_gateway)
):
    """Снятие блокировки; повторное снятие тоже успешно"""
    await gateway.locks.release(request.lock_id)
    return LockReleaseResponse(released=True)


@router.get("/{diagram_id}", response_model=List[LockResponse])
async def list_locks(
    diagram_id: str,
    include_expired: bool = Query(False),
    gateway: CollaborationGateway = Depends(get_gateway)
):
    """Блокировки диаграммы"""
    locks = await gateway.locks.list_for_diagram(diagram_id, include_expired=include_expired)
    return [LockResponse.model_validate(lock) for lock in locks]
