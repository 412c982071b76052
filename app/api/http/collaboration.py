from fastapi import APIRouter, Depends

from app.api.dependencies import get_gateway
from app.domains.collaboration.gateway import CollaborationGateway
from app.domains.collaboration.schemas import PresenceEntryResponse, RoomPresenceResponse

router = APIRouter(prefix="/collaboration", tags=["collaboration"])


@router.get("/rooms/{room}/presence", response_model=RoomPresenceResponse)
async def get_room_presence(
    room: str,
    gateway: CollaborationGateway = Depends(get_gateway)
):
    """Получение списка активных пользователей комнаты"""
    entries = [PresenceEntryResponse.model_validate(entry) for entry in gateway.presence.list(room)]

    return RoomPresenceResponse(
        room=room,
        entries=entries,
        total_users=len(entries)
    )
