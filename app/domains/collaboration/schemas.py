from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from app.domains.collaboration.entities import DiagramGraph, Role
from app.domains.collaboration.exceptions import MalformedInput

# Ключи, под которыми клиенты присылают идентификатор комнаты (проекта)
ROOM_ALIASES = ("room", "projectId", "project_id")


def room_of(data: Dict[str, Any]) -> Optional[str]:
    """Комната из сырого payload события: первый непустой из ROOM_ALIASES"""
    return next((data[key] for key in ROOM_ALIASES if data.get(key)), None)


class EventModel(BaseModel):
    """Базовая схема входящего события WebSocket"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class JoinEvent(EventModel):
    identity: Optional[str] = Field(None, validation_alias=AliasChoices("identity", "userId", "user_id"))
    room: Optional[str] = Field(None, validation_alias=AliasChoices(*ROOM_ALIASES))
    display_name: Optional[str] = Field(None, validation_alias=AliasChoices("display_name", "displayName", "name"))
    # Роль от клиента принимается, но не используется: ее определяет сервер
    role: Optional[str] = None


class HeartbeatEvent(EventModel):
    room: Optional[str] = Field(None, validation_alias=AliasChoices(*ROOM_ALIASES))
    identity: Optional[str] = Field(None, validation_alias=AliasChoices("identity", "userId", "user_id"))


class LeaveEvent(HeartbeatEvent):
    pass


class LockAcquireEvent(EventModel):
    room: Optional[str] = Field(None, validation_alias=AliasChoices(*ROOM_ALIASES))
    diagram_id: Optional[str] = Field(None, validation_alias=AliasChoices("diagram_id", "diagramId"))
    resource_id: str = Field(..., min_length=1, validation_alias=AliasChoices("resource_id", "resourceId"))
    owner_id: Optional[str] = Field(None, validation_alias=AliasChoices("owner_id", "ownerId", "userId"))


class LockReleaseEvent(EventModel):
    lock_id: str = Field(..., min_length=1, validation_alias=AliasChoices("lock_id", "lockId"))
    room: Optional[str] = Field(None, validation_alias=AliasChoices(*ROOM_ALIASES))
    diagram_id: Optional[str] = Field(None, validation_alias=AliasChoices("diagram_id", "diagramId"))


# --- Мутации графа ---

class ElementPayload(BaseModel):
    """Узел или связь: обязателен только id, остальные поля сохраняются как есть"""
    model_config = ConfigDict(extra="allow")

    id: str = Field(..., min_length=1)


class Position(BaseModel):
    model_config = ConfigDict(extra="allow")

    x: float
    y: float


class MovePayload(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str = Field(..., min_length=1)
    position: Position


class SyncEdgesPayload(BaseModel):
    edges: List[ElementPayload] = Field(default_factory=list)


class Mutation(EventModel):
    """Базовая схема мутации: каждый вариант сам применяет себя к графу"""
    room: Optional[str] = Field(None, validation_alias=AliasChoices(*ROOM_ALIASES))

    def apply_to(self, graph: DiagramGraph) -> None:
        raise NotImplementedError

    def seed(self) -> DiagramGraph:
        """Начальный граф, содержащий только эффект этой мутации"""
        graph = DiagramGraph()
        self.apply_to(graph)
        return graph


class AddNode(Mutation):
    action: Literal["ADD_NODE"]
    payload: ElementPayload

    def apply_to(self, graph: DiagramGraph) -> None:
        graph.add_node(self.payload.model_dump())


class UpdateNode(Mutation):
    action: Literal["UPDATE_NODE"]
    payload: ElementPayload

    def apply_to(self, graph: DiagramGraph) -> None:
        graph.update_node(self.payload.id, self.payload.model_dump())

    def seed(self) -> DiagramGraph:
        return DiagramGraph(nodes=[self.payload.model_dump()])


class MoveNode(Mutation):
    action: Literal["MOVE_NODE"]
    payload: MovePayload

    def apply_to(self, graph: DiagramGraph) -> None:
        graph.move_node(self.payload.id, self.payload.position.model_dump())

    def seed(self) -> DiagramGraph:
        return DiagramGraph(nodes=[self.payload.model_dump()])


class DeleteNode(Mutation):
    action: Literal["DELETE_NODE"]
    payload: ElementPayload

    def apply_to(self, graph: DiagramGraph) -> None:
        graph.delete_node(self.payload.id)


class AddEdge(Mutation):
    action: Literal["ADD_EDGE"]
    payload: ElementPayload

    def apply_to(self, graph: DiagramGraph) -> None:
        graph.add_edge(self.payload.model_dump())


class DeleteEdge(Mutation):
    action: Literal["DELETE_EDGE"]
    payload: ElementPayload

    def apply_to(self, graph: DiagramGraph) -> None:
        graph.delete_edge(self.payload.id)


class SyncEdges(Mutation):
    action: Literal["SYNC_EDGES"]
    payload: SyncEdgesPayload

    def apply_to(self, graph: DiagramGraph) -> None:
        graph.sync_edges([edge.model_dump() for edge in self.payload.edges])


MutateEvent = Annotated[
    Union[AddNode, UpdateNode, MoveNode, DeleteNode, AddEdge, DeleteEdge, SyncEdges],
    Field(discriminator="action"),
]

_mutate_event_adapter = TypeAdapter(MutateEvent)

MUTATION_ACTIONS = (
    "ADD_NODE", "UPDATE_NODE", "MOVE_NODE", "DELETE_NODE",
    "ADD_EDGE", "DELETE_EDGE", "SYNC_EDGES",
)


def parse_mutation(data: Dict[str, Any]) -> Mutation:
    """Разбор mutate-события; неизвестное действие или кривой payload -> MalformedInput"""
    try:
        return _mutate_event_adapter.validate_python(data)
    except ValidationError as e:
        action = data.get("action") if isinstance(data, dict) else None
        if action not in MUTATION_ACTIONS:
            raise MalformedInput(f"Unknown diagram action: {action}") from e
        raise MalformedInput(f"Invalid payload for {action}", context={"errors": e.errors()}) from e


# --- Схемы REST API ---

class PresenceEntryResponse(BaseModel):
    identity: str
    display_name: str
    role: Role
    connection_id: str
    joined_at: datetime
    last_heartbeat: datetime

    model_config = ConfigDict(from_attributes=True)


class RoomPresenceResponse(BaseModel):
    room: str
    entries: List[PresenceEntryResponse]
    total_users: int


class LockResponse(BaseModel):
    id: str
    diagram_id: str
    resource_id: str
    owner_id: str
    acquired_at: datetime
    expires_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LockAcquireRequest(EventModel):
    diagram_id: str = Field(..., min_length=1, validation_alias=AliasChoices("diagram_id", "diagramId"))
    resource_id: str = Field(..., min_length=1, validation_alias=AliasChoices("resource_id", "resourceId"))
    user_id: str = Field(..., min_length=1, validation_alias=AliasChoices("user_id", "userId"))


class LockReleaseRequest(EventModel):
    lock_id: str = Field(..., min_length=1, validation_alias=AliasChoices("lock_id", "lockId"))


class LockReleaseResponse(BaseModel):
    released: bool = True


class DiagramSaveRequest(EventModel):
    data: Dict[str, Any] = Field(default_factory=lambda: {"nodes": [], "edges": []})
    user_id: Optional[str] = Field(None, validation_alias=AliasChoices("user_id", "userId"))


class DiagramResponse(BaseModel):
    """Снимок диаграммы; для проекта без снимка заполнено только data"""
    id: Optional[str] = None
    project_id: Optional[str] = None
    author_id: Optional[str] = None
    name: Optional[str] = None
    data: Dict[str, Any]
    version: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class RoleResponse(BaseModel):
    role: Optional[Role] = None
