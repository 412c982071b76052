from app.domains.collaboration.entities import (
    Role, PresenceEntry, Lock, DiagramGraph, DiagramSnapshot
)
from app.domains.collaboration.exceptions import (
    CollaborationError, AuthorizationDenied, NotFound, MalformedInput,
    MissingFields, PersistenceFailure
)
from app.domains.collaboration.schemas import (
    JoinEvent, HeartbeatEvent, LeaveEvent, LockAcquireEvent, LockReleaseEvent,
    Mutation, AddNode, UpdateNode, MoveNode, DeleteNode, AddEdge, DeleteEdge,
    SyncEdges, MutateEvent, parse_mutation
)

__all__ = [
    "Role", "PresenceEntry", "Lock", "DiagramGraph", "DiagramSnapshot",
    "CollaborationError", "AuthorizationDenied", "NotFound", "MalformedInput",
    "MissingFields", "PersistenceFailure",
    "JoinEvent", "HeartbeatEvent", "LeaveEvent", "LockAcquireEvent", "LockReleaseEvent",
    "Mutation", "AddNode", "UpdateNode", "MoveNode", "DeleteNode", "AddEdge", "DeleteEdge",
    "SyncEdges", "MutateEvent", "parse_mutation"
]
