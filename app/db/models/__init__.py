from app.db.models.user import User
from app.db.models.project import Project, ProjectMember, MemberRole
from app.db.models.diagram import Diagram
from app.db.models.lock import Lock

__all__ = [
    "User",
    "Project",
    "ProjectMember",
    "MemberRole",
    "Diagram",
    "Lock"
]
