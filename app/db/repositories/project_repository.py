from typing import Optional

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.db import SessionLocal
from app.db.models.project import Project as ProjectModel, ProjectMember as ProjectMemberModel
from app.domains.collaboration.entities import Role


class ProjectRepository:
    """Проекты и членство: источник ролей для комнат совместного редактирования"""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = SessionLocal):
        self.session_factory = session_factory

    async def project_exists(self, project_id: str) -> bool:
        async with self.session_factory() as session:
            result = await session.execute(
                select(ProjectModel.id).where(ProjectModel.id == project_id)
            )
            return result.scalar_one_or_none() is not None

    async def resolve_role(self, project_id: str, identity: str) -> Optional[Role]:
        """Роль участника в проекте или None, если он не участник"""
        async with self.session_factory() as session:
            result = await session.execute(
                select(ProjectMemberModel.role).where(
                    and_(
                        ProjectMemberModel.project_id == project_id,
                        ProjectMemberModel.user_id == identity
                    )
                )
            )
            member_role = result.scalar_one_or_none()
            return Role(member_role.value) if member_role else None
