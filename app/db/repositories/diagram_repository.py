import logging
from typing import Any, Dict, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.db import SessionLocal
from app.db.models.diagram import Diagram as DiagramModel
from app.domains.collaboration.entities import DiagramGraph, DiagramSnapshot, as_utc

logger = logging.getLogger(__name__)


class DiagramNotFound(LookupError):
    pass


class DiagramRepository:
    """Хранилище снимков диаграмм: последний снимок проекта и счетчик версий.

    Каждый вызов открывает собственную сессию, поэтому репозиторий можно
    держать в долгоживущем движке совместного редактирования.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = SessionLocal):
        self.session_factory = session_factory

    async def get_latest(self, project_id: str) -> Optional[DiagramSnapshot]:
        """Текущий снимок проекта.

        Если снимков несколько, берется последний обновленный.
        """
        async with self.session_factory() as session:
            result = await session.execute(
                select(DiagramModel)
                .where(DiagramModel.project_id == project_id)
                .order_by(DiagramModel.updated_at.desc(), DiagramModel.created_at.desc())
                .limit(1)
            )
            db_diagram = result.scalar_one_or_none()
            return self._to_domain(db_diagram) if db_diagram else None

    async def create(
        self,
        project_id: str,
        author_id: str,
        graph: Dict[str, Any],
        name: Optional[str] = None
    ) -> DiagramSnapshot:
        """Создание снимка с версией 1"""
        async with self.session_factory() as session:
            db_diagram = DiagramModel(
                project_id=project_id,
                author_id=author_id,
                name=name or f"Diagram for {project_id}",
                data=graph,
                version=1
            )
            session.add(db_diagram)
            await session.commit()
            await session.refresh(db_diagram)
            logger.info(f"Diagram {db_diagram.id} created for project {project_id}")
            return self._to_domain(db_diagram)

    async def update_graph(self, snapshot_id: str, graph: Dict[str, Any]) -> DiagramSnapshot:
        """Замена графа и атомарный инкремент версии"""
        async with self.session_factory() as session:
            result = await session.execute(
                update(DiagramModel)
                .where(DiagramModel.id == snapshot_id)
                .values(data=graph, version=DiagramModel.version + 1)
            )
            if result.rowcount == 0:
                await session.rollback()
                raise DiagramNotFound(f"Diagram {snapshot_id} not found")
            await session.commit()

            db_diagram = await session.get(DiagramModel, snapshot_id, populate_existing=True)
            logger.info(f"Diagram {snapshot_id} saved, version {db_diagram.version}")
            return self._to_domain(db_diagram)

    def _to_domain(self, db_diagram: DiagramModel) -> DiagramSnapshot:
        """Преобразование модели БД в доменную сущность"""
        return DiagramSnapshot(
            id=db_diagram.id,
            project_id=db_diagram.project_id,
            author_id=db_diagram.author_id,
            name=db_diagram.name,
            graph=DiagramGraph.from_dict(db_diagram.data),
            version=db_diagram.version,
            created_at=as_utc(db_diagram.created_at),
            updated_at=as_utc(db_diagram.updated_at)
        )
