from sqlalchemy import JSON, Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from app.db.base import BaseModel


class Diagram(BaseModel):
    __tablename__ = "diagrams"

    project_id = Column(String(64), ForeignKey("projects.id"), nullable=False, index=True)
    author_id = Column(String(64), ForeignKey("users.id"), nullable=False)
    name = Column(String(255), nullable=False)
    data = Column(JSON, nullable=False)
    version = Column(Integer, nullable=False, default=1)

    # Relationships
    project = relationship("Project", back_populates="diagrams")
