from sqlalchemy import Column, DateTime, String, UniqueConstraint

from app.db.base import BaseModel


class Lock(BaseModel):
    __tablename__ = "locks"
    __table_args__ = (UniqueConstraint("diagram_id", "resource_id", name="uq_lock_resource"),)

    # diagram_id совпадает с ключом комнаты, поэтому без внешнего ключа
    diagram_id = Column(String(64), nullable=False, index=True)
    resource_id = Column(String(255), nullable=False)
    user_id = Column(String(64), nullable=False)
    acquired_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
