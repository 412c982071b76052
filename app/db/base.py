import uuid

from sqlalchemy import Column, DateTime, String
from sqlalchemy.sql import func

from app.core.db import Base


def generate_id() -> str:
    return str(uuid.uuid4())


class BaseModel(Base):
    __abstract__ = True

    id = Column(String(64), primary_key=True, default=generate_id)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
