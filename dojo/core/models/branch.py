"""Dojo branch. Owned by the branch collaborator; the fee engine only reads it for scoping."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, String, Uuid

from dojo.db.session import Base


class Branch(Base):
    __tablename__ = "branches"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
