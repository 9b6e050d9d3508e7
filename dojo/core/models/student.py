"""Student as seen by the fee engine: branch, current belt and active flag."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import relationship

from dojo.core.enums import DEFAULT_BELT
from dojo.db.session import Base


class Student(Base):
    """Enrolled student. Soft delete via is_active; fees are only generated for active students."""

    __tablename__ = "students"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    branch_id = Column(Uuid, ForeignKey("branches.id", ondelete="RESTRICT"), nullable=False, index=True)
    student_code = Column(String(50), nullable=True, unique=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    current_belt = Column(String(50), nullable=False, default=DEFAULT_BELT)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    branch = relationship("Branch")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
