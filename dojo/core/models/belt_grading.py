"""Belt grading: one row per promotion, linked to the grading fee it generated."""

import uuid
from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Numeric, String, Uuid
from sqlalchemy.orm import relationship

from dojo.db.session import Base


class BeltGrading(Base):
    __tablename__ = "belt_gradings"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    from_belt = Column(String(50), nullable=False)
    to_belt = Column(String(50), nullable=False)
    grading_date = Column(Date, nullable=False, index=True)
    # Price at grading time; NULL when no grading fee was configured.
    fee_amount = Column(Numeric(10, 2), nullable=True)
    student_fee_id = Column(Uuid, ForeignKey("student_fees.id", ondelete="SET NULL"), nullable=True, index=True)
    created_by_id = Column(Uuid, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    student = relationship("Student")
    student_fee = relationship("StudentFee", foreign_keys=[student_fee_id])
