"""Monthly vs yearly billing plan. One row per student, upserted."""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import relationship

from dojo.db.session import Base


class StudentPaymentPreference(Base):
    __tablename__ = "student_payment_preferences"
    __table_args__ = (
        CheckConstraint(
            "payment_type IN ('monthly','yearly')",
            name="chk_payment_preference_type",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, unique=True)
    payment_type = Column(String(20), nullable=False, index=True)
    # Date the plan took effect; its day-of-month anchors monthly due dates.
    started_from = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    student = relationship("Student")
