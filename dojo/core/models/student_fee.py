"""Student fee: one billable obligation. Amount is copied from configuration at creation and never re-read."""

import uuid
from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from dojo.core.enums import FeeStatus
from dojo.db.session import Base


class StudentFee(Base):
    """
    Fee row for a student. paid_amount only grows and never exceeds amount;
    paid is terminal. Periods exist for monthly/yearly fees only.
    """

    __tablename__ = "student_fees"
    __table_args__ = (
        CheckConstraint(
            "fee_type IN ('registration','monthly','yearly','grading')",
            name="chk_student_fee_fee_type",
        ),
        CheckConstraint(
            "status IN ('pending','overdue','paid')",
            name="chk_student_fee_status",
        ),
        CheckConstraint("amount >= 0", name="chk_student_fee_amount"),
        CheckConstraint("paid_amount >= 0", name="chk_student_fee_paid_amount"),
        CheckConstraint("paid_amount <= amount", name="chk_student_fee_paid_not_exceed"),
        UniqueConstraint(
            "student_id",
            "fee_type",
            "period_start_date",
            "period_end_date",
            name="uq_student_fee_period",
        ),
        Index("ix_student_fees_student_status", "student_id", "status"),
        Index("ix_student_fees_due_date_status", "due_date", "status"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    fee_type = Column(String(50), nullable=False, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    due_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default=FeeStatus.pending.value)
    paid_amount = Column(Numeric(10, 2), nullable=False, default=0)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    payment_method = Column(String(50), nullable=True)  # cash, bank_transfer, upi, card
    receipt_number = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)

    period_start_date = Column(Date, nullable=True)
    period_end_date = Column(Date, nullable=True)

    # No FK: belt_gradings.student_fee_id points back here.
    belt_grading_id = Column(Uuid, nullable=True, index=True)

    reminder_sent_at = Column(DateTime(timezone=True), nullable=True)
    overdue_notification_sent_at = Column(DateTime(timezone=True), nullable=True)

    recorded_by_id = Column(Uuid, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    student = relationship("Student")
