"""Fee configuration: global price per fee type (per belt for grading). Superseded rows are deactivated, never deleted."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, Numeric, String, Text, Uuid, text
from sqlalchemy.orm import relationship

from dojo.db.session import Base


class FeeConfiguration(Base):
    """Active price for a (fee_type, belt_level) key. At most one active row per key."""

    __tablename__ = "fee_configurations"
    __table_args__ = (
        CheckConstraint(
            "fee_type IN ('registration','monthly','yearly','grading')",
            name="chk_fee_configuration_fee_type",
        ),
        CheckConstraint("amount >= 0", name="chk_fee_configuration_amount"),
        CheckConstraint(
            "(fee_type = 'grading' AND belt_level IS NOT NULL)"
            " OR "
            "(fee_type != 'grading' AND belt_level IS NULL)",
            name="chk_fee_configuration_grading_belt_level",
        ),
        # NULL belt levels never collide in a unique index, hence two partial indexes.
        Index(
            "uq_active_fee_configuration_global",
            "fee_type",
            unique=True,
            postgresql_where=text("is_active AND belt_level IS NULL"),
            sqlite_where=text("is_active = 1 AND belt_level IS NULL"),
        ),
        Index(
            "uq_active_fee_configuration_grading_belt",
            "fee_type",
            "belt_level",
            unique=True,
            postgresql_where=text("is_active AND belt_level IS NOT NULL"),
            sqlite_where=text("is_active = 1 AND belt_level IS NOT NULL"),
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    fee_type = Column(String(50), nullable=False, index=True)
    belt_level = Column(String(50), nullable=True)
    amount = Column(Numeric(10, 2), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_by_id = Column(Uuid, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class FeeConfigurationHistory(Base):
    """Append-only record of price changes."""

    __tablename__ = "fee_configuration_history"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    fee_configuration_id = Column(
        Uuid,
        ForeignKey("fee_configurations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    fee_type = Column(String(50), nullable=False, index=True)
    belt_level = Column(String(50), nullable=True)
    old_amount = Column(Numeric(10, 2), nullable=True)
    new_amount = Column(Numeric(10, 2), nullable=True)
    changed_by_id = Column(Uuid, nullable=True)
    changed_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    notes = Column(Text, nullable=True)

    fee_configuration = relationship("FeeConfiguration")
