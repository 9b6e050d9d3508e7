"""Fee configuration schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from dojo.core.enums import FeeType


class FeeConfigurationSet(BaseModel):
    fee_type: FeeType
    amount: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    belt_level: Optional[str] = Field(None, max_length=50, description="Required for grading fees only")


class FeeConfigurationResponse(BaseModel):
    id: UUID
    fee_type: FeeType
    belt_level: Optional[str] = None
    amount: Decimal
    is_active: bool
    created_by_id: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class FeeConfigurationHistoryResponse(BaseModel):
    id: UUID
    fee_configuration_id: UUID
    fee_type: FeeType
    belt_level: Optional[str] = None
    old_amount: Optional[Decimal] = None
    new_amount: Optional[Decimal] = None
    changed_by_id: Optional[UUID] = None
    changed_at: datetime
    notes: Optional[str] = None

    class Config:
        from_attributes = True
