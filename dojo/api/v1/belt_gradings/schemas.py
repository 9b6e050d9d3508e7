from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from dojo.api.v1.fees.schemas import StudentFeeResponse


class BeltGradingCreate(BaseModel):
    from_belt: str = Field(..., max_length=50, description="Must match the student's current belt")
    to_belt: str = Field(..., max_length=50)
    grading_date: date


class BeltGradingResponse(BaseModel):
    id: UUID
    student_id: UUID
    from_belt: str
    from_belt_display: str
    to_belt: str
    to_belt_display: str
    grading_date: date
    fee_amount: Optional[Decimal] = None
    student_fee_id: Optional[UUID] = None
    created_by_id: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


class BeltGradingResult(BaseModel):
    """fee is None when no grading price is configured for the new belt (see warnings)."""

    grading: BeltGradingResponse
    fee: Optional[StudentFeeResponse] = None
    warnings: List[str] = []
