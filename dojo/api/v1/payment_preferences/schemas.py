from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from dojo.api.v1.fees.schemas import StudentFeeResponse
from dojo.core.enums import PaymentType


class PaymentPreferenceResponse(BaseModel):
    id: UUID
    student_id: UUID
    payment_type: PaymentType
    started_from: date
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# ----- Initialize -----
class FeeInitializationRequest(BaseModel):
    payment_type: PaymentType
    enrollment_date: date
    registration_paid: bool = Field(False, description="Registration collected at enrollment; fee is created paid")


class FeeInitializationResult(BaseModel):
    preference: PaymentPreferenceResponse
    fees: List[StudentFeeResponse] = []
    warnings: List[str] = []


# ----- Switch -----
class SwitchPreferenceRequest(BaseModel):
    payment_type: PaymentType
    switch_date: date


class SwitchPreferenceResult(BaseModel):
    """changed is False when the student was already on the requested plan."""

    changed: bool
    preference: Optional[PaymentPreferenceResponse] = None
    fee: Optional[StudentFeeResponse] = None
    warnings: List[str] = []
