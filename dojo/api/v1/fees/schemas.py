"""Fees schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, NamedTuple, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from dojo.core.enums import FeeStatus, FeeType

from .resolver import StatusCorrection


# --- Student Fee ---
class StudentFeeCreate(BaseModel):
    student_id: UUID
    fee_type: FeeType
    amount: Decimal = Field(..., max_digits=10, decimal_places=2)
    due_date: date
    period_start_date: Optional[date] = None
    period_end_date: Optional[date] = None
    belt_grading_id: Optional[UUID] = None


class StudentFeeResponse(BaseModel):
    id: UUID
    student_id: UUID
    fee_type: FeeType
    amount: Decimal
    due_date: date
    status: FeeStatus
    paid_amount: Decimal
    balance: Decimal
    paid_at: Optional[datetime] = None
    payment_method: Optional[str] = None
    receipt_number: Optional[str] = None
    notes: Optional[str] = None
    period_start_date: Optional[date] = None
    period_end_date: Optional[date] = None
    belt_grading_id: Optional[UUID] = None
    reminder_sent_at: Optional[datetime] = None
    overdue_notification_sent_at: Optional[datetime] = None
    recorded_by_id: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class StudentFeeWithStudent(StudentFeeResponse):
    student_name: Optional[str] = None
    student_code: Optional[str] = None
    branch_id: Optional[UUID] = None


class FeeListFilters(BaseModel):
    """status/fee_type of None mean 'all'. status is matched against the resolved status."""

    status: Optional[FeeStatus] = None
    fee_type: Optional[FeeType] = None
    student_id: Optional[UUID] = None
    branch_id: Optional[UUID] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class FeeListResult(NamedTuple):
    fees: List[StudentFeeWithStudent]
    corrections: List[StatusCorrection]


# --- Payment ---
class PaymentCreate(BaseModel):
    amount: Decimal = Field(..., max_digits=10, decimal_places=2)
    payment_method: str = Field(..., min_length=1, max_length=50, description="cash, bank_transfer, upi, card")
    receipt_number: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = None


class PaymentResult(BaseModel):
    fee: StudentFeeResponse
    amount_applied: Decimal
    fully_paid: bool
    next_fee: Optional[StudentFeeResponse] = None
