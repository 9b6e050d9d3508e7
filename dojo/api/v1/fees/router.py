"""Fees router: create fees, student and admin listings, payments, reminder queues."""

from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dojo.auth.dependencies import get_current_user
from dojo.auth.rbac import ensure_student_in_scope, require_admin
from dojo.auth.schemas import CurrentUser
from dojo.core.clock import Clock, get_clock
from dojo.core.enums import FeeStatus, FeeType
from dojo.core.exceptions import ServiceError
from dojo.core.models import StudentFee
from dojo.db.session import get_db, get_session_factory

from .schemas import (
    FeeListFilters,
    PaymentCreate,
    PaymentResult,
    StudentFeeCreate,
    StudentFeeResponse,
    StudentFeeWithStudent,
)
from . import service

router = APIRouter(prefix="/api/v1/fees", tags=["fees"])


def _parse_status(value: Optional[str]) -> Optional[FeeStatus]:
    if not value or value == "all":
        return None
    try:
        return FeeStatus(value)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid status: {value}")


def _parse_fee_type(value: Optional[str]) -> Optional[FeeType]:
    if not value or value == "all":
        return None
    try:
        return FeeType(value)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid fee type: {value}")


async def _ensure_fee_in_scope(db: AsyncSession, current_user: CurrentUser, fee_id: UUID) -> None:
    fee = await db.get(StudentFee, fee_id)
    if not fee:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student fee not found")
    try:
        await ensure_student_in_scope(db, current_user, fee.student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# --- Student Fee ---
@router.post(
    "",
    response_model=StudentFeeResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_student_fee(
    payload: StudentFeeCreate,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: CurrentUser = Depends(require_admin),
) -> StudentFeeResponse:
    try:
        await ensure_student_in_scope(db, current_user, payload.student_id)
        return await service.create_student_fee(db, payload, clock)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=List[StudentFeeWithStudent],
)
async def list_fees(
    background_tasks: BackgroundTasks,
    status_filter: Optional[str] = Query(None, alias="status", description="pending, overdue, paid or all"),
    fee_type: Optional[str] = Query(None, description="registration, monthly, yearly, grading or all"),
    student_id: Optional[UUID] = Query(None),
    branch_id: Optional[UUID] = Query(None),
    start_date: Optional[date] = Query(None, description="Due on or after"),
    end_date: Optional[date] = Query(None, description="Due on or before"),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    current_user: CurrentUser = Depends(require_admin),
) -> List[StudentFeeWithStudent]:
    # Branch admins only see their own branch.
    if not current_user.is_super_admin:
        branch_id = current_user.branch_id
    filters = FeeListFilters(
        status=_parse_status(status_filter),
        fee_type=_parse_fee_type(fee_type),
        student_id=student_id,
        branch_id=branch_id,
        start_date=start_date,
        end_date=end_date,
    )
    result = await service.list_fees(db, filters, clock)
    if result.corrections:
        background_tasks.add_task(service.persist_status_corrections, result.corrections, session_factory)
    return result.fees


@router.get(
    "/student/{student_id}",
    response_model=List[StudentFeeWithStudent],
)
async def get_student_fees(
    student_id: UUID,
    background_tasks: BackgroundTasks,
    status_filter: Optional[str] = Query(None, alias="status"),
    fee_type: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[StudentFeeWithStudent]:
    try:
        await ensure_student_in_scope(db, current_user, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    result = await service.get_student_fees(
        db,
        student_id,
        clock,
        status=_parse_status(status_filter),
        fee_type=_parse_fee_type(fee_type),
    )
    if result.corrections:
        background_tasks.add_task(service.persist_status_corrections, result.corrections, session_factory)
    return result.fees


# --- Payment ---
@router.post(
    "/{fee_id}/payments",
    response_model=PaymentResult,
)
async def record_payment(
    fee_id: UUID,
    payload: PaymentCreate,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: CurrentUser = Depends(require_admin),
) -> PaymentResult:
    await _ensure_fee_in_scope(db, current_user, fee_id)
    try:
        return await service.record_payment(db, fee_id, payload, recorded_by=current_user.id, clock=clock)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# --- Reminders ---
def _reminder_branch(current_user: CurrentUser) -> Optional[UUID]:
    # Branch admins only see their own branch.
    return None if current_user.is_super_admin else current_user.branch_id


@router.get(
    "/reminders/due",
    response_model=List[StudentFeeResponse],
)
async def list_fees_due_for_reminder(
    days_before: Optional[int] = Query(None, ge=0, description="Defaults to FEE_REMINDER_DAYS_BEFORE"),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: CurrentUser = Depends(require_admin),
) -> List[StudentFeeResponse]:
    try:
        return await service.get_fees_due_for_reminder(
            db, clock, days_before=days_before, branch_id=_reminder_branch(current_user)
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/reminders/overdue",
    response_model=List[StudentFeeResponse],
)
async def list_overdue_fees(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: CurrentUser = Depends(require_admin),
) -> List[StudentFeeResponse]:
    return await service.get_overdue_fees(db, clock, branch_id=_reminder_branch(current_user))


@router.post(
    "/{fee_id}/reminder-sent",
    response_model=StudentFeeResponse,
)
async def mark_reminder_sent(
    fee_id: UUID,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: CurrentUser = Depends(require_admin),
) -> StudentFeeResponse:
    await _ensure_fee_in_scope(db, current_user, fee_id)
    try:
        return await service.mark_reminder_sent(db, fee_id, clock)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{fee_id}/overdue-notified",
    response_model=StudentFeeResponse,
)
async def mark_overdue_notification_sent(
    fee_id: UUID,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: CurrentUser = Depends(require_admin),
) -> StudentFeeResponse:
    await _ensure_fee_in_scope(db, current_user, fee_id)
    try:
        return await service.mark_overdue_notification_sent(db, fee_id, clock)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
