"""Payment preference router: current plan, enrollment fee initialization, plan switches."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from dojo.auth.dependencies import get_current_user
from dojo.auth.rbac import ensure_student_in_scope, require_admin
from dojo.auth.schemas import CurrentUser
from dojo.core.clock import Clock, get_clock
from dojo.core.exceptions import ServiceError
from dojo.db.session import get_db

from .schemas import (
    FeeInitializationRequest,
    FeeInitializationResult,
    PaymentPreferenceResponse,
    SwitchPreferenceRequest,
    SwitchPreferenceResult,
)
from . import enrollment, service

router = APIRouter(prefix="/api/v1/payment-preferences", tags=["payment-preferences"])


@router.get(
    "/{student_id}",
    response_model=PaymentPreferenceResponse,
)
async def get_payment_preference(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> PaymentPreferenceResponse:
    try:
        await ensure_student_in_scope(db, current_user, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    pref = await service.get_student_payment_preference(db, student_id)
    if not pref:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Payment preference not set")
    return PaymentPreferenceResponse.model_validate(pref)


@router.post(
    "/{student_id}/initialize",
    response_model=FeeInitializationResult,
    status_code=status.HTTP_201_CREATED,
)
async def initialize_student_fees(
    student_id: UUID,
    payload: FeeInitializationRequest,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: CurrentUser = Depends(require_admin),
) -> FeeInitializationResult:
    try:
        await ensure_student_in_scope(db, current_user, student_id)
        return await enrollment.initialize_student_fees(db, student_id, payload, clock)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{student_id}/switch",
    response_model=SwitchPreferenceResult,
)
async def switch_payment_preference(
    student_id: UUID,
    payload: SwitchPreferenceRequest,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: CurrentUser = Depends(require_admin),
) -> SwitchPreferenceResult:
    try:
        await ensure_student_in_scope(db, current_user, student_id)
        return await enrollment.switch_payment_preference(
            db, student_id, payload.payment_type, payload.switch_date, clock
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
