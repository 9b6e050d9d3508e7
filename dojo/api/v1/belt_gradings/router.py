"""Belt gradings router."""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from dojo.auth.dependencies import get_current_user
from dojo.auth.rbac import ensure_student_in_scope, require_admin
from dojo.auth.schemas import CurrentUser
from dojo.core.clock import Clock, get_clock
from dojo.core.exceptions import ServiceError
from dojo.db.session import get_db

from .schemas import BeltGradingCreate, BeltGradingResponse, BeltGradingResult
from . import service

router = APIRouter(prefix="/api/v1/belt-gradings", tags=["belt-gradings"])


@router.post(
    "/{student_id}",
    response_model=BeltGradingResult,
    status_code=status.HTTP_201_CREATED,
)
async def record_belt_grading(
    student_id: UUID,
    payload: BeltGradingCreate,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: CurrentUser = Depends(require_admin),
) -> BeltGradingResult:
    try:
        await ensure_student_in_scope(db, current_user, student_id)
        return await service.record_belt_grading(db, student_id, payload, actor_id=current_user.id, clock=clock)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/{student_id}",
    response_model=List[BeltGradingResponse],
)
async def list_belt_gradings(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[BeltGradingResponse]:
    try:
        await ensure_student_in_scope(db, current_user, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return await service.list_belt_gradings(db, student_id)
