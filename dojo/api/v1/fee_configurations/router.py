"""Fee configuration router: active prices per fee type / belt and their change history."""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from dojo.auth.dependencies import get_current_user
from dojo.auth.rbac import require_admin, require_super_admin
from dojo.auth.schemas import CurrentUser
from dojo.core.enums import FeeType
from dojo.core.exceptions import ServiceError
from dojo.db.session import get_db

from .schemas import FeeConfigurationHistoryResponse, FeeConfigurationResponse, FeeConfigurationSet
from . import service

router = APIRouter(prefix="/api/v1/fee-configurations", tags=["fee-configurations"])


@router.get(
    "",
    response_model=List[FeeConfigurationResponse],
    dependencies=[Depends(get_current_user)],
)
async def list_fee_configurations(
    fee_type: Optional[FeeType] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> List[FeeConfigurationResponse]:
    return await service.list_fee_configurations(db, fee_type=fee_type)


@router.get(
    "/lookup",
    response_model=FeeConfigurationResponse,
    dependencies=[Depends(get_current_user)],
)
async def get_fee_configuration(
    fee_type: FeeType,
    belt_level: Optional[str] = Query(None, description="Required for grading fees"),
    db: AsyncSession = Depends(get_db),
) -> FeeConfigurationResponse:
    try:
        cfg = await service.get_fee_configuration(db, fee_type, belt_level)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    if not cfg:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Fee configuration not found")
    return cfg


@router.put(
    "",
    response_model=FeeConfigurationResponse,
)
async def set_fee_configuration(
    payload: FeeConfigurationSet,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_super_admin),
) -> FeeConfigurationResponse:
    try:
        return await service.set_fee_configuration(
            db,
            payload.fee_type,
            payload.amount,
            payload.belt_level,
            created_by_id=current_user.id,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/history",
    response_model=List[FeeConfigurationHistoryResponse],
    dependencies=[Depends(require_admin)],
)
async def list_fee_configuration_history(
    fee_type: Optional[FeeType] = Query(None),
    belt_level: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> List[FeeConfigurationHistoryResponse]:
    return await service.list_fee_configuration_history(db, fee_type=fee_type, belt_level=belt_level)
