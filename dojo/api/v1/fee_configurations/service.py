"""Fee configuration: resolve the active price per fee type / belt, and supersede it with history."""

import logging
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dojo.core.enums import BELT_LEVELS, FeeType
from dojo.core.exceptions import ConfigurationMissingError, ConflictError, ValidationError
from dojo.core.models import FeeConfiguration, FeeConfigurationHistory
from dojo.core.money import to_decimal

from .schemas import FeeConfigurationHistoryResponse, FeeConfigurationResponse

logger = logging.getLogger(__name__)


def _config_to_response(cfg: FeeConfiguration) -> FeeConfigurationResponse:
    return FeeConfigurationResponse(
        id=cfg.id,
        fee_type=cfg.fee_type,
        belt_level=cfg.belt_level,
        amount=to_decimal(cfg.amount),
        is_active=cfg.is_active,
        created_by_id=cfg.created_by_id,
        created_at=cfg.created_at,
        updated_at=cfg.updated_at,
    )


def _normalize_belt_level(fee_type: FeeType, belt_level: Optional[str]) -> Optional[str]:
    belt_level = (belt_level or "").strip() or None
    if fee_type == FeeType.grading:
        if not belt_level:
            raise ValidationError("Belt level is required for grading fees")
        if belt_level not in BELT_LEVELS:
            raise ValidationError(f"Unknown belt level: {belt_level}")
        return belt_level
    if belt_level:
        raise ValidationError("Only grading fees can have a belt level")
    return None


def _active_key_filter(stmt, fee_type: FeeType, belt_level: Optional[str]):
    stmt = stmt.where(
        FeeConfiguration.fee_type == fee_type.value,
        FeeConfiguration.is_active.is_(True),
    )
    if belt_level is None:
        return stmt.where(FeeConfiguration.belt_level.is_(None))
    return stmt.where(FeeConfiguration.belt_level == belt_level)


async def get_fee_configuration(
    db: AsyncSession,
    fee_type: FeeType,
    belt_level: Optional[str] = None,
) -> Optional[FeeConfigurationResponse]:
    """Active configuration for the key, or None when pricing is unset (callers treat that as a warning)."""
    fee_type = FeeType(fee_type)
    belt_level = _normalize_belt_level(fee_type, belt_level)
    stmt = _active_key_filter(select(FeeConfiguration), fee_type, belt_level).limit(1)
    cfg = (await db.execute(stmt)).scalar_one_or_none()
    return _config_to_response(cfg) if cfg else None


async def require_fee_configuration(
    db: AsyncSession,
    fee_type: FeeType,
    belt_level: Optional[str] = None,
) -> FeeConfigurationResponse:
    cfg = await get_fee_configuration(db, fee_type, belt_level)
    if not cfg:
        raise ConfigurationMissingError(FeeType(fee_type).value, belt_level)
    return cfg


async def list_fee_configurations(
    db: AsyncSession,
    fee_type: Optional[FeeType] = None,
) -> List[FeeConfigurationResponse]:
    stmt = select(FeeConfiguration).where(FeeConfiguration.is_active.is_(True))
    if fee_type is not None:
        stmt = stmt.where(FeeConfiguration.fee_type == FeeType(fee_type).value)
    stmt = stmt.order_by(FeeConfiguration.fee_type, FeeConfiguration.belt_level.nullsfirst())
    result = await db.execute(stmt)
    return [_config_to_response(c) for c in result.scalars().all()]


async def set_fee_configuration(
    db: AsyncSession,
    fee_type: FeeType,
    amount: Decimal,
    belt_level: Optional[str],
    created_by_id: Optional[UUID],
) -> FeeConfigurationResponse:
    """Supersede the active price for the key in one transaction; history is written when the amount changes."""
    fee_type = FeeType(fee_type)
    amount = to_decimal(amount)
    if amount < 0:
        raise ValidationError("Fee amount cannot be negative")
    belt_level = _normalize_belt_level(fee_type, belt_level)

    previous = (
        await db.execute(_active_key_filter(select(FeeConfiguration), fee_type, belt_level).limit(1))
    ).scalar_one_or_none()
    old_amount = to_decimal(previous.amount) if previous else None

    try:
        await db.execute(
            _active_key_filter(update(FeeConfiguration), fee_type, belt_level)
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        cfg = FeeConfiguration(
            fee_type=fee_type.value,
            belt_level=belt_level,
            amount=amount,
            is_active=True,
            created_by_id=created_by_id,
        )
        db.add(cfg)
        await db.flush()
        if old_amount is not None and old_amount != amount:
            db.add(
                FeeConfigurationHistory(
                    fee_configuration_id=cfg.id,
                    fee_type=fee_type.value,
                    belt_level=belt_level,
                    old_amount=old_amount,
                    new_amount=amount,
                    changed_by_id=created_by_id,
                )
            )
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Fee configuration was changed concurrently, please retry")
    await db.refresh(cfg)
    logger.info("Fee configuration set: fee_type=%s belt_level=%s amount=%s (was %s)", fee_type.value, belt_level, amount, old_amount)
    return _config_to_response(cfg)


async def list_fee_configuration_history(
    db: AsyncSession,
    fee_type: Optional[FeeType] = None,
    belt_level: Optional[str] = None,
) -> List[FeeConfigurationHistoryResponse]:
    stmt = select(FeeConfigurationHistory)
    if fee_type is not None:
        stmt = stmt.where(FeeConfigurationHistory.fee_type == FeeType(fee_type).value)
    if belt_level:
        stmt = stmt.where(FeeConfigurationHistory.belt_level == belt_level)
    stmt = stmt.order_by(FeeConfigurationHistory.changed_at.desc())
    result = await db.execute(stmt)
    return [FeeConfigurationHistoryResponse.model_validate(h) for h in result.scalars().all()]
