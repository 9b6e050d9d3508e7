"""Belt gradings: promote the student and raise the grading fee for the new belt."""

import logging
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dojo.api.v1.fee_configurations.service import require_fee_configuration
from dojo.api.v1.fees.schemas import StudentFeeCreate, StudentFeeResponse
from dojo.api.v1.fees.service import create_student_fee, publish_fee_event
from dojo.core.clock import Clock
from dojo.core.enums import BELT_LEVELS, FeeEventType, FeeType, belt_display_name
from dojo.core.events import FeeEvent, fee_events
from dojo.core.exceptions import ConfigurationMissingError, ConflictError, NotFoundError, ValidationError
from dojo.core.models import BeltGrading, Student

from .schemas import BeltGradingCreate, BeltGradingResponse, BeltGradingResult

logger = logging.getLogger(__name__)


def _grading_to_response(g: BeltGrading) -> BeltGradingResponse:
    return BeltGradingResponse(
        id=g.id,
        student_id=g.student_id,
        from_belt=g.from_belt,
        from_belt_display=belt_display_name(g.from_belt),
        to_belt=g.to_belt,
        to_belt_display=belt_display_name(g.to_belt),
        grading_date=g.grading_date,
        fee_amount=Decimal(str(g.fee_amount)) if g.fee_amount is not None else None,
        student_fee_id=g.student_fee_id,
        created_by_id=g.created_by_id,
        created_at=g.created_at,
    )


async def record_belt_grading(
    db: AsyncSession,
    student_id: UUID,
    payload: BeltGradingCreate,
    actor_id: Optional[UUID],
    clock: Clock,
) -> BeltGradingResult:
    """
    Record a promotion. The grading row, the student's new belt and the grading fee are
    committed together. A belt without a configured grading price is still graded, with no fee.
    """
    student = await db.get(Student, student_id)
    if not student:
        raise NotFoundError("Student not found")
    if not student.is_active:
        raise ValidationError("Cannot grade an inactive student")

    from_belt = payload.from_belt.strip()
    to_belt = payload.to_belt.strip()
    if to_belt not in BELT_LEVELS:
        raise ValidationError(f"Unknown belt level: {to_belt}")
    if from_belt != student.current_belt:
        raise ValidationError(f"Student's current belt is {student.current_belt}, not {from_belt}")
    if to_belt == from_belt:
        raise ValidationError("New belt must differ from the current belt")

    warnings: List[str] = []
    try:
        cfg = await require_fee_configuration(db, FeeType.grading, to_belt)
    except ConfigurationMissingError as e:
        logger.warning("%s. Grading for student %s recorded without a fee", e.message, student_id)
        warnings.append(e.message)
        cfg = None

    grading = BeltGrading(
        student_id=student_id,
        from_belt=from_belt,
        to_belt=to_belt,
        grading_date=payload.grading_date,
        fee_amount=cfg.amount if cfg else None,
        created_by_id=actor_id,
    )
    db.add(grading)
    student.current_belt = to_belt

    fee: Optional[StudentFeeResponse] = None
    try:
        await db.flush()
        if cfg:
            fee = await create_student_fee(
                db,
                StudentFeeCreate(
                    student_id=student_id,
                    fee_type=FeeType.grading,
                    amount=cfg.amount,
                    due_date=payload.grading_date,
                    belt_grading_id=grading.id,
                ),
                clock,
                commit=False,
            )
            grading.student_fee_id = fee.id
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Belt grading could not be saved, please retry")
    await db.refresh(grading)

    logger.info("Belt grading recorded: student=%s %s -> %s fee=%s", student_id, from_belt, to_belt, fee.id if fee else None)
    if fee:
        await publish_fee_event(FeeEventType.FEE_CREATED, fee, clock)
    await fee_events.publish(
        FeeEvent(
            event_type=FeeEventType.BELT_GRADED,
            student_id=student_id,
            fee_id=fee.id if fee else None,
            fee_type=FeeType.grading.value,
            amount=fee.amount if fee else None,
            occurred_at=clock.now(),
            data={"grading_id": str(grading.id), "from_belt": from_belt, "to_belt": to_belt},
        )
    )
    return BeltGradingResult(grading=_grading_to_response(grading), fee=fee, warnings=warnings)


async def list_belt_gradings(db: AsyncSession, student_id: UUID) -> List[BeltGradingResponse]:
    stmt = (
        select(BeltGrading)
        .where(BeltGrading.student_id == student_id)
        .order_by(BeltGrading.grading_date.desc(), BeltGrading.created_at.desc())
    )
    result = await db.execute(stmt)
    return [_grading_to_response(g) for g in result.scalars().all()]
