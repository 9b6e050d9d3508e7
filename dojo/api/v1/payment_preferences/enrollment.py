"""
Enrollment and plan switches: set the payment preference and create the first fees.

Missing fee configuration, or an unpaid fee already covering part of the new period, never
blocks these flows. Either is reported as a warning in the result and the remaining steps
still run.
"""

import logging
from datetime import date, datetime, time
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from dojo.api.v1.fee_configurations.service import require_fee_configuration
from dojo.api.v1.fees.periods import initial_monthly_period, initial_yearly_period, switch_period
from dojo.api.v1.fees.schemas import StudentFeeCreate, StudentFeeResponse
from dojo.api.v1.fees.service import create_student_fee, find_period_fee, settle_fee
from dojo.core.clock import Clock
from dojo.core.enums import UNPAID_STATUSES, FeeStatus, FeeType, PaymentType
from dojo.core.exceptions import ConfigurationMissingError, ConflictError, NotFoundError, ValidationError
from dojo.core.models import Student, StudentFee

from .schemas import (
    FeeInitializationRequest,
    FeeInitializationResult,
    PaymentPreferenceResponse,
    SwitchPreferenceResult,
)
from .service import get_student_payment_preference, set_student_payment_preference

logger = logging.getLogger(__name__)


async def _get_active_student(db: AsyncSession, student_id: UUID) -> Student:
    student = await db.get(Student, student_id)
    if not student:
        raise NotFoundError("Student not found")
    if not student.is_active:
        raise ValidationError("Student is not active")
    return student


async def _create_registration_fee(
    db: AsyncSession,
    student_id: UUID,
    payload: FeeInitializationRequest,
    clock: Clock,
) -> Optional[StudentFeeResponse]:
    existing = (
        await db.execute(
            select(StudentFee.id).where(
                StudentFee.student_id == student_id,
                StudentFee.fee_type == FeeType.registration.value,
            ).limit(1)
        )
    ).scalar_one_or_none()
    if existing:
        logger.info("Registration fee already exists for student %s, skipping", student_id)
        return None

    cfg = await require_fee_configuration(db, FeeType.registration)
    fee = await create_student_fee(
        db,
        StudentFeeCreate(
            student_id=student_id,
            fee_type=FeeType.registration,
            amount=cfg.amount,
            due_date=payload.enrollment_date,
        ),
        clock,
    )
    if not payload.registration_paid or fee.status == FeeStatus.paid:
        return fee

    paid_at = datetime.combine(payload.enrollment_date, time(), tzinfo=clock.tz)
    return await settle_fee(db, fee.id, paid_at, notes="Paid at enrollment")


async def initialize_student_fees(
    db: AsyncSession,
    student_id: UUID,
    payload: FeeInitializationRequest,
    clock: Clock,
) -> FeeInitializationResult:
    """
    Set the plan from the enrollment date and create the registration fee plus the first period fee.
    Due dates are computed against today, so a back-dated enrollment is not born overdue.
    """
    await _get_active_student(db, student_id)

    pref = await set_student_payment_preference(db, student_id, payload.payment_type, payload.enrollment_date)
    preference = PaymentPreferenceResponse.model_validate(pref)
    fees: List[StudentFeeResponse] = []
    warnings: List[str] = []

    try:
        registration = await _create_registration_fee(db, student_id, payload, clock)
        if registration:
            fees.append(registration)
    except ConfigurationMissingError as e:
        logger.warning("%s. Registration fee for student %s not created", e.message, student_id)
        warnings.append(e.message)

    today = clock.today()
    if payload.payment_type == PaymentType.monthly:
        period = initial_monthly_period(payload.enrollment_date.day, today)
    else:
        period = initial_yearly_period(payload.enrollment_date, today)

    fee_type = payload.payment_type.fee_type
    try:
        cfg = await require_fee_configuration(db, fee_type)
        if await find_period_fee(db, student_id, fee_type, period.period_start, period.period_end):
            logger.info("First %s fee for student %s already exists, skipping", fee_type.value, student_id)
        else:
            fees.append(
                await create_student_fee(
                    db,
                    StudentFeeCreate(
                        student_id=student_id,
                        fee_type=fee_type,
                        amount=cfg.amount,
                        due_date=period.due_date,
                        period_start_date=period.period_start,
                        period_end_date=period.period_end,
                    ),
                    clock,
                )
            )
    except (ConfigurationMissingError, ConflictError) as e:
        logger.warning("%s. First %s fee for student %s not created", e.message, fee_type.value, student_id)
        warnings.append(e.message)

    logger.info("Initialized fees for student %s: %d created, %d warnings", student_id, len(fees), len(warnings))
    return FeeInitializationResult(
        preference=preference,
        fees=fees,
        warnings=warnings,
    )


async def switch_payment_preference(
    db: AsyncSession,
    student_id: UUID,
    new_type: PaymentType,
    switch_date: date,
    clock: Clock,
) -> SwitchPreferenceResult:
    """
    Move the student to another plan from switch_date. The first fee of the new plan starts
    and is due on the switch date. Unpaid fees of the old plan stay as they are.
    """
    new_type = PaymentType(new_type)
    student = await db.get(Student, student_id)
    if not student:
        raise NotFoundError("Student not found")

    current = await get_student_payment_preference(db, student_id)
    if current and current.payment_type == new_type.value:
        return SwitchPreferenceResult(
            changed=False,
            preference=PaymentPreferenceResponse.model_validate(current),
        )
    if not student.is_active:
        raise ValidationError("Student is not active")

    if current:
        old_type = PaymentType(current.payment_type)
        outstanding = (
            await db.execute(
                select(func.count(StudentFee.id)).where(
                    StudentFee.student_id == student_id,
                    StudentFee.fee_type == old_type.fee_type.value,
                    StudentFee.status.in_(UNPAID_STATUSES),
                )
            )
        ).scalar_one()
        if outstanding:
            logger.info(
                "Student %s switching %s -> %s with %d unpaid %s fees left in place",
                student_id,
                old_type.value,
                new_type.value,
                outstanding,
                old_type.value,
            )

    pref = await set_student_payment_preference(db, student_id, new_type, switch_date)
    result = SwitchPreferenceResult(changed=True, preference=PaymentPreferenceResponse.model_validate(pref))

    period = switch_period(switch_date, new_type)
    if await find_period_fee(db, student_id, new_type.fee_type, period.period_start, period.period_end):
        logger.info("Fee for switched period %s..%s already exists for student %s", period.period_start, period.period_end, student_id)
        return result

    try:
        cfg = await require_fee_configuration(db, new_type.fee_type)
    except ConfigurationMissingError as e:
        logger.warning("%s. Preference switched for student %s without a first fee", e.message, student_id)
        result.warnings.append(e.message)
        return result

    try:
        result.fee = await create_student_fee(
            db,
            StudentFeeCreate(
                student_id=student_id,
                fee_type=new_type.fee_type,
                amount=cfg.amount,
                due_date=period.due_date,
                period_start_date=period.period_start,
                period_end_date=period.period_end,
            ),
            clock,
        )
    except ConflictError as e:
        logger.warning("%s. Preference switched for student %s without a first fee", e.message, student_id)
        result.warnings.append(e.message)
    return result
