"""
Next-period fee generation.

Monthly fees renew when the current one is paid in full (see service.record_payment).
Yearly fees renew from the read path once the early-payment window opens, one month
before the paid period ends.
"""

import logging
from datetime import date
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dojo.api.v1.fee_configurations.service import get_fee_configuration
from dojo.api.v1.payment_preferences.service import get_student_payment_preference
from dojo.core.clock import Clock
from dojo.core.enums import FeeStatus, FeeType, PaymentType
from dojo.core.models import Student, StudentFee

from .periods import ONE_DAY, next_period, renewal_window_opens
from .schemas import StudentFeeCreate, StudentFeeResponse
from .service import create_student_fee, find_period_fee

logger = logging.getLogger(__name__)


async def generate_next_period_fee(
    db: AsyncSession,
    student_id: UUID,
    payment_type: PaymentType,
    previous_end: Optional[date],
    clock: Clock,
) -> Optional[StudentFeeResponse]:
    """Create the fee for the period right after previous_end. Returns None when nothing should be created."""
    payment_type = PaymentType(payment_type)
    if previous_end is None:
        logger.warning("Cannot generate next %s fee for student %s: previous period has no end", payment_type.value, student_id)
        return None

    student = await db.get(Student, student_id)
    if not student or not student.is_active:
        logger.info("Skipping next %s fee for missing or inactive student %s", payment_type.value, student_id)
        return None

    pref = await get_student_payment_preference(db, student_id)
    if pref and pref.payment_type != payment_type.value:
        logger.info(
            "Skipping next %s fee for student %s: preference is now %s",
            payment_type.value,
            student_id,
            pref.payment_type,
        )
        return None

    cfg = await get_fee_configuration(db, payment_type.fee_type)
    if not cfg:
        logger.warning("Fee not configured: %s. Next period fee for student %s not created", payment_type.value, student_id)
        return None

    enrollment_day = pref.started_from.day if pref else (previous_end + ONE_DAY).day
    period = next_period(payment_type, previous_end, enrollment_day)

    existing = await find_period_fee(db, student_id, payment_type.fee_type, period.period_start, period.period_end)
    if existing:
        logger.debug(
            "Next %s fee for student %s already exists (%s..%s)",
            payment_type.value,
            student_id,
            period.period_start,
            period.period_end,
        )
        return None

    fee = await create_student_fee(
        db,
        StudentFeeCreate(
            student_id=student_id,
            fee_type=payment_type.fee_type,
            amount=cfg.amount,
            due_date=period.due_date,
            period_start_date=period.period_start,
            period_end_date=period.period_end,
        ),
        clock,
    )
    logger.info(
        "Generated next %s fee for student %s: %s..%s due %s",
        payment_type.value,
        student_id,
        period.period_start,
        period.period_end,
        period.due_date,
    )
    return fee


async def ensure_upcoming_yearly_fee(
    db: AsyncSession,
    student_id: UUID,
    clock: Clock,
) -> Optional[StudentFeeResponse]:
    """
    Generate next year's fee once today reaches the renewal window of the latest paid
    yearly period. Safe to call on every read; never raises.
    """
    try:
        pref = await get_student_payment_preference(db, student_id)
        if not pref or pref.payment_type != PaymentType.yearly.value:
            return None

        latest_paid = (
            await db.execute(
                select(StudentFee)
                .where(
                    StudentFee.student_id == student_id,
                    StudentFee.fee_type == FeeType.yearly.value,
                    StudentFee.status == FeeStatus.paid.value,
                    StudentFee.period_end_date.is_not(None),
                )
                .order_by(StudentFee.period_end_date.desc())
                .limit(1)
            )
        ).scalar_one_or_none()
        if not latest_paid:
            return None

        period_end = latest_paid.period_end_date
        if clock.today() < renewal_window_opens(period_end):
            return None

        upcoming = (
            await db.execute(
                select(StudentFee.id)
                .where(
                    StudentFee.student_id == student_id,
                    StudentFee.fee_type == FeeType.yearly.value,
                    StudentFee.period_start_date > period_end,
                )
                .limit(1)
            )
        ).scalar_one_or_none()
        if upcoming:
            return None

        return await generate_next_period_fee(db, student_id, PaymentType.yearly, period_end, clock)
    except Exception:
        await db.rollback()
        logger.exception("Error checking yearly renewal for student %s", student_id)
        return None
