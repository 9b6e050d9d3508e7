"""Payment preference: one monthly/yearly plan per student."""

import logging
from datetime import date
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dojo.core.enums import PaymentType
from dojo.core.models import StudentPaymentPreference

logger = logging.getLogger(__name__)


async def get_student_payment_preference(
    db: AsyncSession,
    student_id: UUID,
) -> Optional[StudentPaymentPreference]:
    stmt = select(StudentPaymentPreference).where(StudentPaymentPreference.student_id == student_id)
    return (await db.execute(stmt)).scalar_one_or_none()


async def set_student_payment_preference(
    db: AsyncSession,
    student_id: UUID,
    payment_type: PaymentType,
    started_from: date,
    commit: bool = True,
) -> StudentPaymentPreference:
    """Upsert keyed by student."""
    payment_type = PaymentType(payment_type)
    pref = await get_student_payment_preference(db, student_id)
    if pref:
        pref.payment_type = payment_type.value
        pref.started_from = started_from
    else:
        pref = StudentPaymentPreference(
            student_id=student_id,
            payment_type=payment_type.value,
            started_from=started_from,
        )
        db.add(pref)
    await db.flush()
    if commit:
        await db.commit()
    await db.refresh(pref)
    logger.info("Payment preference set: student=%s type=%s from=%s", student_id, payment_type.value, started_from)
    return pref
