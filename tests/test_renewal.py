from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dojo.api.v1.fees import service
from dojo.api.v1.fees.renewal import ensure_upcoming_yearly_fee, generate_next_period_fee
from dojo.api.v1.fees.schemas import PaymentCreate, StudentFeeCreate
from dojo.api.v1.payment_preferences.service import set_student_payment_preference
from dojo.core.clock import FixedClock
from dojo.core.enums import FeeStatus, FeeType, PaymentType
from dojo.core.models import StudentFee


async def _paid_yearly_fee(db: AsyncSession, student_id, period_end: date = date(2025, 11, 26)):
    clock = FixedClock(date(2024, 11, 26))
    fee = await service.create_student_fee(
        db,
        StudentFeeCreate(
            student_id=student_id,
            fee_type=FeeType.yearly,
            amount=Decimal("12000"),
            due_date=date(2024, 11, 26),
            period_start_date=date(2024, 11, 26),
            period_end_date=period_end,
        ),
        clock,
    )
    await service.record_payment(db, fee.id, PaymentCreate(amount=Decimal("12000"), payment_method="upi"), None, clock)
    return fee


async def _yearly_fees(db: AsyncSession, student_id):
    result = await db.execute(
        select(StudentFee)
        .where(StudentFee.student_id == student_id, StudentFee.fee_type == FeeType.yearly.value)
        .order_by(StudentFee.period_start_date)
    )
    return result.scalars().all()


@pytest.mark.asyncio
async def test_yearly_fee_renews_exactly_one_month_before_period_end(
    db_session: AsyncSession, student, set_price
) -> None:
    await set_price(FeeType.yearly, "13000")
    await set_student_payment_preference(db_session, student.id, PaymentType.yearly, date(2024, 11, 26))
    await _paid_yearly_fee(db_session, student.id)

    before = await service.get_student_fees(db_session, student.id, FixedClock(date(2025, 10, 26)))
    assert len([f for f in before.fees if f.fee_type == FeeType.yearly]) == 1

    on_threshold = await service.get_student_fees(db_session, student.id, FixedClock(date(2025, 10, 27)))
    yearly = [f for f in on_threshold.fees if f.fee_type == FeeType.yearly]
    assert len(yearly) == 2

    renewal = yearly[0]
    assert renewal.period_start_date == date(2025, 11, 27)
    assert renewal.period_end_date == date(2026, 11, 27)
    assert renewal.due_date == date(2026, 10, 27)
    assert renewal.amount == Decimal("13000")
    assert renewal.status == FeeStatus.pending


@pytest.mark.asyncio
async def test_yearly_renewal_is_idempotent(db_session: AsyncSession, student, set_price) -> None:
    await set_price(FeeType.yearly, "12000")
    await set_student_payment_preference(db_session, student.id, PaymentType.yearly, date(2024, 11, 26))
    await _paid_yearly_fee(db_session, student.id)

    clock = FixedClock(date(2025, 11, 1))
    first = await ensure_upcoming_yearly_fee(db_session, student.id, clock)
    assert first is not None
    assert await ensure_upcoming_yearly_fee(db_session, student.id, clock) is None
    await service.get_student_fees(db_session, student.id, clock)

    assert len(await _yearly_fees(db_session, student.id)) == 2


@pytest.mark.asyncio
async def test_no_renewal_without_yearly_preference_or_price(db_session: AsyncSession, student, set_price) -> None:
    await _paid_yearly_fee(db_session, student.id)
    clock = FixedClock(date(2025, 11, 1))

    # no preference at all
    assert await ensure_upcoming_yearly_fee(db_session, student.id, clock) is None

    await set_student_payment_preference(db_session, student.id, PaymentType.yearly, date(2024, 11, 26))
    # yearly preference but no configured price
    assert await ensure_upcoming_yearly_fee(db_session, student.id, clock) is None
    assert len(await _yearly_fees(db_session, student.id)) == 1

    await set_student_payment_preference(db_session, student.id, PaymentType.monthly, date(2025, 11, 1))
    await set_price(FeeType.yearly, "12000")
    assert await ensure_upcoming_yearly_fee(db_session, student.id, clock) is None


@pytest.mark.asyncio
async def test_generate_next_period_fee_guards(db_session: AsyncSession, student, make_student, set_price) -> None:
    await set_price(FeeType.monthly, "1000")
    clock = FixedClock(date(2024, 3, 2))

    assert await generate_next_period_fee(db_session, student.id, PaymentType.monthly, None, clock) is None

    inactive = await make_student(first_name="Ken", is_active=False)
    assert await generate_next_period_fee(db_session, inactive.id, PaymentType.monthly, date(2024, 3, 14), clock) is None

    await set_student_payment_preference(db_session, student.id, PaymentType.yearly, date(2024, 1, 15))
    assert await generate_next_period_fee(db_session, student.id, PaymentType.monthly, date(2024, 3, 14), clock) is None

    await set_student_payment_preference(db_session, student.id, PaymentType.monthly, date(2024, 1, 15))
    created = await generate_next_period_fee(db_session, student.id, PaymentType.monthly, date(2024, 3, 14), clock)
    assert created.period_start_date == date(2024, 3, 15)
    assert created.due_date == date(2024, 4, 15)
    # identical period already exists
    assert await generate_next_period_fee(db_session, student.id, PaymentType.monthly, date(2024, 3, 14), clock) is None
