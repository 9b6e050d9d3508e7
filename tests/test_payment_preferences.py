from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dojo.api.v1.payment_preferences.enrollment import initialize_student_fees, switch_payment_preference
from dojo.api.v1.payment_preferences.schemas import FeeInitializationRequest
from dojo.api.v1.payment_preferences.service import get_student_payment_preference
from dojo.core.clock import FixedClock
from dojo.core.enums import FeeStatus, FeeType, PaymentType
from dojo.core.exceptions import NotFoundError, ValidationError
from dojo.core.models import StudentFee, StudentPaymentPreference


async def _fees(db: AsyncSession, student_id):
    result = await db.execute(
        select(StudentFee).where(StudentFee.student_id == student_id).order_by(StudentFee.due_date)
    )
    return result.scalars().all()


@pytest.mark.asyncio
async def test_initialize_yearly_with_paid_registration(db_session: AsyncSession, student, set_price) -> None:
    await set_price(FeeType.registration, "500")
    await set_price(FeeType.yearly, "12000")
    clock = FixedClock(date(2024, 3, 2))

    result = await initialize_student_fees(
        db_session,
        student.id,
        FeeInitializationRequest(payment_type=PaymentType.yearly, enrollment_date=date(2024, 3, 2), registration_paid=True),
        clock,
    )
    assert result.warnings == []
    assert result.preference.payment_type == PaymentType.yearly
    assert result.preference.started_from == date(2024, 3, 2)

    registration = next(f for f in result.fees if f.fee_type == FeeType.registration)
    assert registration.status == FeeStatus.paid
    assert registration.paid_amount == Decimal("500")

    yearly = next(f for f in result.fees if f.fee_type == FeeType.yearly)
    assert yearly.period_start_date == date(2024, 3, 2)
    assert yearly.period_end_date == date(2025, 3, 2)
    assert yearly.due_date == date(2024, 3, 2)
    assert yearly.status == FeeStatus.pending


@pytest.mark.asyncio
async def test_back_dated_monthly_enrollment_is_not_born_overdue(db_session: AsyncSession, student, set_price) -> None:
    await set_price(FeeType.monthly, "1000")
    clock = FixedClock(date(2024, 3, 20))

    result = await initialize_student_fees(
        db_session,
        student.id,
        FeeInitializationRequest(payment_type=PaymentType.monthly, enrollment_date=date(2024, 1, 15)),
        clock,
    )
    monthly = next(f for f in result.fees if f.fee_type == FeeType.monthly)
    assert monthly.due_date == date(2024, 4, 15)
    assert monthly.period_start_date == date(2024, 3, 15)
    assert monthly.period_end_date == date(2024, 4, 14)
    assert monthly.status == FeeStatus.pending


@pytest.mark.asyncio
async def test_missing_configuration_becomes_warnings(db_session: AsyncSession, student) -> None:
    result = await initialize_student_fees(
        db_session,
        student.id,
        FeeInitializationRequest(payment_type=PaymentType.monthly, enrollment_date=date(2024, 3, 2)),
        FixedClock(date(2024, 3, 2)),
    )
    assert result.fees == []
    assert result.warnings == ["Fee not configured: registration", "Fee not configured: monthly"]
    pref = await get_student_payment_preference(db_session, student.id)
    assert pref.payment_type == PaymentType.monthly.value


@pytest.mark.asyncio
async def test_initialize_is_safe_to_retry(db_session: AsyncSession, student, set_price) -> None:
    await set_price(FeeType.registration, "500")
    await set_price(FeeType.monthly, "1000")
    clock = FixedClock(date(2024, 3, 2))
    request = FeeInitializationRequest(payment_type=PaymentType.monthly, enrollment_date=date(2024, 3, 2))

    await initialize_student_fees(db_session, student.id, request, clock)
    retry = await initialize_student_fees(db_session, student.id, request, clock)
    assert retry.fees == []
    assert len(await _fees(db_session, student.id)) == 2

    prefs = (
        await db_session.execute(
            select(StudentPaymentPreference).where(StudentPaymentPreference.student_id == student.id)
        )
    ).scalars().all()
    assert len(prefs) == 1


@pytest.mark.asyncio
async def test_reinitialize_onto_unpaid_overlapping_period_warns(db_session: AsyncSession, student, set_price) -> None:
    await set_price(FeeType.registration, "500")
    await set_price(FeeType.monthly, "1000")
    clock = FixedClock(date(2024, 3, 2))

    first = await initialize_student_fees(
        db_session,
        student.id,
        FeeInitializationRequest(payment_type=PaymentType.monthly, enrollment_date=date(2024, 3, 10)),
        clock,
    )
    monthly = next(f for f in first.fees if f.fee_type == FeeType.monthly)
    assert monthly.period_start_date == date(2024, 2, 10)
    assert monthly.period_end_date == date(2024, 3, 9)

    # Feb 20 - Mar 19 overlaps the unpaid Feb 10 - Mar 9 fee.
    second = await initialize_student_fees(
        db_session,
        student.id,
        FeeInitializationRequest(payment_type=PaymentType.monthly, enrollment_date=date(2024, 3, 20)),
        clock,
    )
    assert second.fees == []
    assert second.warnings == ["A fee for this period already exists"]
    assert second.preference.started_from == date(2024, 3, 20)
    assert len(await _fees(db_session, student.id)) == 2


@pytest.mark.asyncio
async def test_initialize_rejects_missing_or_inactive_student(db_session: AsyncSession, make_student) -> None:
    request = FeeInitializationRequest(payment_type=PaymentType.monthly, enrollment_date=date(2024, 3, 2))
    clock = FixedClock(date(2024, 3, 2))
    with pytest.raises(NotFoundError):
        await initialize_student_fees(db_session, uuid4(), request, clock)

    inactive = await make_student(is_active=False)
    with pytest.raises(ValidationError):
        await initialize_student_fees(db_session, inactive.id, request, clock)
    assert await get_student_payment_preference(db_session, inactive.id) is None


@pytest.mark.asyncio
async def test_switch_monthly_to_yearly_keeps_old_fees(db_session: AsyncSession, student, set_price) -> None:
    await set_price(FeeType.monthly, "1000")
    await set_price(FeeType.yearly, "12000")
    clock = FixedClock(date(2024, 3, 2))
    await initialize_student_fees(
        db_session,
        student.id,
        FeeInitializationRequest(payment_type=PaymentType.monthly, enrollment_date=date(2024, 3, 2)),
        clock,
    )

    switched = await switch_payment_preference(db_session, student.id, PaymentType.yearly, date(2024, 3, 10), clock)
    assert switched.changed is True
    assert switched.preference.payment_type == PaymentType.yearly
    assert switched.fee.period_start_date == date(2024, 3, 10)
    assert switched.fee.due_date == date(2024, 3, 10)
    assert switched.fee.period_end_date == date(2025, 3, 9)

    types = sorted(f.fee_type for f in await _fees(db_session, student.id))
    assert types == ["monthly", "yearly"]

    again = await switch_payment_preference(db_session, student.id, PaymentType.yearly, date(2024, 3, 10), clock)
    assert again.changed is False
    assert again.fee is None
    assert len(await _fees(db_session, student.id)) == 2


@pytest.mark.asyncio
async def test_switch_back_onto_unpaid_period_keeps_switch_and_warns(
    db_session: AsyncSession, student, set_price
) -> None:
    await set_price(FeeType.monthly, "1000")
    await set_price(FeeType.yearly, "12000")
    clock = FixedClock(date(2024, 3, 2))
    await initialize_student_fees(
        db_session,
        student.id,
        FeeInitializationRequest(payment_type=PaymentType.monthly, enrollment_date=date(2024, 3, 1)),
        clock,
    )
    await switch_payment_preference(db_session, student.id, PaymentType.yearly, date(2024, 3, 10), clock)

    # Mar 20 - Apr 19 overlaps the unpaid Mar 1 - Mar 31 monthly fee.
    back = await switch_payment_preference(db_session, student.id, PaymentType.monthly, date(2024, 3, 20), clock)
    assert back.changed is True
    assert back.fee is None
    assert back.warnings == ["A fee for this period already exists"]
    assert back.preference.payment_type == PaymentType.monthly

    pref = await get_student_payment_preference(db_session, student.id)
    assert pref.payment_type == PaymentType.monthly.value
    assert pref.started_from == date(2024, 3, 20)
    assert sorted(f.fee_type for f in await _fees(db_session, student.id)) == ["monthly", "yearly"]


@pytest.mark.asyncio
async def test_switch_without_price_still_updates_preference(db_session: AsyncSession, student) -> None:
    result = await switch_payment_preference(
        db_session, student.id, PaymentType.monthly, date(2024, 3, 10), FixedClock(date(2024, 3, 2))
    )
    assert result.changed is True
    assert result.fee is None
    assert result.warnings == ["Fee not configured: monthly"]
    pref = await get_student_payment_preference(db_session, student.id)
    assert pref.started_from == date(2024, 3, 10)
