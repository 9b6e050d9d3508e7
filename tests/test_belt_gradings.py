from datetime import date
from decimal import Decimal
from typing import List

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dojo.api.v1.belt_gradings.schemas import BeltGradingCreate
from dojo.api.v1.belt_gradings.service import list_belt_gradings, record_belt_grading
from dojo.core.clock import FixedClock
from dojo.core.enums import FeeEventType, FeeStatus, FeeType
from dojo.core.events import FeeEvent, fee_events
from dojo.core.exceptions import ValidationError
from dojo.core.models import Student, StudentFee


@pytest.mark.asyncio
async def test_grading_without_price_updates_belt_and_skips_fee(db_session: AsyncSession, student) -> None:
    clock = FixedClock(date(2024, 3, 2))
    result = await record_belt_grading(
        db_session,
        student.id,
        BeltGradingCreate(from_belt="White", to_belt="Yellow", grading_date=date(2024, 3, 2)),
        actor_id=None,
        clock=clock,
    )
    assert result.fee is None
    assert result.warnings == ["Fee not configured: grading (Yellow)"]
    assert result.grading.fee_amount is None
    assert result.grading.to_belt_display == "Yellow (9th Kyu)"

    refreshed = await db_session.get(Student, student.id, populate_existing=True)
    assert refreshed.current_belt == "Yellow"
    fees = (await db_session.execute(select(StudentFee))).scalars().all()
    assert fees == []


@pytest.mark.asyncio
async def test_grading_with_price_creates_linked_fee(db_session: AsyncSession, student, set_price) -> None:
    await set_price(FeeType.grading, "750", "Yellow")
    clock = FixedClock(date(2024, 3, 2))
    received: List[FeeEvent] = []
    fee_events.subscribe(FeeEventType.BELT_GRADED, received.append)

    result = await record_belt_grading(
        db_session,
        student.id,
        BeltGradingCreate(from_belt="White", to_belt="Yellow", grading_date=date(2024, 3, 9)),
        actor_id=None,
        clock=clock,
    )
    assert result.warnings == []
    assert result.fee.fee_type == FeeType.grading
    assert result.fee.amount == Decimal("750")
    assert result.fee.due_date == date(2024, 3, 9)
    assert result.fee.status == FeeStatus.pending
    assert result.fee.period_start_date is None
    assert result.fee.belt_grading_id == result.grading.id
    assert result.grading.student_fee_id == result.fee.id
    assert result.grading.fee_amount == Decimal("750")

    assert len(received) == 1
    assert received[0].data["to_belt"] == "Yellow"

    gradings = await list_belt_gradings(db_session, student.id)
    assert [g.id for g in gradings] == [result.grading.id]


@pytest.mark.asyncio
async def test_grading_validations(db_session: AsyncSession, student, make_student) -> None:
    clock = FixedClock(date(2024, 3, 2))
    with pytest.raises(ValidationError):
        await record_belt_grading(
            db_session,
            student.id,
            BeltGradingCreate(from_belt="Green", to_belt="Blue", grading_date=date(2024, 3, 2)),
            actor_id=None,
            clock=clock,
        )
    with pytest.raises(ValidationError):
        await record_belt_grading(
            db_session,
            student.id,
            BeltGradingCreate(from_belt="White", to_belt="Pink", grading_date=date(2024, 3, 2)),
            actor_id=None,
            clock=clock,
        )

    inactive = await make_student(is_active=False)
    with pytest.raises(ValidationError):
        await record_belt_grading(
            db_session,
            inactive.id,
            BeltGradingCreate(from_belt="White", to_belt="Yellow", grading_date=date(2024, 3, 2)),
            actor_id=None,
            clock=clock,
        )
    assert await list_belt_gradings(db_session, student.id) == []


@pytest.mark.asyncio
async def test_successive_gradings_listed_newest_first(db_session: AsyncSession, student) -> None:
    clock = FixedClock(date(2024, 6, 1))
    await record_belt_grading(
        db_session, student.id, BeltGradingCreate(from_belt="White", to_belt="Yellow", grading_date=date(2024, 3, 2)), None, clock
    )
    await record_belt_grading(
        db_session, student.id, BeltGradingCreate(from_belt="Yellow", to_belt="Orange", grading_date=date(2024, 6, 1)), None, clock
    )
    gradings = await list_belt_gradings(db_session, student.id)
    assert [g.to_belt for g in gradings] == ["Orange", "Yellow"]
