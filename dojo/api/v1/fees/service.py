"""Fees service: create fees, list them with status self-correction, record payments, reminder queues."""

import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Callable, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dojo.core.clock import Clock
from dojo.core.config import settings
from dojo.core.enums import UNPAID_STATUSES, FeeEventType, FeeStatus, FeeType, PaymentType
from dojo.core.events import FeeEvent, fee_events
from dojo.core.exceptions import ConflictError, NotFoundError, ServiceError, ValidationError
from dojo.core.models import Student, StudentFee
from dojo.core.money import to_decimal

from .periods import periods_overlap
from .resolver import StatusCorrection, correction_for, resolve_fee_status
from .schemas import (
    FeeListFilters,
    FeeListResult,
    PaymentCreate,
    PaymentResult,
    StudentFeeCreate,
    StudentFeeResponse,
    StudentFeeWithStudent,
)

logger = logging.getLogger(__name__)


def _fee_to_response(fee: StudentFee, status: Optional[FeeStatus] = None) -> StudentFeeResponse:
    amount = to_decimal(fee.amount)
    paid_amount = to_decimal(fee.paid_amount)
    return StudentFeeResponse(
        id=fee.id,
        student_id=fee.student_id,
        fee_type=fee.fee_type,
        amount=amount,
        due_date=fee.due_date,
        status=status or fee.status,
        paid_amount=paid_amount,
        balance=max(Decimal("0"), amount - paid_amount),
        paid_at=fee.paid_at,
        payment_method=fee.payment_method,
        receipt_number=fee.receipt_number,
        notes=fee.notes,
        period_start_date=fee.period_start_date,
        period_end_date=fee.period_end_date,
        belt_grading_id=fee.belt_grading_id,
        reminder_sent_at=fee.reminder_sent_at,
        overdue_notification_sent_at=fee.overdue_notification_sent_at,
        recorded_by_id=fee.recorded_by_id,
        created_at=fee.created_at,
        updated_at=fee.updated_at,
    )


def _fee_with_student(fee: StudentFee, student: Optional[Student], status: FeeStatus) -> StudentFeeWithStudent:
    base = _fee_to_response(fee, status)
    return StudentFeeWithStudent(
        **base.model_dump(),
        student_name=student.full_name if student else None,
        student_code=student.student_code if student else None,
        branch_id=student.branch_id if student else None,
    )


async def publish_fee_event(
    event_type: FeeEventType,
    fee: StudentFeeResponse,
    clock: Clock,
    **data,
) -> None:
    await fee_events.publish(
        FeeEvent(
            event_type=event_type,
            student_id=fee.student_id,
            fee_id=fee.id,
            fee_type=fee.fee_type.value,
            amount=fee.amount,
            paid_amount=fee.paid_amount,
            occurred_at=clock.now(),
            data=data,
        )
    )


# --- Student Fee ---
async def find_period_fee(
    db: AsyncSession,
    student_id: UUID,
    fee_type: FeeType,
    period_start: date,
    period_end: date,
) -> Optional[StudentFee]:
    """Fee of any status covering exactly this period."""
    stmt = select(StudentFee).where(
        StudentFee.student_id == student_id,
        StudentFee.fee_type == FeeType(fee_type).value,
        StudentFee.period_start_date == period_start,
        StudentFee.period_end_date == period_end,
    ).limit(1)
    return (await db.execute(stmt)).scalar_one_or_none()


async def _ensure_no_overlapping_period(db: AsyncSession, payload: StudentFeeCreate) -> None:
    existing = (
        await db.execute(
            select(StudentFee).where(
                StudentFee.student_id == payload.student_id,
                StudentFee.fee_type == payload.fee_type.value,
                StudentFee.status.in_(UNPAID_STATUSES),
                StudentFee.period_start_date.is_not(None),
                StudentFee.period_end_date.is_not(None),
            )
        )
    ).scalars().all()
    for fee in existing:
        if periods_overlap(fee.period_start_date, fee.period_end_date, payload.period_start_date, payload.period_end_date):
            logger.warning(
                "Duplicate fee detected for student %s (%s): new period %s..%s overlaps %s..%s",
                payload.student_id,
                payload.fee_type.value,
                payload.period_start_date,
                payload.period_end_date,
                fee.period_start_date,
                fee.period_end_date,
            )
            raise ConflictError("A fee for this period already exists")


async def create_student_fee(
    db: AsyncSession,
    payload: StudentFeeCreate,
    clock: Clock,
    commit: bool = True,
) -> StudentFeeResponse:
    """
    Create a fee row. Validation happens before any write. Initial status is resolved
    against today, so a back-dated due date creates an overdue fee.
    With commit=False the row is only flushed and the caller owns the transaction (and the event).
    """
    amount = to_decimal(payload.amount)
    if amount < 0:
        raise ValidationError("Fee amount cannot be negative")

    student = await db.get(Student, payload.student_id)
    if not student:
        raise NotFoundError("Student not found")

    has_period = payload.period_start_date is not None or payload.period_end_date is not None
    if payload.fee_type.is_periodic:
        if not student.is_active:
            logger.warning("Attempted to create %s fee for inactive student %s", payload.fee_type.value, payload.student_id)
            raise ValidationError("Cannot create fees for inactive students")
        if payload.period_start_date is None or payload.period_end_date is None:
            raise ValidationError(f"{payload.fee_type.value} fees require a billing period")
        if payload.period_start_date > payload.period_end_date:
            raise ValidationError("Period start must not be after period end")
        await _ensure_no_overlapping_period(db, payload)
    elif has_period:
        raise ValidationError(f"{payload.fee_type.value} fees do not have a billing period")

    if payload.belt_grading_id is not None and payload.fee_type != FeeType.grading:
        raise ValidationError("Only grading fees can reference a belt grading")

    fee = StudentFee(
        student_id=payload.student_id,
        fee_type=payload.fee_type.value,
        amount=amount,
        due_date=payload.due_date,
        paid_amount=Decimal("0"),
        period_start_date=payload.period_start_date,
        period_end_date=payload.period_end_date,
        belt_grading_id=payload.belt_grading_id,
    )
    fee.status = resolve_fee_status(fee, clock.today()).value
    db.add(fee)
    try:
        await db.flush()
        if commit:
            await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("A fee for this period already exists")
    await db.refresh(fee)

    response = _fee_to_response(fee)
    logger.info(
        "Student fee created: student=%s type=%s amount=%s due=%s status=%s",
        fee.student_id,
        fee.fee_type,
        amount,
        fee.due_date,
        fee.status,
    )
    if commit:
        await publish_fee_event(FeeEventType.FEE_CREATED, response, clock)
    return response


def _resolve_rows(
    rows: Sequence,
    today: date,
    status_filter: Optional[FeeStatus],
) -> FeeListResult:
    fees: List[StudentFeeWithStudent] = []
    corrections: List[StatusCorrection] = []
    for fee, student in rows:
        resolved = resolve_fee_status(fee, today)
        correction = correction_for(fee, resolved)
        if correction:
            logger.debug(
                "Correcting fee %s status %s -> %s (due %s, today %s)",
                fee.id,
                correction.old_status.value,
                correction.new_status.value,
                fee.due_date,
                today,
            )
            corrections.append(correction)
        if status_filter is not None and resolved != status_filter:
            continue
        fees.append(_fee_with_student(fee, student, resolved))
    return FeeListResult(fees=fees, corrections=corrections)


async def list_fees(
    db: AsyncSession,
    filters: FeeListFilters,
    clock: Clock,
) -> FeeListResult:
    """
    Fees across students, newest due date first. Every row carries its resolved status;
    stale stored statuses come back as corrections for the caller to persist off the request path.
    """
    stmt = select(StudentFee, Student).outerjoin(Student, StudentFee.student_id == Student.id)
    if filters.student_id is not None:
        stmt = stmt.where(StudentFee.student_id == filters.student_id)
    if filters.branch_id is not None:
        stmt = stmt.where(Student.branch_id == filters.branch_id)
    if filters.fee_type is not None:
        stmt = stmt.where(StudentFee.fee_type == filters.fee_type.value)
    if filters.start_date is not None:
        stmt = stmt.where(StudentFee.due_date >= filters.start_date)
    if filters.end_date is not None:
        stmt = stmt.where(StudentFee.due_date <= filters.end_date)
    stmt = stmt.order_by(StudentFee.due_date.desc(), StudentFee.created_at.desc())
    result = await db.execute(stmt)
    return _resolve_rows(result.all(), clock.today(), filters.status)


async def get_student_fees(
    db: AsyncSession,
    student_id: UUID,
    clock: Clock,
    status: Optional[FeeStatus] = None,
    fee_type: Optional[FeeType] = None,
) -> FeeListResult:
    """Fees of one student. Generates an upcoming yearly fee first when the renewal window is open."""
    from .renewal import ensure_upcoming_yearly_fee

    await ensure_upcoming_yearly_fee(db, student_id, clock)
    return await list_fees(
        db,
        FeeListFilters(student_id=student_id, status=status, fee_type=fee_type),
        clock,
    )


async def persist_status_corrections(
    corrections: Sequence[StatusCorrection],
    session_factory: Callable,
) -> None:
    """
    Background task: write resolved statuses back. Each update is conditional on the stored
    status still being the one we saw, so it can never overwrite paid or a newer correction.
    """
    if not corrections:
        return
    try:
        async with session_factory() as session:
            for correction in corrections:
                await session.execute(
                    update(StudentFee)
                    .where(
                        StudentFee.id == correction.fee_id,
                        StudentFee.status == correction.old_status.value,
                    )
                    .values(status=correction.new_status.value)
                    .execution_options(synchronize_session=False)
                )
            await session.commit()
        logger.debug("Persisted %d fee status corrections", len(corrections))
    except Exception:
        logger.exception("Error correcting fee statuses in database")


# --- Payment ---
async def _apply_payment(
    db: AsyncSession,
    fee: StudentFee,
    expected_paid_amount: Decimal,
    amount: Decimal,
    payload: PaymentCreate,
    recorded_by: Optional[UUID],
    paid_at: datetime,
) -> bool:
    """
    Compare-and-swap on paid_amount: the UPDATE only matches while paid_amount still equals
    expected_paid_amount and the fee is unpaid. Returns whether the fee is now fully paid.
    """
    # Rollback expires the instance, so nothing below may read attributes off fee after it.
    fee_id = fee.id
    total = to_decimal(fee.amount)
    new_paid_amount = expected_paid_amount + amount
    if new_paid_amount > total:
        raise ValidationError("Payment amount exceeds remaining balance")

    values = {
        "paid_amount": new_paid_amount,
        "recorded_by_id": recorded_by,
        "payment_method": payload.payment_method.strip(),
        "receipt_number": (payload.receipt_number or "").strip() or None,
        "notes": (payload.notes or "").strip() or None,
    }
    fully_paid = new_paid_amount >= total
    if fully_paid:
        values["status"] = FeeStatus.paid.value
        values["paid_at"] = paid_at

    result = await db.execute(
        update(StudentFee)
        .where(
            StudentFee.id == fee_id,
            StudentFee.paid_amount == expected_paid_amount,
            StudentFee.status != FeeStatus.paid.value,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.warning(
            "Payment conflict on fee %s: expected paid_amount %s, row changed concurrently",
            fee_id,
            expected_paid_amount,
        )
        await db.rollback()
        raise ConflictError("Payment conflict: another payment was recorded simultaneously. Please reload and try again.")
    await db.commit()
    return fully_paid


async def record_payment(
    db: AsyncSession,
    fee_id: UUID,
    payload: PaymentCreate,
    recorded_by: Optional[UUID],
    clock: Clock,
) -> PaymentResult:
    fee = await db.get(StudentFee, fee_id, populate_existing=True)
    if not fee:
        raise NotFoundError("Student fee not found")
    if fee.status == FeeStatus.paid.value:
        raise ValidationError("Fee is already paid")

    amount = to_decimal(payload.amount)
    if amount <= 0:
        raise ValidationError("Payment amount must be greater than zero")
    current_paid = to_decimal(fee.paid_amount)
    remaining = to_decimal(fee.amount) - current_paid
    if amount > remaining:
        raise ValidationError(f"Payment amount ({amount:.2f}) exceeds remaining balance ({remaining:.2f})")

    fully_paid = await _apply_payment(db, fee, current_paid, amount, payload, recorded_by, clock.now())
    await db.refresh(fee)
    response = _fee_to_response(fee)
    logger.info("Payment recorded: fee=%s amount=%s fully_paid=%s", response.id, amount, fully_paid)

    await publish_fee_event(FeeEventType.PAYMENT_RECORDED, response, clock, amount=str(amount))
    if fully_paid:
        await publish_fee_event(FeeEventType.FEE_PAID, response, clock)

    # Yearly fees renew from the read path one month before the period ends.
    next_fee: Optional[StudentFeeResponse] = None
    if fully_paid and response.fee_type == FeeType.monthly:
        from .renewal import generate_next_period_fee

        try:
            next_fee = await generate_next_period_fee(
                db, response.student_id, PaymentType.monthly, response.period_end_date, clock
            )
        except (ServiceError, SQLAlchemyError):
            # Payment is already committed and stands.
            logger.exception("Error generating next monthly fee after payment on fee %s", response.id)
            await db.rollback()

    return PaymentResult(fee=response, amount_applied=amount, fully_paid=fully_paid, next_fee=next_fee)


# --- Reminders ---
def _in_branch(stmt, branch_id: Optional[UUID]):
    if branch_id is None:
        return stmt
    return stmt.join(Student, Student.id == StudentFee.student_id).where(Student.branch_id == branch_id)


async def get_fees_due_for_reminder(
    db: AsyncSession,
    clock: Clock,
    days_before: Optional[int] = None,
    branch_id: Optional[UUID] = None,
) -> List[StudentFeeResponse]:
    """Pending fees due exactly days_before days from today that have not been reminded yet."""
    if days_before is None:
        days_before = settings.fee_reminder_days_before
    if days_before < 0:
        raise ValidationError("days_before cannot be negative")
    target = clock.today() + timedelta(days=days_before)
    stmt = select(StudentFee).where(
        StudentFee.status == FeeStatus.pending.value,
        StudentFee.due_date == target,
        StudentFee.reminder_sent_at.is_(None),
    ).order_by(StudentFee.created_at)
    result = await db.execute(_in_branch(stmt, branch_id))
    return [_fee_to_response(f) for f in result.scalars().all()]


async def get_overdue_fees(
    db: AsyncSession,
    clock: Clock,
    branch_id: Optional[UUID] = None,
) -> List[StudentFeeResponse]:
    """Unpaid fees past their due date whose overdue notification has not gone out."""
    today = clock.today()
    stmt = select(StudentFee).where(
        StudentFee.status.in_(UNPAID_STATUSES),
        StudentFee.due_date < today,
        StudentFee.overdue_notification_sent_at.is_(None),
    ).order_by(StudentFee.due_date)
    result = await db.execute(_in_branch(stmt, branch_id))
    return [_fee_to_response(f, resolve_fee_status(f, today)) for f in result.scalars().all()]


async def _get_fee(db: AsyncSession, fee_id: UUID) -> StudentFee:
    fee = await db.get(StudentFee, fee_id, populate_existing=True)
    if not fee:
        raise NotFoundError("Student fee not found")
    return fee


async def mark_reminder_sent(db: AsyncSession, fee_id: UUID, clock: Clock) -> StudentFeeResponse:
    fee = await _get_fee(db, fee_id)
    fee.reminder_sent_at = clock.now()
    await db.commit()
    await db.refresh(fee)
    return _fee_to_response(fee)


async def mark_overdue_notification_sent(db: AsyncSession, fee_id: UUID, clock: Clock) -> StudentFeeResponse:
    fee = await _get_fee(db, fee_id)
    resolved = resolve_fee_status(fee, clock.today())
    if resolved != FeeStatus.overdue:
        raise ValidationError(f"Fee is {resolved.value}, not overdue")
    result = await db.execute(
        update(StudentFee)
        .where(StudentFee.id == fee.id, StudentFee.status != FeeStatus.paid.value)
        .values(status=FeeStatus.overdue.value, overdue_notification_sent_at=clock.now())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        raise ConflictError("Fee was paid concurrently")
    await db.commit()
    await db.refresh(fee)
    return _fee_to_response(fee)


async def settle_fee(db: AsyncSession, fee_id: UUID, paid_at: datetime, notes: Optional[str] = None) -> StudentFeeResponse:
    """Mark an unpaid fee as paid in full outside the payment flow (collected at enrollment)."""
    fee = await _get_fee(db, fee_id)
    if fee.status == FeeStatus.paid.value:
        return _fee_to_response(fee)
    fee.paid_amount = fee.amount
    fee.status = FeeStatus.paid.value
    fee.paid_at = paid_at
    if notes:
        fee.notes = notes
    await db.commit()
    await db.refresh(fee)
    return _fee_to_response(fee)
