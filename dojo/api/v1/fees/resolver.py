"""
Derive a fee's status from calendar time.

paid is sticky; otherwise a fee is paid when fully covered, pending up to and
including its due date, overdue afterwards. Stored status is never trusted
except for paid, so reads are correct even when a correction write was lost.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Any, NamedTuple, Optional
from uuid import UUID

from dojo.core.enums import FeeStatus

from .periods import parse_business_date

logger = logging.getLogger(__name__)


class StatusCorrection(NamedTuple):
    fee_id: UUID
    old_status: FeeStatus
    new_status: FeeStatus


def _as_status(value: Any) -> Optional[FeeStatus]:
    try:
        return FeeStatus(value)
    except ValueError:
        return None


def resolve_fee_status(fee: Any, today: date) -> FeeStatus:
    """
    fee is anything with status, amount, paid_amount and due_date attributes
    (ORM row or response model). Never raises.
    """
    if _as_status(fee.status) == FeeStatus.paid:
        return FeeStatus.paid

    amount = Decimal(str(fee.amount or 0))
    paid_amount = Decimal(str(fee.paid_amount or 0))
    if paid_amount >= amount:
        return FeeStatus.paid

    try:
        due = parse_business_date(fee.due_date)
    except (TypeError, ValueError):
        logger.warning("Invalid due_date %r on fee %s, treating as pending", fee.due_date, getattr(fee, "id", None))
        return FeeStatus.pending

    if due >= today:
        return FeeStatus.pending
    return FeeStatus.overdue


def correction_for(fee: Any, resolved: FeeStatus) -> Optional[StatusCorrection]:
    """Correction to persist, or None when the stored status is current or may not move to resolved."""
    stored = _as_status(fee.status)
    if stored is None or stored == resolved or not stored.can_transition_to(resolved):
        return None
    return StatusCorrection(fee.id, stored, resolved)
