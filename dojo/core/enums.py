from enum import Enum
from typing import Dict, FrozenSet


class FeeType(str, Enum):
    registration = "registration"
    monthly = "monthly"
    yearly = "yearly"
    grading = "grading"

    @property
    def is_periodic(self) -> bool:
        return self in (FeeType.monthly, FeeType.yearly)


class PaymentType(str, Enum):
    monthly = "monthly"
    yearly = "yearly"

    @property
    def fee_type(self) -> FeeType:
        return FeeType(self.value)


class FeeStatus(str, Enum):
    pending = "pending"
    overdue = "overdue"
    paid = "paid"

    def can_transition_to(self, target: "FeeStatus") -> bool:
        return target in FEE_STATUS_TRANSITIONS[self]


# paid is terminal
FEE_STATUS_TRANSITIONS: Dict[FeeStatus, FrozenSet[FeeStatus]] = {
    FeeStatus.pending: frozenset({FeeStatus.overdue, FeeStatus.paid}),
    FeeStatus.overdue: frozenset({FeeStatus.paid}),
    FeeStatus.paid: frozenset(),
}

UNPAID_STATUSES = (FeeStatus.pending.value, FeeStatus.overdue.value)


class UserRole(str, Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    STUDENT = "student"


class FeeEventType(str, Enum):
    FEE_CREATED = "fee.created"
    PAYMENT_RECORDED = "fee.payment_recorded"
    FEE_PAID = "fee.paid"
    BELT_GRADED = "belt.graded"


# Kyu ladder, lowest first. Black is Dan level.
BELT_LEVELS = (
    "White",
    "Yellow",
    "Orange",
    "Green",
    "Blue",
    "Purple",
    "Brown 3",
    "Brown 2",
    "Brown 1",
    "Black",
)

BELT_KYU: Dict[str, str] = {
    "White": "10th Kyu",
    "Yellow": "9th Kyu",
    "Orange": "8th Kyu",
    "Green": "7th Kyu",
    "Blue": "6th Kyu",
    "Purple": "5th Kyu",
    "Brown 3": "3rd Kyu",
    "Brown 2": "2nd Kyu",
    "Brown 1": "1st Kyu",
    "Black": "Dan Level",
}

DEFAULT_BELT = "White"


def belt_display_name(belt: str) -> str:
    kyu = BELT_KYU.get(belt)
    return f"{belt} ({kyu})" if kyu else belt
