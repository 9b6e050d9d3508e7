from decimal import Decimal

import pytest

from dojo.core.money import to_decimal


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, Decimal("0")),
        (Decimal("12.50"), Decimal("12.50")),
        (1000, Decimal("1000")),
        ("99.99", Decimal("99.99")),
        (0.1, Decimal("0.1")),
    ],
)
def test_to_decimal(value, expected) -> None:
    assert to_decimal(value) == expected


def test_to_decimal_keeps_decimal_instances() -> None:
    amount = Decimal("750.00")
    assert to_decimal(amount) is amount
