from decimal import Decimal


def to_decimal(val) -> Decimal:
    """Numeric column or payload value as Decimal; None counts as zero."""
    if val is None:
        return Decimal("0")
    return val if isinstance(val, Decimal) else Decimal(str(val))
