# ipd/utils/money.py
from decimal import ROUND_HALF_UP, Decimal

ZERO = Decimal("0")


def to_decimal(value) -> Decimal:
    """Coerce int/float/str/None to Decimal (None -> 0)."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_amount(value) -> Decimal:
    """
    Round a money amount half-up to a whole number.

    >>> round_amount(Decimal("10.5"))
    Decimal('11')
    """
    return to_decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
