"""Decimal money helpers.

Amounts are handled as ``Decimal`` rounded half-up to two places and persisted
as integer paise so no database round-trip goes through a float.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from societyledger.exceptions import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def quantize(value: Decimal | int | str) -> Decimal:
    """Round to two decimal places, half-up (financial rounding)."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_decimal(value: object) -> Decimal:
    """Coerce a DB value (str, int or float) to Decimal without binary noise.

    Raises ``ValidationError`` for text that is not a number, NaN or infinity.
    """
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValidationError(f"Not a valid amount: {value!r}") from None
    if not result.is_finite():
        raise ValidationError(f"Not a valid amount: {value!r}")
    return result


def to_paise(amount: Decimal | int | str) -> int:
    return int(quantize(amount) * 100)


def from_paise(paise: int) -> Decimal:
    return (Decimal(paise) / 100).quantize(CENT)


def format_inr(amount: Decimal | int) -> str:
    """Format an amount with Indian digit grouping: 1234567.5 -> '₹12,34,567.50'"""
    value = quantize(amount)
    whole, frac = f"{abs(value):.2f}".split(".")
    if len(whole) > 3:
        head, tail = whole[:-3], whole[-3:]
        groups: list[str] = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        whole = ",".join(groups + [tail])
    sign = "-" if value < 0 else ""
    return f"{sign}₹{whole}.{frac}"


def parse_inr(text: str) -> Decimal | None:
    """Parse a rupee amount string. Returns None on invalid input.

    Accepts formats like '2500', '2500.50', '2,500.50', '₹ 2,500'.
    """
    text = text.strip().replace("₹", "").replace(",", "").replace(" ", "")
    if not text:
        return None
    try:
        value = Decimal(text)
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return quantize(value)
