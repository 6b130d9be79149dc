"""Conversion between human-readable amounts and smallest token units."""

from decimal import Decimal, InvalidOperation
from typing import Union


def from_readable_amount(readable_amount: Union[str, Decimal], decimals: int) -> int:
    """Convert a decimal amount (e.g. "0.05") into smallest units.

    Raises:
        ValueError: If the amount is not a decimal number or has more
            fractional digits than the token supports
    """
    try:
        amount = Decimal(str(readable_amount).strip())
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {readable_amount!r}")

    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {readable_amount!r}")

    raw = amount.scaleb(decimals)
    if raw != raw.to_integral_value():
        raise ValueError(
            f"Amount {readable_amount} has more than {decimals} decimal places"
        )
    return int(raw)


def to_readable_amount(raw_amount: int, decimals: int) -> str:
    """Convert smallest units back to a decimal string."""
    value = Decimal(raw_amount).scaleb(-decimals)
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"
