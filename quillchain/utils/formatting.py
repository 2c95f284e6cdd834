import os
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

FEE_PENDING_TEXT = "fee pending"
LOVELACE_PER_ADA = Decimal(1_000_000)

Number = Union[int, float, str, Decimal]


def to_decimal(value: Optional[Number]) -> Optional[Decimal]:
    """Parse a numeric value into a Decimal; None and garbage give None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value).strip())
    except Exception:
        return None


def quantize(value: Decimal, decimals: int) -> Decimal:
    return value.quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_HALF_UP)


def lovelace_to_ada(lovelace: Optional[Number], decimals: int = 6) -> Optional[Decimal]:
    """Convert the indexer's smallest-unit amount into ADA."""
    value = to_decimal(lovelace)
    if value is None:
        return None
    return quantize(value / LOVELACE_PER_ADA, decimals)


def ada_to_lovelace(ada: Number) -> int:
    value = to_decimal(ada)
    if value is None:
        raise ValueError(f"invalid ADA amount: {ada!r}")
    return int((value * LOVELACE_PER_ADA).to_integral_value(rounding=ROUND_HALF_UP))


def format_ada(amount: Optional[Number], sign: str = "", unit: Optional[str] = None) -> str:
    """Render an ADA amount; an unknown amount renders as 'fee pending', never 0."""
    value = to_decimal(amount)
    if value is None:
        return FEE_PENDING_TEXT

    base_unit = unit or os.getenv("QUILL_CURRENCY_UNIT", "ADA")
    decimals = int(os.getenv("QUILL_AMOUNT_DECIMALS", "6"))
    if decimals < 0:
        decimals = 0
    return f"{sign}{quantize(value, decimals):f} {base_unit}"


def format_balance(balance: Optional[Number]) -> str:
    value = to_decimal(balance)
    if value is None:
        value = Decimal(0)
    return f"{quantize(value, 2):f} ADA"
