from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

from shared.core.config import settings

Number = Union[Decimal, int, float, str]


def to_decimal(value: Optional[Number]) -> Optional[Decimal]:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    # str() first so 0.1 stays 0.1 instead of its binary expansion
    return Decimal(str(value))


def round_money(value: Number, precision: Optional[int] = None) -> Decimal:
    """Round half up to the currency's minor unit (CURRENCY_MINOR_UNITS)."""
    if precision is None:
        precision = settings.CURRENCY_MINOR_UNITS
    quantum = Decimal(1).scaleb(-precision)
    return to_decimal(value).quantize(quantum, rounding=ROUND_HALF_UP)
