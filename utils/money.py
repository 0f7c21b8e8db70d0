"""Helpers for turning user-entered amounts into money values."""
import logging
import math
import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, Optional

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
MAX_AMOUNT = Decimal("1000000000")

# Longest numeric prefix, the way the browser's parseFloat reads "12abc" as 12
_NUMBER_PREFIX = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def leading_decimal(value: Any) -> Optional[Decimal]:
    """
    Reads the leading number of `value`, or None when there is none or it is
    not finite. The result is not rounded.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        value = repr(value)
    match = _NUMBER_PREFIX.match(str(value).strip())
    if match is None:
        return None
    return Decimal(match.group(0))


def parse_amount(value: Any) -> Decimal:
    """
    Parses an amount the way the receipt form does: anything without a
    leading finite number counts as zero. The result is rounded to cents;
    amounts too large to round count as zero as well.
    """
    amount = leading_decimal(value)
    if amount is None:
        logger.debug(f"Unparseable amount {value!r}, treating as 0.")
        return Decimal("0.00")
    try:
        return amount.quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        logger.warning(f"Amount {value!r} is out of range, treating as 0.")
        return Decimal("0.00")


def sum_amounts(values: Iterable[Any]) -> Decimal:
    """Sums raw amounts, each parsed with `parse_amount`."""
    total = Decimal("0.00")
    for value in values:
        total += parse_amount(value)
    return total
