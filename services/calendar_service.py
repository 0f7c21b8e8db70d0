"""Month grid construction and per-day aggregation for the calendar view."""
import calendar
import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple
from decimal import Decimal

from utils.money import sum_amounts

logger = logging.getLogger(__name__)

GRID_SIZE = 42  # six full weeks

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]


def _check_month_index(month_index: int) -> None:
    if not 0 <= month_index <= 11:
        raise ValueError(f"Month index must be between 0 and 11, got {month_index}.")


def days_in_month(year: int, month_index: int) -> int:
    _check_month_index(month_index)
    return calendar.monthrange(year, month_index + 1)[1]


def first_weekday(year: int, month_index: int) -> int:
    """Weekday of the 1st of the month with Sunday as 0."""
    _check_month_index(month_index)
    # date.weekday() is Monday-based
    return (date(year, month_index + 1, 1).weekday() + 1) % 7


def build_month_grid(year: int, month_index: int) -> List[Optional[int]]:
    """
    Returns the 42 slots of a Sunday-first month grid. Empty slots are None,
    filled slots hold the day of the month.
    """
    offset = first_weekday(year, month_index)
    cells: List[Optional[int]] = [None] * offset
    cells.extend(range(1, days_in_month(year, month_index) + 1))
    cells.extend([None] * (GRID_SIZE - len(cells)))
    return cells


def aggregate_month(receipts: Iterable[Mapping[str, Any]]) -> Tuple[Dict[int, int], Decimal]:
    """
    Counts receipts per day of month and sums their amounts.

    Each receipt needs a `date` (`YYYY-MM-DD` string or `date`) and an
    `amount`; amounts that do not parse count as zero. Receipts with an
    unreadable date still count towards the total.
    """
    receipts = list(receipts)
    counts: Dict[int, int] = {}
    total = sum_amounts(receipt.get("amount") for receipt in receipts)
    for receipt in receipts:
        raw_date = receipt.get("date")
        try:
            day = raw_date.day if isinstance(raw_date, date) else date.fromisoformat(str(raw_date)).day
        except ValueError:
            logger.warning(f"Skipping day count for receipt with invalid date: {raw_date!r}")
            continue
        counts[day] = counts.get(day, 0) + 1
    return counts, total


def shift_month(year: int, month_index: int, delta: int) -> Tuple[int, int]:
    """Moves `delta` months forward (or back), wrapping across years."""
    _check_month_index(month_index)
    absolute = year * 12 + month_index + delta
    return absolute // 12, absolute % 12


def date_key(year: int, month_index: int, day: int) -> str:
    """Composes the `YYYY-MM-DD` key used to query a single day."""
    last = days_in_month(year, month_index)
    if not 1 <= day <= last:
        raise ValueError(f"Day {day} is outside {MONTH_NAMES[month_index]} {year} (1-{last}).")
    return f"{year:04d}-{month_index + 1:02d}-{day:02d}"


def month_bounds(year: int, month_index: int) -> Tuple[str, str]:
    """First and last date keys of the month, inclusive."""
    return date_key(year, month_index, 1), date_key(year, month_index, days_in_month(year, month_index))
