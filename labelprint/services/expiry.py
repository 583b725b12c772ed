"""
Expiry date calculation from a product's shelf-life string.

Shelf life is written as "<number> <unit>", for example "18 months",
"30 days", "2 years" or the Thai "6 เดือน". A bare number means months.
"""
import calendar
import re
from datetime import date, timedelta
from typing import Optional

_LEADING_INT = re.compile(r"^[+-]?\d+")

DAY_UNITS = ("day", "วัน")
MONTH_UNITS = ("month", "mon", "เดือน")
YEAR_UNITS = ("year", "yr", "ปี")


def add_months(start: date, months: int) -> date:
    """Add calendar months, clamping to the last day of the target month."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def parse_shelf_life(shelf_life: str):
    """
    Split a shelf-life string into (amount, unit).

    Returns None when there is no positive leading integer.
    """
    text = (shelf_life or "").strip()
    if not text:
        return None

    value, _, unit = text.partition(" ")
    match = _LEADING_INT.match(value)
    if not match:
        return None
    amount = int(match.group())
    if amount <= 0:
        return None
    return amount, (unit.strip().lower() or "months")


def calculate_expiry_date(production_date: Optional[date], shelf_life: Optional[str]) -> Optional[date]:
    """Production date plus shelf life, or None when either is missing or unparsable."""
    if production_date is None or not shelf_life:
        return None

    parsed = parse_shelf_life(shelf_life)
    if parsed is None:
        return None
    amount, unit = parsed

    try:
        if any(u in unit for u in DAY_UNITS):
            return production_date + timedelta(days=amount)
        if any(u in unit for u in MONTH_UNITS):
            return add_months(production_date, amount)
        if any(u in unit for u in YEAR_UNITS):
            return add_months(production_date, amount * 12)
        # months, and the fallback for units we do not recognise
        return add_months(production_date, amount)
    except (OverflowError, ValueError):
        return None
