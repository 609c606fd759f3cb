"""Utility functions for the loan desk.

This module provides helpers for parsing user input and database values into
Python data types, rounding money to cents and stepping dates by payment
periods. Two stepping strategies exist side by side: fixed day counts (used
by the amortization table) and calendar periods (used to locate the due
dates of indefinite loans).
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP, getcontext
from typing import Any, Optional

getcontext().prec = 28  # increase decimal precision to avoid rounding errors

CENT = Decimal("0.01")

# Day increments used by the amortization table. "monthly" is a flat 30 days.
PERIOD_DAYS = {
    "daily": 1,
    "weekly": 7,
    "biweekly": 14,
    "monthly": 30,
    "quarterly": 90,
    "yearly": 365,
}


def round2(value: Any) -> Decimal:
    """Round a monetary value to cents, half up. ``None`` counts as zero."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_decimal(value: Any) -> Decimal:
    """Convert a database or user value into a ``Decimal``.

    Floats go through ``str`` so that ``0.1`` becomes ``Decimal("0.1")``
    rather than its binary expansion.
    """
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def decimal_from_str(value: str) -> Decimal:
    """Convert a numeric string into a ``Decimal``.

    The function strips any commas and handles both integer and float-like
    strings. It raises ``ValueError`` if conversion fails.
    """
    try:
        cleaned = value.replace(",", "").strip()
        return Decimal(cleaned)
    except Exception as exc:
        raise ValueError(f"Invalid numeric value: {value}") from exc


def parse_iso_date(value: Any) -> Optional[date]:
    """Return the date portion of an ISO date/timestamp.

    Accepts ``date``/``datetime`` objects and strings such as ``"2024-03-02"``
    or ``"2024-03-02T10:00:00Z"``. Anything after the ``T`` is ignored, so a
    timestamp maps to the calendar day written in it. Empty values give
    ``None``.

    Raises
    ------
    ValueError
        If a non-empty string is not a valid ISO date.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).split("T")[0].split(" ")[0]
    try:
        return date.fromisoformat(text)
    except ValueError as exc:
        raise ValueError(f"Invalid date string: {value}") from exc


def add_days(dt: date, days: int) -> date:
    return dt + timedelta(days=days)


def add_months_rollover(dt: date, months: int) -> date:
    """Return the same day-of-month ``months`` later, rolling over short months.

    Unlike clamping, a day that does not exist in the target month spills
    into the following one: January 30 plus one month is March 1 in a leap
    year and March 2 otherwise.
    """
    year = dt.year + (dt.month - 1 + months) // 12
    month = (dt.month - 1 + months) % 12 + 1
    return date(year, month, 1) + timedelta(days=dt.day - 1)


def add_period(dt: date, frequency: str) -> date:
    """Step ``dt`` forward by one calendar period of ``frequency``.

    Daily, weekly and biweekly periods are 1, 7 and 14 days; monthly and
    quarterly keep the day of month (see :func:`add_months_rollover`); yearly
    is 365 days. Unknown frequencies are treated as monthly.
    """
    freq = (frequency or "monthly").lower()
    if freq == "daily":
        return add_days(dt, 1)
    if freq == "weekly":
        return add_days(dt, 7)
    if freq == "biweekly":
        return add_days(dt, 14)
    if freq == "quarterly":
        return add_months_rollover(dt, 3)
    if freq == "yearly":
        return add_days(dt, 365)
    return add_months_rollover(dt, 1)


def plain_number(value: Decimal) -> str:
    """Render a number the way the table shows it: no trailing zeros.

    ``Decimal("1200.00")`` becomes ``"1200"`` and ``Decimal("833.30")``
    becomes ``"833.3"``.
    """
    if value == 0:
        return "0"
    return f"{value.normalize():f}"
