"""Core calculation engine for the amortization table.

This module builds amortization schedules for the loan policies offered at
the desk: equal installments (``simple``), constant principal (``german``),
interest-only with a final balloon (``american``) and open-ended interest-only
loans (``indefinite``). Rates are entered per month and converted to the
payment frequency linearly. Every monetary value is rounded to cents when it
is computed, so the returned rows are authoritative and cannot always be
re-derived exactly from one another.

The functions here are pure: the same parameters always give the same rows,
so callers can recompute on every input change.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from .data_models import AmortizationParams, AmortizationRow
from .utils import PERIOD_DAYS, add_days, add_period, plain_number, round2

# Factor applied to the monthly rate to obtain the rate of one period.
PERIOD_RATE_FACTORS = {
    "daily": Decimal(1) / Decimal(30),
    "weekly": Decimal(1) / Decimal(4),
    "biweekly": Decimal(1) / Decimal(2),
    "monthly": Decimal(1),
    "quarterly": Decimal(3),
    "yearly": Decimal(12),
}

SORT_COLUMNS = ("installment", "date", "interest", "principal", "payment", "remaining_balance")


def period_rate(monthly_rate_percent: Decimal, frequency: str) -> Decimal:
    """Return the decimal interest rate of one period.

    The monthly percentage is scaled linearly: a weekly period is a quarter of
    a month, a quarter is three months and so on. Unknown frequencies are
    treated as monthly.
    """
    factor = PERIOD_RATE_FACTORS.get(frequency, Decimal(1))
    return monthly_rate_percent / Decimal(100) * factor


def implied_monthly_rate(amount: Decimal, term: int, fixed_payment: Decimal) -> Decimal:
    """Back-solve the simple monthly rate (in percent) of a fixed installment.

    The interest is whatever the installments pay above the principal, spread
    evenly over the principal and the term:

        rate = (fixed_payment * term - amount) / amount / term * 100

    A fixed payment that does not exceed ``amount / term`` implies a 0 % rate.
    The result is rounded to two decimals and never negative.
    """
    if fixed_payment <= amount / Decimal(term):
        return Decimal("0")
    total_interest = fixed_payment * term - amount
    rate = total_interest / amount / Decimal(term) * Decimal(100)
    return max(Decimal("0"), round2(rate))


def effective_rate(params: AmortizationParams) -> Decimal:
    """Return the monthly rate the schedule is computed with."""
    fixed = params.fixed_payment
    if not fixed or fixed <= 0 or params.amount <= 0 or params.term <= 0:
        return params.interest_rate
    return implied_monthly_rate(params.amount, params.term, fixed)


def _calculate_annuity_payment(principal: Decimal, rate: Decimal, term: int) -> Decimal:
    """Return the equal installment of a loan.

    The formula is:

        payment = P * (i * (1 + i)^n) / ((1 + i)^n - 1)

    where ``P`` is the principal, ``i`` is the period rate and ``n`` is the
    number of payments. When the interest rate is zero, the payment
    simplifies to ``P / n``.
    """
    if rate == 0:
        return principal / Decimal(term)
    factor = (1 + rate) ** term
    return principal * (rate * factor) / (factor - 1)


def calculate_amortization(params: AmortizationParams) -> List[AmortizationRow]:
    """Compute the amortization table for ``params``.

    Parameters
    ----------
    params: AmortizationParams
        The loan terms. A non-positive amount or term yields an empty table.

    Returns
    -------
    List[AmortizationRow]
        One row per installment. Indefinite loans have a single open-ended
        row describing the recurring interest payment.
    """
    amount = params.amount
    term = params.term
    if amount <= 0 or term <= 0:
        return []

    frequency = params.frequency if params.frequency in PERIOD_DAYS else "monthly"
    rate = period_rate(effective_rate(params), frequency)
    increment = PERIOD_DAYS[frequency]
    kind = (params.amortization_type or "simple").lower()

    if kind == "german":
        return _german_rows(amount, rate, term, params, increment)
    if kind == "american":
        return _american_rows(amount, rate, term, params, increment)
    if kind == "indefinite":
        return _indefinite_rows(amount, rate, params, frequency)

    if params.fixed_payment and params.fixed_payment > 0:
        period_payment = params.fixed_payment
    else:
        period_payment = _calculate_annuity_payment(amount, rate, term)

    rows: List[AmortizationRow] = []
    remaining = amount
    for i in range(1, term + 1):
        interest = remaining * rate
        principal = period_payment - interest
        remaining_after = round2(remaining - principal)
        rows.append(
            AmortizationRow(
                installment=i,
                date=add_days(params.start_date, increment * (i - 1)),
                interest=round2(interest),
                principal=round2(principal),
                payment=round2(period_payment),
                remaining_balance=remaining_after,
            )
        )
        remaining = remaining_after
    return rows


def _german_rows(
    amount: Decimal, rate: Decimal, term: int, params: AmortizationParams, increment: int
) -> List[AmortizationRow]:
    principal = amount / Decimal(term)
    rows: List[AmortizationRow] = []
    remaining = amount
    for i in range(1, term + 1):
        interest = remaining * rate
        remaining_after = round2(remaining - principal)
        rows.append(
            AmortizationRow(
                installment=i,
                date=add_days(params.start_date, increment * (i - 1)),
                interest=round2(interest),
                principal=round2(principal),
                payment=round2(principal + interest),
                remaining_balance=remaining_after,
            )
        )
        remaining = remaining_after
    return rows


def _american_rows(
    amount: Decimal, rate: Decimal, term: int, params: AmortizationParams, increment: int
) -> List[AmortizationRow]:
    interest = amount * rate
    rows: List[AmortizationRow] = []
    for i in range(1, term + 1):
        last = i == term
        rows.append(
            AmortizationRow(
                installment=i,
                date=add_days(params.start_date, increment * (i - 1)),
                interest=round2(interest),
                principal=round2(amount) if last else Decimal("0.00"),
                payment=round2(interest + amount) if last else round2(interest),
                remaining_balance=Decimal("0.00") if last else round2(amount),
            )
        )
    return rows


def _indefinite_rows(
    amount: Decimal, rate: Decimal, params: AmortizationParams, frequency: str
) -> List[AmortizationRow]:
    # The first charge falls one calendar period after the start date.
    interest = round2(amount * rate)
    return [
        AmortizationRow(
            installment=1,
            date=add_period(params.start_date, frequency),
            interest=interest,
            principal=Decimal("0.00"),
            payment=interest,
            remaining_balance=round2(amount),
            open_ended=True,
        )
    ]


def _searchable_fields(row: AmortizationRow) -> List[str]:
    return [
        row.label,
        row.date.isoformat(),
        plain_number(row.interest),
        plain_number(row.principal),
        plain_number(row.payment),
        plain_number(row.remaining_balance),
    ]


def filter_rows(rows: Iterable[AmortizationRow], search: Optional[str]) -> List[AmortizationRow]:
    """Keep the rows where any field contains ``search`` (case-insensitive)."""
    if not search:
        return list(rows)
    needle = search.lower()
    return [row for row in rows if any(needle in f.lower() for f in _searchable_fields(row))]


def sort_rows(
    rows: Iterable[AmortizationRow], column: str = "installment", descending: bool = False
) -> List[AmortizationRow]:
    """Sort rows by ``column``; rows with equal keys keep their order."""
    if column not in SORT_COLUMNS:
        raise ValueError(f"Unknown sort column: {column}")
    return sorted(rows, key=lambda row: getattr(row, column), reverse=descending)


def summarize(rows: Iterable[AmortizationRow]) -> Dict[str, object]:
    """Return the totals shown under the table."""
    rows = list(rows)
    return {
        "installments": len(rows),
        "total_interest": sum((r.interest for r in rows), Decimal("0")),
        "total_principal": sum((r.principal for r in rows), Decimal("0")),
        "total_payment": sum((r.payment for r in rows), Decimal("0")),
    }
