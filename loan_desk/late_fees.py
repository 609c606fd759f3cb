"""Late-fee (mora) calculation.

A loan accrues a late fee once its next payment date is past, after an
optional grace period. The fee is a percentage of the remaining balance,
applied per day, per started month of 30 days, or compounded daily, and may
be capped by a configured maximum.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional

from .data_models import LateFeeCalculation, Loan
from .utils import round2

ZERO = Decimal("0")


def days_overdue(due_date: Optional[date], calculation_date: date, grace_period_days: int = 0) -> int:
    """Days past ``due_date`` beyond the grace period, never negative."""
    if due_date is None:
        return 0
    return max(0, (calculation_date - due_date).days - (grace_period_days or 0))


def calculate_late_fee(loan: Loan, calculation_date: Optional[date] = None) -> LateFeeCalculation:
    """Compute the late fee of ``loan`` as of ``calculation_date`` (default today)."""
    if not loan.late_fee_enabled or not loan.late_fee_rate:
        return LateFeeCalculation(days_overdue=0, late_fee_amount=ZERO, total_late_fee=ZERO)

    calculation_date = calculation_date or date.today()
    days = days_overdue(loan.next_payment_date, calculation_date, loan.grace_period_days)
    if days <= 0:
        return LateFeeCalculation(days_overdue=0, late_fee_amount=ZERO, total_late_fee=ZERO)

    rate = loan.late_fee_rate / Decimal(100)
    balance = loan.remaining_balance
    method = (loan.late_fee_calculation_type or "daily").lower()
    if method == "monthly":
        months = -(-days // 30)
        fee = balance * rate * months
    elif method == "compound":
        fee = balance * ((1 + rate) ** days - 1)
    else:
        fee = balance * rate * days

    if loan.max_late_fee and loan.max_late_fee > 0:
        fee = min(fee, loan.max_late_fee)

    fee = round2(fee)
    return LateFeeCalculation(days_overdue=days, late_fee_amount=fee, total_late_fee=fee)
