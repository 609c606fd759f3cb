from datetime import date
from decimal import Decimal

import pytest

from loan_desk.data_models import Loan
from loan_desk.late_fees import calculate_late_fee, days_overdue


def loan(**overrides):
    values = dict(
        id="L1",
        amount=Decimal("10000"),
        remaining_balance=Decimal("10000"),
        next_payment_date=date(2024, 5, 5),
        late_fee_enabled=True,
        late_fee_rate=Decimal("2"),
        late_fee_calculation_type="daily",
    )
    values.update(overrides)
    return Loan(**values)


def test_days_overdue_respects_grace_period():
    assert days_overdue(date(2024, 5, 5), date(2024, 5, 15)) == 10
    assert days_overdue(date(2024, 5, 5), date(2024, 5, 15), 3) == 7
    assert days_overdue(date(2024, 5, 5), date(2024, 5, 1)) == 0
    assert days_overdue(None, date(2024, 5, 1)) == 0


def test_daily_late_fee():
    result = calculate_late_fee(loan(), date(2024, 5, 15))
    assert result.days_overdue == 10
    assert result.total_late_fee == Decimal("2000.00")


def test_grace_period_shortens_the_late_days():
    result = calculate_late_fee(loan(grace_period_days=3), date(2024, 5, 15))
    assert result.total_late_fee == Decimal("1400.00")


@pytest.mark.parametrize("on, expected", [(date(2024, 5, 15), "200.00"), (date(2024, 6, 5), "400.00")])
def test_monthly_late_fee_counts_started_months(on, expected):
    result = calculate_late_fee(loan(late_fee_calculation_type="monthly"), on)
    assert result.total_late_fee == Decimal(expected)


def test_compound_late_fee():
    result = calculate_late_fee(
        loan(remaining_balance=Decimal("1000"), late_fee_rate=Decimal("10"), late_fee_calculation_type="compound"),
        date(2024, 5, 7),
    )
    assert result.total_late_fee == Decimal("210.00")


def test_late_fee_is_capped():
    result = calculate_late_fee(loan(max_late_fee=Decimal("500")), date(2024, 5, 15))
    assert result.total_late_fee == Decimal("500.00")


def test_no_fee_when_disabled_or_not_due():
    assert calculate_late_fee(loan(late_fee_enabled=False), date(2024, 5, 15)).total_late_fee == 0
    assert calculate_late_fee(loan(late_fee_rate=Decimal("0")), date(2024, 5, 15)).total_late_fee == 0
    result = calculate_late_fee(loan(), date(2024, 5, 5))
    assert result.days_overdue == 0
    assert result.total_late_fee == 0
