"""Data models for the loan desk.

This module defines dataclasses representing the records the calculations
work with: loans and their history (installments, payments, capital
payments, collection follow-ups) as read from the database, and the derived
values produced by the engines (amortization rows, balance breakdowns,
late-fee calculations and notifications). Keeping them as plain dataclasses
makes the calculations independent of the storage layer and easy to build
by hand in tests.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional

FREQUENCIES = ("daily", "weekly", "biweekly", "monthly", "quarterly", "yearly")
AMORTIZATION_TYPES = ("simple", "german", "american", "indefinite")


@dataclass(frozen=True)
class AmortizationParams:
    """Inputs of the amortization table.

    Attributes
    ----------
    amount: Decimal
        The principal being financed.
    interest_rate: Decimal
        Interest rate in percent *per month*. It is converted to the payment
        frequency linearly (see ``engine.period_rate``).
    frequency: str
        One of :data:`FREQUENCIES`.
    term: int
        Number of installments.
    start_date: date
        Due date of the first installment.
    fixed_payment: Optional[Decimal]
        When set, every installment is this amount and the interest rate is
        back-solved from it instead of taken from ``interest_rate``.
    amortization_type: str
        One of :data:`AMORTIZATION_TYPES`; ``"simple"`` is the classic
        equal-installment (French) schedule.
    """

    amount: Decimal
    interest_rate: Decimal
    frequency: str
    term: int
    start_date: date
    fixed_payment: Optional[Decimal] = None
    amortization_type: str = "simple"


@dataclass
class AmortizationRow:
    """A row of the amortization table.

    ``open_ended`` marks the single row produced for indefinite loans, which
    is displayed as ``1/X`` because the loan has no final installment.
    """

    installment: int
    date: date
    interest: Decimal
    principal: Decimal
    payment: Decimal
    remaining_balance: Decimal
    open_ended: bool = False

    @property
    def label(self) -> str:
        return "1/X" if self.open_ended else str(self.installment)


@dataclass
class Loan:
    """A loan as stored in the ``loans`` table.

    ``amount`` is the principal. ``monthly_payment`` is the stored period
    payment (for indefinite loans, the interest due every period).
    ``remaining_balance`` is maintained by the payment workflow and is only
    used here as a fallback when the history cannot be read.
    """

    id: str
    amount: Decimal
    interest_rate: Decimal = Decimal("0")
    term_months: int = 0
    amortization_type: str = "simple"
    payment_frequency: str = "monthly"
    start_date: Optional[date] = None
    next_payment_date: Optional[date] = None
    monthly_payment: Decimal = Decimal("0")
    remaining_balance: Decimal = Decimal("0")
    status: str = "active"
    client_name: str = ""
    company_id: Optional[str] = None
    late_fee_enabled: bool = False
    late_fee_rate: Decimal = Decimal("0")
    late_fee_calculation_type: str = "daily"
    grace_period_days: int = 0
    max_late_fee: Decimal = Decimal("0")
    current_late_fee: Decimal = Decimal("0")


@dataclass
class Installment:
    """A scheduled obligation of a loan.

    Charge installments (fees) carry no interest and their principal equals
    their total; see :meth:`is_charge`.
    """

    due_date: Optional[date]
    principal_amount: Decimal
    interest_amount: Decimal
    total_amount: Decimal
    is_paid: bool = False
    installment_number: Optional[int] = None

    def is_charge(self) -> bool:
        return (
            abs(self.interest_amount) < Decimal("0.01")
            and abs(self.principal_amount - self.total_amount) < Decimal("0.01")
        )


@dataclass
class Payment:
    """A payment attributed to a due date."""

    amount: Decimal
    due_date: Optional[date]
    interest_amount: Decimal = Decimal("0")
    principal_amount: Decimal = Decimal("0")
    payment_date: Optional[date] = None


@dataclass
class CapitalPayment:
    """An extra payment applied directly to principal."""

    amount: Decimal


@dataclass
class FollowUp:
    """A collection-tracking entry with a scheduled next contact."""

    id: str
    loan_id: str
    next_contact_date: date
    contact_type: str
    client_name: str
    loan_status: str = "active"


@dataclass
class BalanceBreakdown:
    """Outstanding balance of a loan.

    ``base_balance`` is principal plus pending interest; ``pending_charges``
    are unpaid fee installments; ``total_balance`` is their sum. Late fees
    are not included.
    """

    base_balance: Decimal
    pending_charges: Decimal
    total_balance: Decimal


@dataclass
class LateFeeCalculation:
    days_overdue: int
    late_fee_amount: Decimal
    total_late_fee: Decimal


@dataclass
class Notification:
    """A reminder shown in the notification panel."""

    id: str
    type: str
    title: str
    message: str
    priority: str  # "high", "medium" or "low"
    due_date: date
    client_name: str
    loan_id: Optional[str] = None
    amount: Optional[Decimal] = None
    extra: dict = field(default_factory=dict)
