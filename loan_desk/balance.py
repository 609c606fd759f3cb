"""Outstanding balance of a loan.

The balance of a loan is split into a *base* balance (principal plus pending
interest) and *pending charges* (unpaid fee installments). Payments are
matched to installments by their exact due date: a payment counts towards an
installment only when both carry the same calendar day.

Fixed-term loans amortize principal with every installment, so the base
balance is the principal not yet repaid plus the interest still owed on the
schedule. Indefinite loans only ever charge interest; their principal is
reduced by capital payments outside this calculation, and the base balance
is the principal plus the interest owed for the period currently open.
"""

from __future__ import annotations

import logging
import threading
from datetime import date
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional

from .data_models import BalanceBreakdown, CapitalPayment, Installment, Loan, Payment
from .errors import DataAccessError, RequestSuperseded
from .utils import CENT, add_period, round2

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
# A period counts as paid when its credit is within this amount of the interest due.
PERIOD_TOLERANCE = Decimal("0.05")
# Payments without an interest split are taken as interest only up to this multiple.
INTEREST_ONLY_CEILING = Decimal("1.25")


def paid_by_due_date(payments: Iterable[Payment]) -> Dict[date, Decimal]:
    """Sum payment amounts per due date. Payments without a due date are skipped."""
    paid: Dict[date, Decimal] = {}
    for p in payments:
        if p.due_date is None:
            continue
        paid[p.due_date] = round2(paid.get(p.due_date, ZERO) + p.amount)
    return paid


def pending_charges(installments: Iterable[Installment], paid: Dict[date, Decimal]) -> Decimal:
    """Return the unpaid part of every charge installment."""
    total = ZERO
    for inst in installments:
        if not inst.is_charge():
            continue
        owed = round2(inst.total_amount)
        paid_for_due = paid.get(inst.due_date, ZERO) if inst.due_date else ZERO
        total += max(ZERO, round2(owed - paid_for_due))
    return round2(total)


def _fixed_term_base_balance(
    loan: Loan, installments: List[Installment], paid: Dict[date, Decimal], capital_paid_extra: Decimal
) -> Decimal:
    capital_paid = ZERO
    interest_pending = ZERO
    for inst in installments:
        if inst.is_charge():
            continue
        total_paid = paid.get(inst.due_date, ZERO) if inst.due_date else ZERO
        expected_interest = round2(inst.interest_amount)
        expected_principal = round2(inst.principal_amount)
        # Interest is settled first; only the rest of the payment reduces principal.
        if inst.due_date:
            capital_paid += min(expected_principal, max(ZERO, round2(total_paid - expected_interest)))
        interest_paid = min(expected_interest, total_paid)
        interest_pending += max(ZERO, round2(expected_interest - interest_paid))

    capital_pending = max(ZERO, round2(loan.amount - round2(capital_paid) - capital_paid_extra))
    return round2(round2(capital_pending) + round2(interest_pending))


def interest_per_period(loan: Loan) -> Decimal:
    """Interest an indefinite loan charges every period.

    The stored period payment is authoritative; loans without one charge
    ``amount * interest_rate%``.
    """
    stored = round2(loan.monthly_payment)
    if stored > CENT:
        return stored
    return round2(loan.amount * (loan.interest_rate / Decimal(100)))


def _payment_interest_credit(payment: Payment, per_period: Decimal) -> Decimal:
    if payment.interest_amount > CENT:
        return payment.interest_amount
    amount = payment.amount
    if amount > CENT and per_period > CENT and amount <= per_period * INTEREST_ONLY_CEILING:
        return amount
    return ZERO


def pending_period_interest(loan: Loan, payments: Iterable[Payment]) -> Decimal:
    """Return the interest still owed for the open period of an indefinite loan.

    There is always exactly one open period. It is the earliest partially
    paid period, else the period after the latest fully paid one, else the
    first period after the start date. Credit recorded against due dates
    earlier than the first period (legacy dates that no longer fall on the
    period grid) is moved to the open period, and so is anything paid above
    the period interest on periods that are already settled.

    A period that turns out fully paid does not leave zero owed: the next
    period is immediately owed in full.
    """
    per_period = interest_per_period(loan)
    first_due = add_period(loan.start_date, loan.payment_frequency) if loan.start_date else None

    credit_by_due: Dict[date, Decimal] = {}
    stale_credit = ZERO
    for p in payments:
        if p.due_date is None:
            continue
        credit = _payment_interest_credit(p, per_period)
        if credit <= CENT:
            continue
        if first_due and p.due_date < first_due:
            stale_credit = round2(stale_credit + credit)
        else:
            credit_by_due[p.due_date] = round2(credit_by_due.get(p.due_date, ZERO) + credit)

    fully_paid: List[date] = []
    partial_due: Optional[date] = None
    for due, credit in credit_by_due.items():
        if credit <= CENT:
            continue
        if credit + PERIOD_TOLERANCE < per_period:
            if partial_due is None or due < partial_due:
                partial_due = due
        else:
            fully_paid.append(due)

    if partial_due is not None:
        active_due = partial_due
    elif fully_paid:
        active_due = add_period(max(fully_paid), loan.payment_frequency)
    else:
        active_due = first_due

    active_credit = ZERO
    if active_due is not None:
        active_credit = round2(credit_by_due.get(active_due, ZERO) + stale_credit)

        if per_period > CENT:
            rollover = ZERO
            for due, credit in credit_by_due.items():
                if due >= active_due:
                    continue
                overflow = round2(max(ZERO, credit - per_period))
                if overflow > CENT:
                    rollover = round2(rollover + overflow)
                    credit_by_due[due] = round2(min(credit, per_period))
            if rollover > CENT:
                active_credit = round2(active_credit + rollover)

    pending = round2(max(ZERO, round2(per_period - active_credit)))
    if pending <= CENT and per_period > CENT:
        pending = per_period
    return pending


def compute_balance_breakdown(
    loan: Loan,
    installments: Iterable[Installment],
    payments: Iterable[Payment],
    capital_payments: Iterable[CapitalPayment],
) -> BalanceBreakdown:
    """Compute the balance of ``loan`` from its full history.

    This is a pure function of its arguments; it performs no I/O.
    """
    installments = list(installments)
    payments = list(payments)
    capital_total = round2(sum((cp.amount for cp in capital_payments), ZERO))

    paid = paid_by_due_date(payments)
    charges = pending_charges(installments, paid)

    if (loan.amortization_type or "").lower() == "indefinite":
        base = round2(loan.amount + pending_period_interest(loan, payments))
    else:
        base = _fixed_term_base_balance(loan, installments, paid, capital_total)

    return BalanceBreakdown(
        base_balance=base,
        pending_charges=charges,
        total_balance=round2(base + charges),
    )


def fallback_breakdown(loan: Loan) -> BalanceBreakdown:
    """Breakdown built from the stored ``remaining_balance`` alone."""
    stored = round2(loan.remaining_balance)
    return BalanceBreakdown(base_balance=stored, pending_charges=ZERO, total_balance=stored)


def get_loan_balance_breakdown(
    store, loan: Loan, is_current: Optional[Callable[[], bool]] = None
) -> BalanceBreakdown:
    """Read the history of ``loan`` from ``store`` and compute its balance.

    If any read fails the stored ``remaining_balance`` is returned instead;
    the caller always gets a number.

    Parameters
    ----------
    store:
        Object providing ``payments_for``, ``installments_for`` and
        ``capital_payments_for`` (see :class:`loan_desk.store.LoanStore`).
    loan: Loan
        The loan whose balance is wanted.
    is_current: callable, optional
        Checked after every read; when it returns False the request is
        abandoned with :class:`RequestSuperseded`.
    """

    def check() -> None:
        if is_current is not None and not is_current():
            raise RequestSuperseded(f"balance request for loan {loan.id} superseded")

    try:
        payments = store.payments_for(loan.id)
        check()
        installments = store.installments_for(loan.id)
        check()
        capital_payments = store.capital_payments_for(loan.id)
        check()
    except DataAccessError:
        logger.warning(
            "Could not read history of loan %s; using stored remaining balance", loan.id, exc_info=True
        )
        return fallback_breakdown(loan)
    return compute_balance_breakdown(loan, installments, payments, capital_payments)


class BalanceTracker:
    """Balance of the loan currently being viewed.

    Selecting a loan starts a new request. If another loan is selected while
    the history of the first one is still being read, the first request is
    dropped so that its late result cannot replace the newer one.
    """

    def __init__(self, store) -> None:
        self._store = store
        self._lock = threading.Lock()
        self._generation = 0
        self.loan_id: Optional[str] = None
        self.breakdown: Optional[BalanceBreakdown] = None

    def select(self, loan: Loan) -> Optional[BalanceBreakdown]:
        """Compute and publish the balance of ``loan``.

        Returns ``None`` when the request was superseded.
        """
        with self._lock:
            self._generation += 1
            generation = self._generation
            self.loan_id = loan.id
            self.breakdown = None

        def is_current() -> bool:
            return generation == self._generation

        try:
            result = get_loan_balance_breakdown(self._store, loan, is_current)
        except RequestSuperseded:
            logger.debug("Dropped balance request for loan %s", loan.id)
            return None

        with self._lock:
            if not is_current():
                logger.debug("Dropped balance result for loan %s", loan.id)
                return None
            self.breakdown = result
        return result
