"""Output helpers for the loan desk.

This module provides simple functions to render amortization tables,
balances and notifications in a tabular text format. We rely only on
built-in printing and string formatting.
"""

from __future__ import annotations

from typing import Dict, Iterable

from .data_models import AmortizationRow, BalanceBreakdown, LateFeeCalculation, Notification


def print_schedule(rows: Iterable[AmortizationRow], term: int = 0) -> None:
    """Print the amortization table as a simple table.

    Parameters
    ----------
    rows: Iterable[AmortizationRow]
        The rows to print, already filtered and sorted.
    term: int
        Total number of installments, shown as ``n/term``. Open-ended rows
        are shown as ``1/X`` regardless.
    """
    headers = ["Installment", "Date", "Interest", "Principal", "Payment", "Balance"]
    print("\t".join(headers))
    for row in rows:
        label = row.label if row.open_ended or not term else f"{row.installment}/{term}"
        print(
            "\t".join(
                [
                    label,
                    row.date.isoformat(),
                    f"{row.interest:.2f}",
                    f"{row.principal:.2f}",
                    f"{row.payment:.2f}",
                    f"{row.remaining_balance:.2f}",
                ]
            )
        )


def print_totals(totals: Dict[str, object]) -> None:
    print("-" * 72)
    print(f"Installments       : {totals['installments']}")
    print(f"Total interest     : {totals['total_interest']:.2f}")
    print(f"Total principal    : {totals['total_principal']:.2f}")
    print(f"Total payments     : {totals['total_payment']:.2f}")
    print("-" * 72)


def print_breakdown(loan_id: str, breakdown: BalanceBreakdown) -> None:
    print(f"Balance of loan {loan_id}")
    print("-" * 72)
    print(f"Principal + interest : {breakdown.base_balance:.2f}")
    print(f"Pending charges      : {breakdown.pending_charges:.2f}")
    print(f"Total balance        : {breakdown.total_balance:.2f}")
    print("-" * 72)


def print_late_fee(loan_id: str, calculation: LateFeeCalculation) -> None:
    print(f"Late fee of loan {loan_id}")
    print("-" * 72)
    print(f"Days overdue       : {calculation.days_overdue}")
    print(f"Late fee           : {calculation.total_late_fee:.2f}")
    print("-" * 72)


def print_notifications(notifications: Iterable[Notification]) -> None:
    """Print one line per notification, most urgent first."""
    notifications = list(notifications)
    if not notifications:
        print("No pending reminders")
        return
    for note in notifications:
        amount = f"  {note.amount:,.2f}" if note.amount else ""
        print(f"[{note.priority.upper():6s}] {note.due_date.isoformat()}  {note.title}: {note.message}{amount}")
