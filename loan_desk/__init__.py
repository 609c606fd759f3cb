"""Loan desk: amortization tables, loan balances and reminders for a lending back office."""

__version__ = "0.3.0"
