"""Command-line interface for the loan desk.

This module uses the ``click`` library to implement a multi-command
interface. Staff can print amortization tables for a prospective loan, check
the outstanding balance and late fee of an existing loan, and list (or
watch) the payment and collection reminders. Tables can be exported to
JSON/CSV files.
"""

from __future__ import annotations

import csv
import json
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional

import click

from .balance import get_loan_balance_breakdown
from .config import configure_logging, get_config
from .data_models import AMORTIZATION_TYPES, FREQUENCIES, AmortizationParams, AmortizationRow, Loan
from .engine import SORT_COLUMNS, calculate_amortization, effective_rate, filter_rows, sort_rows, summarize
from .errors import DataAccessError
from .formatter import print_breakdown, print_late_fee, print_notifications, print_schedule, print_totals
from .late_fees import calculate_late_fee
from .notifications import NotificationFeed
from .store import create_store
from .utils import decimal_from_str, parse_iso_date


def parse_amount(value: str) -> float:
    """Parse a numeric string with optional suffixes.

    Accepts plain floats ("500000") and shorthand with ``k``/``m`` suffixes
    (e.g., "500k" meaning 500_000). Returns a float.
    """
    value = value.strip().lower()
    value = value.replace(",", "")
    factor = 1.0
    if value.endswith("k"):
        factor = 1_000.0
        value = value[:-1]
    elif value.endswith("m"):
        factor = 1_000_000.0
        value = value[:-1]
    try:
        return float(value) * factor
    except ValueError:
        raise click.BadParameter(f"Invalid amount: {value}")


def parse_date_option(value: Optional[str], name: str) -> Optional[date]:
    try:
        return parse_iso_date(value)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint=name)


def _finite(value: str, name: str) -> Decimal:
    number = decimal_from_str(value)
    if not number.is_finite():
        raise click.BadParameter(f"Not a finite number: {value}", param_hint=name)
    return number


def build_params_from_options(
    amount: str,
    rate: float,
    term: int,
    frequency: str,
    start_date: str,
    fixed_payment: Optional[str] = None,
    amortization_type: str = "simple",
) -> AmortizationParams:
    # Convert amounts using parse_amount
    amount_value = _finite(str(parse_amount(amount)), "amount")
    fixed_value = None
    if fixed_payment:
        fixed_value = _finite(str(parse_amount(fixed_payment)), "fixed-payment")
    rate_value = _finite(str(rate), "rate")
    start_dt = parse_date_option(start_date, "start-date")
    if start_dt is None:
        raise click.BadParameter("Start date is required", param_hint="start-date")
    if frequency.lower() not in FREQUENCIES:
        raise click.BadParameter(f"Unknown frequency: {frequency}", param_hint="frequency")
    if amortization_type.lower() not in AMORTIZATION_TYPES:
        raise click.BadParameter(f"Unknown amortization type: {amortization_type}", param_hint="type")
    return AmortizationParams(
        amount=amount_value,
        interest_rate=rate_value,
        frequency=frequency.lower(),
        term=term,
        start_date=start_dt,
        fixed_payment=fixed_value,
        amortization_type=amortization_type.lower(),
    )


def serialize_row(row: AmortizationRow) -> Dict[str, Any]:
    return {
        "installment": row.label,
        "date": row.date.isoformat(),
        "interest": float(row.interest),
        "principal": float(row.principal),
        "payment": float(row.payment),
        "remaining_balance": float(row.remaining_balance),
    }


def export_to_json(path: Path, rows: List[AmortizationRow], totals: Dict[str, Any], rate) -> None:
    """Export the table and its totals to a JSON file."""
    data = {
        "interest_rate": float(rate),
        "totals": {k: float(v) if not isinstance(v, int) else v for k, v in totals.items()},
        "schedule": [serialize_row(r) for r in rows],
    }
    with path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def export_to_csv(path: Path, rows: List[AmortizationRow], totals: Dict[str, Any]) -> None:
    """Export the table to a CSV file with a totals line at the end."""
    header = ["Installment", "Date", "Interest", "Principal", "Payment", "Remaining_Balance"]
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(header)
        for r in rows:
            writer.writerow(
                [
                    r.label,
                    r.date.isoformat(),
                    f"{r.interest:.2f}",
                    f"{r.principal:.2f}",
                    f"{r.payment:.2f}",
                    f"{r.remaining_balance:.2f}",
                ]
            )
        writer.writerow(
            [
                "TOTALS",
                "",
                f"{totals['total_interest']:.2f}",
                f"{totals['total_principal']:.2f}",
                f"{totals['total_payment']:.2f}",
                "0",
            ]
        )


def _load_loan(store, loan_id: str) -> Loan:
    try:
        loan = store.get_loan(loan_id)
    except DataAccessError as exc:
        raise click.ClickException(f"Could not read loan {loan_id}: {exc}")
    if loan is None:
        raise click.ClickException(f"Loan not found: {loan_id}")
    return loan


@click.group()
@click.option("--env", "env_name", help="Configuration name (development, production, testing)")
@click.option("--database-url", "database_url", help="Database URL; overrides LOAN_DESK_DATABASE_URL")
@click.pass_context
def cli(ctx: click.Context, env_name: Optional[str], database_url: Optional[str]) -> None:
    """Back-office tools for a small lending business."""
    try:
        cfg = get_config(env_name)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="env")
    configure_logging(cfg.LOG_LEVEL)
    ctx.obj = {"config": cfg, "database_url": database_url or cfg.DATABASE_URL}


def _store(ctx: click.Context):
    return create_store(ctx.obj["database_url"])


@cli.command()
@click.option("--amount", "-a", "amount", required=True, help="Loan amount")
@click.option("--rate", "-r", "rate", default=0.0, type=float, help="Interest rate per month (percent)")
@click.option("--term", "-t", "term", required=True, type=int, help="Number of installments")
@click.option("--frequency", "-f", "frequency", type=click.Choice(FREQUENCIES), default="monthly", help="Payment frequency")
@click.option("--start-date", "-s", "start_date", required=True, help="First payment date (YYYY-MM-DD)")
@click.option("--fixed-payment", "fixed_payment", help="Fixed installment; the rate is derived from it")
@click.option("--type", "amortization_type", type=click.Choice(AMORTIZATION_TYPES), default="simple", help="Amortization type")
@click.option("--search", "search", help="Only show rows containing this text")
@click.option("--sort", "sort_column", type=click.Choice(SORT_COLUMNS), default="installment", help="Column to sort by")
@click.option("--desc", "descending", is_flag=True, help="Sort in descending order")
@click.option("--output", "output", type=str, help="Output file path (.json or .csv)")
@click.pass_context
def schedule(
    ctx: click.Context,
    amount: str,
    rate: float,
    term: int,
    frequency: str,
    start_date: str,
    fixed_payment: Optional[str],
    amortization_type: str,
    search: Optional[str],
    sort_column: str,
    descending: bool,
    output: Optional[str],
) -> None:
    """Compute and print the amortization table."""
    params = build_params_from_options(amount, rate, term, frequency, start_date, fixed_payment, amortization_type)
    rows = sort_rows(filter_rows(calculate_amortization(params), search), sort_column, descending)
    totals = summarize(rows)
    rate_used = effective_rate(params)
    if output:
        path = Path(output)
        if path.suffix.lower() == ".json":
            export_to_json(path, rows, totals, rate_used)
        elif path.suffix.lower() == ".csv":
            export_to_csv(path, rows, totals)
        else:
            raise click.BadParameter("Unsupported output format; use .json or .csv")
        click.echo(f"Schedule exported to {path}")
        return

    if params.fixed_payment:
        click.echo(f"Implied monthly rate: {rate_used:.2f}%")
    # Limit schedule length printed to avoid flooding the terminal
    max_rows = ctx.obj["config"].MAX_SCHEDULE_ROWS
    if len(rows) > max_rows:
        click.echo(f"Schedule has {len(rows)} rows; showing first {max_rows} rows.")
    print_schedule(rows[:max_rows], term if amortization_type != "indefinite" else 0)
    print_totals(totals)


@cli.command()
@click.argument("loan_id")
@click.pass_context
def balance(ctx: click.Context, loan_id: str) -> None:
    """Print the outstanding balance of a loan."""
    store = _store(ctx)
    loan = _load_loan(store, loan_id)
    print_breakdown(loan_id, get_loan_balance_breakdown(store, loan))


@cli.command("late-fee")
@click.argument("loan_id")
@click.option("--date", "on_date", help="Calculation date (YYYY-MM-DD); defaults to today")
@click.pass_context
def late_fee(ctx: click.Context, loan_id: str, on_date: Optional[str]) -> None:
    """Print the late fee a loan has accrued."""
    calculation_date = parse_date_option(on_date, "date") or date.today()
    loan = _load_loan(_store(ctx), loan_id)
    print_late_fee(loan_id, calculate_late_fee(loan, calculation_date))


@cli.command()
@click.option("--today", "today", help="Reference date (YYYY-MM-DD); defaults to today")
@click.option("--watch", "watch", is_flag=True, help="Keep running and refresh periodically")
@click.pass_context
def notifications(ctx: click.Context, today: Optional[str], watch: bool) -> None:
    """List payment and collection reminders."""
    cfg = ctx.obj["config"]
    fixed_today = parse_date_option(today, "today")
    feed = NotificationFeed(
        _store(ctx),
        refresh_seconds=cfg.NOTIFICATION_REFRESH_SECONDS,
        window_days=cfg.UPCOMING_WINDOW_DAYS,
        company_id=cfg.COMPANY_ID,
        clock=(lambda: fixed_today) if fixed_today else date.today,
    )
    if not watch:
        print_notifications(feed.refresh())
        return
    try:
        feed.run(on_refresh=print_notifications)
    except KeyboardInterrupt:
        click.echo("Stopped.")


if __name__ == "__main__":
    cli()
