import os
from datetime import date

import click
from flask import Flask, abort, jsonify, request

from loan_desk.balance import get_loan_balance_breakdown
from loan_desk.config import configure_logging, get_config
from loan_desk.engine import calculate_amortization, effective_rate, filter_rows, sort_rows, summarize
from loan_desk.errors import DataAccessError
from loan_desk.late_fees import calculate_late_fee
from loan_desk.main import build_params_from_options, parse_date_option, serialize_row
from loan_desk.notifications import collect_notifications
from loan_desk.store import create_store


def _money(value) -> float:
    return float(value)


def _form_to_params(args):
    return build_params_from_options(
        args.get("amount", "").strip(),
        float(args.get("rate", 0.0) or 0.0),
        int(args.get("term", 0) or 0),
        args.get("frequency", "monthly"),
        args.get("start_date", ""),
        args.get("fixed_payment", "").strip() or None,
        args.get("type", "simple"),
    )


def _serialize_notification(note):
    return {
        "id": note.id,
        "type": note.type,
        "title": note.title,
        "message": note.message,
        "priority": note.priority,
        "due_date": note.due_date.isoformat(),
        "loan_id": note.loan_id,
        "client_name": note.client_name,
        "amount": _money(note.amount) if note.amount is not None else None,
        **note.extra,
    }


def create_app(config_name=None, store=None):
    """Create the JSON front end of the loan desk."""
    cfg = get_config(config_name)
    app = Flask(__name__)
    app.config.from_object(cfg)
    configure_logging(cfg.LOG_LEVEL)
    loan_store = store or create_store(app.config["DATABASE_URL"])

    def load_loan(loan_id):
        try:
            loan = loan_store.get_loan(loan_id)
        except DataAccessError:
            app.logger.exception("Could not read loan %s", loan_id)
            abort(503)
        if loan is None:
            abort(404)
        return loan

    @app.errorhandler(ValueError)
    @app.errorhandler(click.BadParameter)
    def bad_request(exc):
        message = exc.format_message() if isinstance(exc, click.BadParameter) else str(exc)
        return jsonify({"error": message}), 400

    @app.errorhandler(404)
    def not_found(exc):
        return jsonify({"error": "not found"}), 404

    @app.errorhandler(503)
    def unavailable(exc):
        return jsonify({"error": "loan data is unavailable"}), 503

    @app.get("/amortization")
    def amortization():
        params = _form_to_params(request.args)
        rows = calculate_amortization(params)
        rows = filter_rows(rows, request.args.get("search"))
        rows = sort_rows(rows, request.args.get("sort", "installment"), request.args.get("direction") == "desc")
        totals = summarize(rows)
        return jsonify(
            {
                "interest_rate": _money(effective_rate(params)),
                "schedule": [serialize_row(r) for r in rows],
                "totals": {k: v if isinstance(v, int) else _money(v) for k, v in totals.items()},
            }
        )

    @app.get("/loans/<loan_id>/balance")
    def loan_balance(loan_id):
        loan = load_loan(loan_id)
        breakdown = get_loan_balance_breakdown(loan_store, loan)
        return jsonify(
            {
                "loan_id": loan_id,
                "base_balance": _money(breakdown.base_balance),
                "pending_charges": _money(breakdown.pending_charges),
                "total_balance": _money(breakdown.total_balance),
            }
        )

    @app.get("/loans/<loan_id>/late-fee")
    def loan_late_fee(loan_id):
        loan = load_loan(loan_id)
        on_date = parse_date_option(request.args.get("date"), "date") or date.today()
        calculation = calculate_late_fee(loan, on_date)
        return jsonify(
            {
                "loan_id": loan_id,
                "days_overdue": calculation.days_overdue,
                "late_fee": _money(calculation.total_late_fee),
            }
        )

    @app.get("/notifications")
    def notifications():
        today = parse_date_option(request.args.get("today"), "today") or date.today()
        notes = collect_notifications(
            loan_store, today, app.config["UPCOMING_WINDOW_DAYS"], app.config["COMPANY_ID"]
        )
        return jsonify({"count": len(notes), "notifications": [_serialize_notification(n) for n in notes]})

    return app


if __name__ == "__main__":
    print("Starting loan desk web app...")
    create_app(os.environ.get("LOAN_DESK_ENV") or "development").run(host="0.0.0.0", port=8710, debug=True)
