"""Reminder notifications for the loan desk.

Notifications are derived from scratch on every refresh from three sources:
the next payment date of active loans (overdue and upcoming payments),
collection follow-ups scheduled for the coming days, and late fees that have
built up on a loan. Each rule is a pure function of the records it receives
and the current date; :func:`collect_notifications` reads the records and
tolerates a failing source by leaving its notifications out.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Callable, Iterable, List, Optional, Tuple

from apscheduler.schedulers.blocking import BlockingScheduler

from .data_models import FollowUp, Loan, Notification
from .errors import DataAccessError
from .late_fees import days_overdue

logger = logging.getLogger(__name__)

PRIORITY_ORDER = {"high": 3, "medium": 2, "low": 1}
DEFAULT_WINDOW_DAYS = 7
DEFAULT_REFRESH_SECONDS = 300
REFRESH_JOB_ID = "refresh_notifications"

CONTACT_TYPE_LABELS = {
    "phone": "Call",
    "email": "Email",
    "sms": "SMS",
    "visit": "Visit",
    "letter": "Letter",
    "other": "Contact",
}

# (tier, priority, fee above, days overdue above), checked in order.
LATE_FEE_TIERS = (
    ("critical", "high", Decimal("10000"), 30),
    ("high", "high", Decimal("5000"), 14),
    ("accumulated", "medium", Decimal("1000"), 7),
)


def _days(n: int) -> str:
    return f"{n} day" if n == 1 else f"{n} days"


def _is_active(loan: Loan) -> bool:
    return loan.status == "active"


def overdue_notifications(loans: Iterable[Loan], today: date) -> List[Notification]:
    """One high-priority notification per active loan whose payment date has passed."""
    notes = []
    for loan in loans:
        due = loan.next_payment_date
        if not _is_active(loan) or due is None or due >= today:
            continue
        overdue = (today - due).days
        if overdue == 1:
            title = "Payment overdue"
            message = f"{loan.client_name} has a payment overdue since yesterday"
        elif overdue <= 7:
            title = "Payment overdue"
            message = f"{loan.client_name} has a payment overdue by {_days(overdue)}"
        else:
            title = "Payment seriously overdue"
            message = f"{loan.client_name} has a payment overdue by {_days(overdue)}; contact the client"
        notes.append(
            Notification(
                id=f"overdue-{loan.id}",
                type="payment_overdue",
                title=title,
                message=message,
                priority="high",
                due_date=due,
                loan_id=loan.id,
                client_name=loan.client_name,
                amount=loan.monthly_payment,
            )
        )
    return notes


def upcoming_notifications(
    loans: Iterable[Loan], today: date, window_days: int = DEFAULT_WINDOW_DAYS
) -> List[Notification]:
    """Notifications for active loans due between today and ``window_days`` ahead."""
    until = today + timedelta(days=window_days)
    notes = []
    for loan in loans:
        due = loan.next_payment_date
        if not _is_active(loan) or due is None or not (today <= due <= until):
            continue
        days_left = (due - today).days
        if days_left == 0:
            title, message, priority = "Payment due today", f"{loan.client_name} has a payment due TODAY", "high"
        elif days_left == 1:
            title, message, priority = "Payment due tomorrow", f"{loan.client_name} has a payment due tomorrow", "high"
        else:
            title = "Upcoming payment"
            message = f"{loan.client_name} has a payment due in {_days(days_left)}"
            priority = "medium" if days_left <= 3 else "low"
        notes.append(
            Notification(
                id=f"upcoming-{loan.id}",
                type="payment_due",
                title=title,
                message=message,
                priority=priority,
                due_date=due,
                loan_id=loan.id,
                client_name=loan.client_name,
                amount=loan.monthly_payment,
            )
        )
    return notes


def follow_up_notifications(
    follow_ups: Iterable[FollowUp], today: date, window_days: int = DEFAULT_WINDOW_DAYS
) -> List[Notification]:
    """Notifications for collection contacts scheduled in the coming days."""
    until = today + timedelta(days=window_days)
    notes = []
    for entry in follow_ups:
        due = entry.next_contact_date
        if entry.loan_status == "deleted" or due is None or not (today <= due <= until):
            continue
        days_left = (due - today).days
        label = CONTACT_TYPE_LABELS.get(entry.contact_type, CONTACT_TYPE_LABELS["other"])
        notes.append(
            Notification(
                id=f"followup-{entry.id}",
                type="follow_up_due",
                title="Upcoming follow-up",
                message=f"Reminder: {label} to {entry.client_name} in {_days(days_left)}",
                priority="high" if days_left <= 1 else "medium",
                due_date=due,
                loan_id=entry.loan_id,
                client_name=entry.client_name,
            )
        )
    return notes


def late_fee_tier(fee: Decimal, overdue: int) -> Optional[Tuple[str, str]]:
    """Return ``(tier, priority)`` for an accrued fee, or ``None`` below every threshold."""
    for tier, priority, fee_above, days_above in LATE_FEE_TIERS:
        if fee > fee_above or overdue > days_above:
            return tier, priority
    return None


def late_fee_notifications(loans: Iterable[Loan], today: date) -> List[Notification]:
    """Notifications for active loans carrying a noticeable late fee."""
    notes = []
    for loan in loans:
        if not _is_active(loan) or not loan.late_fee_enabled or loan.current_late_fee <= 0:
            continue
        overdue = days_overdue(loan.next_payment_date, today)
        tier = late_fee_tier(loan.current_late_fee, overdue)
        if tier is None:
            continue
        name, priority = tier
        titles = {
            "critical": "Critical late fee",
            "high": "High late fee",
            "accumulated": "Late fee accumulated",
        }
        notes.append(
            Notification(
                id=f"latefee-{loan.id}",
                type=f"late_fee_{name}",
                title=titles[name],
                message=(
                    f"{loan.client_name} owes {loan.current_late_fee:,.2f} in late fees "
                    f"({_days(overdue)} overdue)"
                ),
                priority=priority,
                due_date=loan.next_payment_date or today,
                loan_id=loan.id,
                client_name=loan.client_name,
                amount=loan.current_late_fee,
                extra={"days_overdue": overdue},
            )
        )
    return notes


def build_notifications(notifications: Iterable[Notification]) -> List[Notification]:
    """Drop repeated ids (first one wins) and order by priority, then due date."""
    seen = set()
    unique = []
    for note in notifications:
        if note.id in seen:
            continue
        seen.add(note.id)
        unique.append(note)
    return sorted(unique, key=lambda n: (-PRIORITY_ORDER.get(n.priority, 0), n.due_date))


def collect_notifications(
    store,
    today: Optional[date] = None,
    window_days: int = DEFAULT_WINDOW_DAYS,
    company_id: Optional[str] = None,
) -> List[Notification]:
    """Read every notification source from ``store`` and build the list.

    A source that cannot be read is logged and skipped; the others are still
    reported.
    """
    today = today or date.today()
    until = today + timedelta(days=window_days)
    sources: List[Tuple[str, Callable[[], List[Notification]]]] = [
        ("overdue payments", lambda: overdue_notifications(store.overdue_loans(today, company_id), today)),
        (
            "upcoming payments",
            lambda: upcoming_notifications(store.upcoming_loans(today, until, company_id), today, window_days),
        ),
        (
            "collection follow-ups",
            lambda: follow_up_notifications(
                store.upcoming_follow_ups(today, until, company_id), today, window_days
            ),
        ),
        ("late fees", lambda: late_fee_notifications(store.late_fee_loans(company_id), today)),
    ]
    notes: List[Notification] = []
    for name, load in sources:
        try:
            notes.extend(load())
        except DataAccessError:
            logger.error("Could not load %s notifications", name, exc_info=True)
    return build_notifications(notes)


class NotificationFeed:
    """Keeps the current notification list, recomputed on a fixed interval."""

    def __init__(
        self,
        store,
        refresh_seconds: int = DEFAULT_REFRESH_SECONDS,
        window_days: int = DEFAULT_WINDOW_DAYS,
        company_id: Optional[str] = None,
        clock: Callable[[], date] = date.today,
    ) -> None:
        self._store = store
        self.refresh_seconds = refresh_seconds
        self.window_days = window_days
        self.company_id = company_id
        self._clock = clock
        self._on_refresh: Optional[Callable[[List[Notification]], None]] = None
        self.notifications: List[Notification] = []

    def refresh(self) -> List[Notification]:
        self.notifications = collect_notifications(
            self._store, self._clock(), self.window_days, self.company_id
        )
        logger.info("Loaded %d notifications", len(self.notifications))
        return self.notifications

    def refresh_and_report(self) -> None:
        notes = self.refresh()
        if self._on_refresh is not None:
            self._on_refresh(notes)

    def schedule(self, scheduler, on_refresh: Optional[Callable[[List[Notification]], None]] = None):
        """Add the refresh job to ``scheduler``: once right away, then every ``refresh_seconds``."""
        self._on_refresh = on_refresh
        return scheduler.add_job(
            func=self.refresh_and_report,
            trigger="interval",
            seconds=self.refresh_seconds,
            next_run_time=datetime.now(),
            id=REFRESH_JOB_ID,
            name="Refresh loan desk notifications",
            replace_existing=True,
            max_instances=1,
        )

    def run(self, on_refresh: Optional[Callable[[List[Notification]], None]] = None, scheduler=None) -> None:
        """Refresh now and then every ``refresh_seconds`` until interrupted."""
        scheduler = scheduler or BlockingScheduler()
        self.schedule(scheduler, on_refresh)
        logger.info("Refreshing notifications every %d seconds", self.refresh_seconds)
        scheduler.start()
