import logging
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest
from apscheduler.schedulers.blocking import BlockingScheduler

from loan_desk.data_models import FollowUp, Loan, Notification
from loan_desk.errors import DataAccessError
from loan_desk.notifications import (
    NotificationFeed,
    build_notifications,
    collect_notifications,
    follow_up_notifications,
    late_fee_notifications,
    late_fee_tier,
    overdue_notifications,
    upcoming_notifications,
)

TODAY = date(2024, 6, 10)


def loan(loan_id="L1", days=0, **overrides):
    values = dict(
        id=loan_id,
        amount=Decimal("1000"),
        next_payment_date=TODAY + timedelta(days=days),
        monthly_payment=Decimal("150"),
        client_name="Ana Perez",
        status="active",
    )
    values.update(overrides)
    return Loan(**values)


def test_loan_due_yesterday_is_overdue_with_high_priority():
    notes = overdue_notifications([loan(days=-1)], TODAY)
    assert len(notes) == 1
    assert notes[0].type == "payment_overdue"
    assert notes[0].priority == "high"
    assert notes[0].id == "overdue-L1"
    assert "yesterday" in notes[0].message


def test_overdue_message_grows_with_delay():
    assert "5 days" in overdue_notifications([loan(days=-5)], TODAY)[0].message
    long_overdue = overdue_notifications([loan(days=-20)], TODAY)[0]
    assert long_overdue.title == "Payment seriously overdue"
    assert long_overdue.priority == "high"


def test_deleted_loans_never_notify():
    gone = [loan(days=d, status="deleted") for d in (-3, -1, 0, 2)]
    assert overdue_notifications(gone, TODAY) == []
    assert upcoming_notifications(gone, TODAY) == []
    assert late_fee_notifications(
        [loan(days=-40, status="deleted", late_fee_enabled=True, current_late_fee=Decimal("20000"))], TODAY
    ) == []


@pytest.mark.parametrize(
    "days, priority",
    [(0, "high"), (1, "high"), (2, "medium"), (3, "medium"), (4, "low"), (7, "low")],
)
def test_upcoming_priority_by_days_left(days, priority):
    notes = upcoming_notifications([loan(days=days)], TODAY)
    assert [n.priority for n in notes] == [priority]
    assert notes[0].type == "payment_due"


def test_upcoming_window_ends_after_seven_days():
    assert upcoming_notifications([loan(days=8), loan(days=-1)], TODAY) == []


def follow_up(entry_id="F1", days=1, **overrides):
    values = dict(
        id=entry_id,
        loan_id="L1",
        next_contact_date=TODAY + timedelta(days=days),
        contact_type="phone",
        client_name="Ana Perez",
    )
    values.update(overrides)
    return FollowUp(**values)


def test_follow_ups_in_the_coming_week():
    notes = follow_up_notifications(
        [follow_up("F1", 1), follow_up("F2", 4, contact_type="visit"), follow_up("F3", 9), follow_up("F4", -1)],
        TODAY,
    )
    assert [(n.id, n.priority) for n in notes] == [("followup-F1", "high"), ("followup-F2", "medium")]
    assert notes[1].message == "Reminder: Visit to Ana Perez in 4 days"


def test_follow_ups_of_deleted_loans_are_skipped():
    assert follow_up_notifications([follow_up(loan_status="deleted")], TODAY) == []


@pytest.mark.parametrize(
    "fee, overdue, expected",
    [
        ("12000", 1, ("critical", "high")),
        ("100", 31, ("critical", "high")),
        ("6000", 1, ("high", "high")),
        ("100", 15, ("high", "high")),
        ("2000", 1, ("accumulated", "medium")),
        ("100", 8, ("accumulated", "medium")),
        ("500", 3, None),
    ],
)
def test_late_fee_tiers(fee, overdue, expected):
    assert late_fee_tier(Decimal(fee), overdue) == expected


def test_late_fee_notification():
    notes = late_fee_notifications(
        [
            loan("L1", days=-3, late_fee_enabled=True, current_late_fee=Decimal("6000")),
            loan("L2", days=-3, late_fee_enabled=False, current_late_fee=Decimal("6000")),
            loan("L3", days=-3, late_fee_enabled=True, current_late_fee=Decimal("0")),
        ],
        TODAY,
    )
    assert len(notes) == 1
    assert notes[0].type == "late_fee_high"
    assert notes[0].priority == "high"
    assert notes[0].extra == {"days_overdue": 3}


def note(note_id, priority, due):
    return Notification(
        id=note_id, type="payment_due", title="", message="", priority=priority, due_date=due, client_name=""
    )


def test_build_orders_by_priority_then_date_and_dedupes():
    notes = build_notifications(
        [
            note("a", "low", date(2024, 6, 11)),
            note("b", "high", date(2024, 6, 15)),
            note("c", "medium", date(2024, 6, 12)),
            note("d", "high", date(2024, 6, 12)),
            note("b", "low", date(2024, 6, 1)),
        ]
    )
    assert [n.id for n in notes] == ["d", "b", "c", "a"]
    assert notes[1].priority == "high"


class FakeStore:
    def __init__(self, failing=()):
        self.failing = set(failing)

    def _check(self, name):
        if name in self.failing:
            raise DataAccessError(f"{name} unavailable")

    def overdue_loans(self, today, company_id=None):
        self._check("overdue")
        return [loan("L1", days=-1)]

    def upcoming_loans(self, today, until, company_id=None):
        self._check("upcoming")
        return [loan("L2", days=2)]

    def upcoming_follow_ups(self, today, until, company_id=None):
        self._check("follow_ups")
        return [follow_up("F1", 0)]

    def late_fee_loans(self, company_id=None):
        self._check("late_fees")
        return [loan("L1", days=-1, late_fee_enabled=True, current_late_fee=Decimal("2000"))]


def test_collect_combines_every_source():
    notes = collect_notifications(FakeStore(), TODAY)
    assert [n.id for n in notes] == ["overdue-L1", "followup-F1", "latefee-L1", "upcoming-L2"]


def test_collect_skips_a_failing_source(caplog):
    with caplog.at_level(logging.ERROR, logger="loan_desk.notifications"):
        notes = collect_notifications(FakeStore(failing=["overdue"]), TODAY)
    assert "overdue-L1" not in [n.id for n in notes]
    assert len(notes) == 3
    assert "overdue payments" in caplog.text


def test_feed_schedules_an_interval_job_that_starts_right_away():
    seen = []
    feed = NotificationFeed(FakeStore(), refresh_seconds=300, clock=lambda: TODAY)
    job = feed.schedule(BlockingScheduler(), on_refresh=seen.append)
    assert job.id == "refresh_notifications"
    assert job.trigger.interval == timedelta(seconds=300)
    assert job.next_run_time <= datetime.now(timezone.utc)
    job.func()
    assert len(seen) == 1
    assert len(feed.notifications) == 4


class RecordingScheduler:
    def __init__(self, runs):
        self.runs = runs
        self.jobs = []

    def add_job(self, func, trigger, **options):
        self.jobs.append((func, trigger, options))

    def start(self):
        func = self.jobs[0][0]
        for _ in range(self.runs):
            func()


def test_feed_run_reports_every_refresh():
    seen = []
    scheduler = RecordingScheduler(runs=3)
    feed = NotificationFeed(FakeStore(), refresh_seconds=60, clock=lambda: TODAY)
    feed.run(on_refresh=seen.append, scheduler=scheduler)
    assert len(seen) == 3
    _, trigger, options = scheduler.jobs[0]
    assert trigger == "interval"
    assert options["seconds"] == 60
