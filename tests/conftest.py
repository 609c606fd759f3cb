from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.orm import Session

from loan_desk.store import (
    CapitalPaymentModel,
    ClientModel,
    CollectionTrackingModel,
    InstallmentModel,
    LoanModel,
    LoanStore,
    PaymentModel,
)

TODAY = date(2024, 6, 10)


@pytest.fixture
def store(tmp_path):
    return LoanStore(f"sqlite:///{tmp_path / 'loans.sqlite3'}")


@pytest.fixture
def seeded_store(store):
    """A small book: one fixed-term loan, one indefinite loan, one deleted loan."""
    with Session(store.engine) as session:
        session.add_all(
            [
                ClientModel(id="c1", company_id="co1", full_name="Ana Perez"),
                ClientModel(id="c2", company_id="co1", full_name="Luis Gomez"),
                ClientModel(id="c3", company_id="co2", full_name="Rosa Diaz"),
            ]
        )
        session.add_all(
            [
                LoanModel(
                    id="fixed",
                    client_id="c1",
                    company_id="co1",
                    amount=Decimal("1000.00"),
                    interest_rate=Decimal("5"),
                    term_months=2,
                    amortization_type="simple",
                    payment_frequency="monthly",
                    start_date=date(2024, 5, 1),
                    next_payment_date=date(2024, 6, 9),
                    monthly_payment=Decimal("550.00"),
                    remaining_balance=Decimal("1075.00"),
                    status="active",
                    late_fee_enabled=True,
                    late_fee_rate=Decimal("1"),
                    current_late_fee=Decimal("2500.00"),
                ),
                LoanModel(
                    id="open",
                    client_id="c2",
                    company_id="co1",
                    amount=Decimal("10000.00"),
                    interest_rate=Decimal("5"),
                    amortization_type="indefinite",
                    payment_frequency="monthly",
                    start_date=date(2024, 4, 12),
                    next_payment_date=date(2024, 6, 12),
                    monthly_payment=Decimal("500.00"),
                    remaining_balance=Decimal("10000.00"),
                    status="active",
                ),
                LoanModel(
                    id="gone",
                    client_id="c3",
                    company_id="co2",
                    amount=Decimal("300.00"),
                    next_payment_date=date(2024, 6, 1),
                    remaining_balance=Decimal("300.00"),
                    status="deleted",
                ),
            ]
        )
        session.add_all(
            [
                InstallmentModel(
                    id="i1", loan_id="fixed", installment_number=1, due_date=date(2024, 6, 9),
                    principal_amount=Decimal("500"), interest_amount=Decimal("50"), total_amount=Decimal("550"),
                ),
                InstallmentModel(
                    id="i2", loan_id="fixed", installment_number=2, due_date=date(2024, 7, 9),
                    principal_amount=Decimal("500"), interest_amount=Decimal("25"), total_amount=Decimal("525"),
                ),
                InstallmentModel(
                    id="i3", loan_id="fixed", installment_number=3, due_date=date(2024, 6, 20),
                    principal_amount=Decimal("30"), interest_amount=Decimal("0"), total_amount=None,
                    amount=Decimal("30"),
                ),
                PaymentModel(
                    id="p1", loan_id="open", amount=Decimal("500"), due_date=date(2024, 5, 12),
                    interest_amount=Decimal("500"), payment_date=date(2024, 5, 12),
                ),
                CapitalPaymentModel(id="cp1", loan_id="fixed", amount=Decimal("100")),
                CollectionTrackingModel(id="f1", loan_id="open", contact_type="phone", next_contact_date=date(2024, 6, 11)),
                CollectionTrackingModel(id="f2", loan_id="gone", contact_type="visit", next_contact_date=date(2024, 6, 11)),
                CollectionTrackingModel(id="f3", loan_id="fixed", contact_type="email", next_contact_date=date(2024, 6, 30)),
            ]
        )
        session.commit()
    return store
