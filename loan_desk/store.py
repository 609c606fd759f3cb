"""Read access to the loan database.

The loan desk shares its database with the payment and loan-origination
workflows; everything here only reads. Any SQLAlchemy-compatible URL works
(SQLite for local development, PostgreSQL in production). Rows are returned
as the plain dataclasses of :mod:`loan_desk.data_models` so that the
calculations never see ORM objects.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import date
from typing import Iterator, List, Optional

from sqlalchemy import Boolean, Column, Date, ForeignKey, Integer, Numeric, String, create_engine, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .data_models import CapitalPayment, FollowUp, Installment, Loan, Payment
from .errors import DataAccessError
from .utils import to_decimal

Base = declarative_base()

Money = Numeric(14, 2)


class ClientModel(Base):
    __tablename__ = "clients"

    id = Column(String(64), primary_key=True)
    company_id = Column(String(64), index=True)
    full_name = Column(String(255), nullable=False)


class LoanModel(Base):
    __tablename__ = "loans"

    id = Column(String(64), primary_key=True)
    client_id = Column(String(64), ForeignKey("clients.id"), nullable=False)
    company_id = Column(String(64), index=True)
    amount = Column(Money, nullable=False)
    interest_rate = Column(Numeric(9, 4), default=0)
    term_months = Column(Integer, default=0)
    amortization_type = Column(String(32), default="simple")
    payment_frequency = Column(String(32), default="monthly")
    start_date = Column(Date)
    next_payment_date = Column(Date, index=True)
    monthly_payment = Column(Money, default=0)
    remaining_balance = Column(Money, default=0)
    status = Column(String(32), default="active", index=True)
    late_fee_enabled = Column(Boolean, default=False)
    late_fee_rate = Column(Numeric(9, 4), default=0)
    late_fee_calculation_type = Column(String(32), default="daily")
    grace_period_days = Column(Integer, default=0)
    max_late_fee = Column(Money, default=0)
    current_late_fee = Column(Money, default=0)


class InstallmentModel(Base):
    __tablename__ = "installments"

    id = Column(String(64), primary_key=True)
    loan_id = Column(String(64), ForeignKey("loans.id"), index=True, nullable=False)
    installment_number = Column(Integer)
    due_date = Column(Date)
    principal_amount = Column(Money, default=0)
    interest_amount = Column(Money, default=0)
    total_amount = Column(Money)
    amount = Column(Money)
    is_paid = Column(Boolean, default=False)


class PaymentModel(Base):
    __tablename__ = "payments"

    id = Column(String(64), primary_key=True)
    loan_id = Column(String(64), ForeignKey("loans.id"), index=True, nullable=False)
    amount = Column(Money, nullable=False)
    due_date = Column(Date)
    interest_amount = Column(Money, default=0)
    principal_amount = Column(Money, default=0)
    payment_date = Column(Date)


class CapitalPaymentModel(Base):
    __tablename__ = "capital_payments"

    id = Column(String(64), primary_key=True)
    loan_id = Column(String(64), ForeignKey("loans.id"), index=True, nullable=False)
    amount = Column(Money, nullable=False)


class CollectionTrackingModel(Base):
    __tablename__ = "collection_tracking"

    id = Column(String(64), primary_key=True)
    loan_id = Column(String(64), ForeignKey("loans.id"), index=True, nullable=False)
    contact_type = Column(String(32), default="phone")
    next_contact_date = Column(Date, index=True)


class LoanStore:
    """Database-backed, read-only access to loans and their history."""

    def __init__(self, url: str) -> None:
        self._engine = create_engine(url, future=True)
        Base.metadata.create_all(self._engine)
        self._session_factory = sessionmaker(self._engine, expire_on_commit=False, future=True)

    @property
    def engine(self):
        return self._engine

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with self._session_factory() as session:
                yield session
        except SQLAlchemyError as exc:
            raise DataAccessError(str(exc)) from exc

    def _loan_query(self, company_id: Optional[str]):
        query = select(LoanModel, ClientModel.full_name).join(ClientModel, LoanModel.client_id == ClientModel.id)
        if company_id:
            query = query.where(LoanModel.company_id == company_id)
        return query

    def get_loan(self, loan_id: str) -> Optional[Loan]:
        with self._session() as session:
            row = session.execute(
                select(LoanModel, ClientModel.full_name)
                .outerjoin(ClientModel, LoanModel.client_id == ClientModel.id)
                .where(LoanModel.id == loan_id)
            ).first()
            return self._to_loan(*row) if row else None

    def payments_for(self, loan_id: str) -> List[Payment]:
        with self._session() as session:
            rows = session.execute(select(PaymentModel).where(PaymentModel.loan_id == loan_id)).scalars()
            return [
                Payment(
                    amount=to_decimal(r.amount),
                    due_date=r.due_date,
                    interest_amount=to_decimal(r.interest_amount),
                    principal_amount=to_decimal(r.principal_amount),
                    payment_date=r.payment_date,
                )
                for r in rows
            ]

    def installments_for(self, loan_id: str) -> List[Installment]:
        with self._session() as session:
            rows = session.execute(
                select(InstallmentModel)
                .where(InstallmentModel.loan_id == loan_id)
                .order_by(InstallmentModel.installment_number)
            ).scalars()
            return [
                Installment(
                    due_date=r.due_date,
                    principal_amount=to_decimal(r.principal_amount),
                    interest_amount=to_decimal(r.interest_amount),
                    total_amount=to_decimal(r.total_amount if r.total_amount is not None else r.amount),
                    is_paid=bool(r.is_paid),
                    installment_number=r.installment_number,
                )
                for r in rows
            ]

    def capital_payments_for(self, loan_id: str) -> List[CapitalPayment]:
        with self._session() as session:
            rows = session.execute(
                select(CapitalPaymentModel).where(CapitalPaymentModel.loan_id == loan_id)
            ).scalars()
            return [CapitalPayment(amount=to_decimal(r.amount)) for r in rows]

    def overdue_loans(self, today: date, company_id: Optional[str] = None) -> List[Loan]:
        with self._session() as session:
            rows = session.execute(
                self._loan_query(company_id)
                .where(LoanModel.status == "active")
                .where(LoanModel.next_payment_date < today)
            ).all()
            return [self._to_loan(*row) for row in rows]

    def upcoming_loans(self, today: date, until: date, company_id: Optional[str] = None) -> List[Loan]:
        with self._session() as session:
            rows = session.execute(
                self._loan_query(company_id)
                .where(LoanModel.status == "active")
                .where(LoanModel.next_payment_date >= today)
                .where(LoanModel.next_payment_date <= until)
            ).all()
            return [self._to_loan(*row) for row in rows]

    def late_fee_loans(self, company_id: Optional[str] = None) -> List[Loan]:
        with self._session() as session:
            rows = session.execute(
                self._loan_query(company_id)
                .where(LoanModel.status == "active")
                .where(LoanModel.late_fee_enabled.is_(True))
                .where(LoanModel.current_late_fee > 0)
            ).all()
            return [self._to_loan(*row) for row in rows]

    def upcoming_follow_ups(self, today: date, until: date, company_id: Optional[str] = None) -> List[FollowUp]:
        query = (
            select(CollectionTrackingModel, LoanModel.status, ClientModel.full_name)
            .join(LoanModel, CollectionTrackingModel.loan_id == LoanModel.id)
            .join(ClientModel, LoanModel.client_id == ClientModel.id)
            .where(CollectionTrackingModel.next_contact_date.is_not(None))
            .where(CollectionTrackingModel.next_contact_date >= today)
            .where(CollectionTrackingModel.next_contact_date <= until)
            .where(LoanModel.status != "deleted")
        )
        if company_id:
            query = query.where(LoanModel.company_id == company_id)
        with self._session() as session:
            return [
                FollowUp(
                    id=entry.id,
                    loan_id=entry.loan_id,
                    next_contact_date=entry.next_contact_date,
                    contact_type=entry.contact_type or "other",
                    client_name=full_name,
                    loan_status=status,
                )
                for entry, status, full_name in session.execute(query).all()
            ]

    @staticmethod
    def _to_loan(row: LoanModel, client_name: Optional[str]) -> Loan:
        return Loan(
            id=row.id,
            amount=to_decimal(row.amount),
            interest_rate=to_decimal(row.interest_rate),
            term_months=row.term_months or 0,
            amortization_type=row.amortization_type or "simple",
            payment_frequency=row.payment_frequency or "monthly",
            start_date=row.start_date,
            next_payment_date=row.next_payment_date,
            monthly_payment=to_decimal(row.monthly_payment),
            remaining_balance=to_decimal(row.remaining_balance),
            status=row.status or "active",
            client_name=client_name or "",
            company_id=row.company_id,
            late_fee_enabled=bool(row.late_fee_enabled),
            late_fee_rate=to_decimal(row.late_fee_rate),
            late_fee_calculation_type=row.late_fee_calculation_type or "daily",
            grace_period_days=row.grace_period_days or 0,
            max_late_fee=to_decimal(row.max_late_fee),
            current_late_fee=to_decimal(row.current_late_fee),
        )


def create_store(url: Optional[str]) -> LoanStore:
    return LoanStore(url or "sqlite:///loan_desk.sqlite3")
