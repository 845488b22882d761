"""Persistence adapter that keeps timezone conversion out of the callers.

Each entity kind has one pair of functions: ``*_row_values`` maps an input
schema to column values (local dates -> storage instants) and ``*_record``
maps a stored row back to a record with local ``date`` fields.  Range filters
on date-bearing columns convert their bounds the same way.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, joinedload

from models import (
    Account,
    Asset,
    AssetCategory,
    AssetType,
    Debt,
    DebtStatus,
    DebtType,
    FinancialSnapshot,
    FlowType,
    Frequency,
    IncomeSource,
    RecurringExpense,
    Transaction,
    TransactionCategory,
    TransactionType,
)
from schemas import (
    AccountIn,
    AssetIn,
    CategoryIn,
    DebtIn,
    IncomeSourceIn,
    RecurringExpenseIn,
    TransactionIn,
)
from temporal import (
    TemporalContext,
    current_context,
    day_bounds,
    to_local_date,
    to_storage_instant,
)


@dataclass(frozen=True)
class TransactionRecord:
    id: int
    user_id: int
    date: date
    type: TransactionType
    amount_cents: int
    category_id: Optional[int]
    category_name: Optional[str]
    category_emoji: Optional[str]
    description: Optional[str]
    is_recurring: bool
    flow_type: Optional[FlowType]


@dataclass(frozen=True)
class IncomeSourceRecord:
    id: int
    user_id: int
    name: str
    amount_cents: int
    frequency: Frequency
    category: str
    is_primary: bool
    is_active: bool
    start_date: date
    end_date: Optional[date]


@dataclass(frozen=True)
class RecurringExpenseRecord:
    id: int
    user_id: int
    name: str
    amount_cents: int
    frequency: Frequency
    category: str
    due_day: Optional[int]
    is_active: bool
    is_essential: bool
    start_date: date
    end_date: Optional[date]
    last_paid: Optional[date]


@dataclass(frozen=True)
class AssetRecord:
    id: int
    user_id: int
    name: str
    value_cents: int
    type: AssetType
    category: AssetCategory
    is_active: bool
    purchase_date: Optional[date]
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class DebtRecord:
    id: int
    user_id: int
    creditor: str
    total_amount_cents: int
    remaining_amount_cents: int
    monthly_payment_cents: int
    annual_rate: float
    type: DebtType
    status: DebtStatus
    start_date: date
    end_date: Optional[date]
    paid_date: Optional[date]


@dataclass(frozen=True)
class AccountRecord:
    id: int
    user_id: int
    name: str
    current_balance_cents: int
    is_active: bool


def transaction_row_values(data: TransactionIn, tz: str) -> dict[str, object]:
    return {
        "date": to_storage_instant(data.date, tz),
        "type": data.type,
        "amount_cents": data.amount_cents,
        "category_id": data.category_id,
        "description": data.description,
        "is_recurring": data.is_recurring,
        "flow_type": data.flow_type,
    }


def transaction_record(row: Transaction, tz: str) -> TransactionRecord:
    category = row.category
    return TransactionRecord(
        id=row.id,
        user_id=row.user_id,
        date=to_local_date(row.date, tz),
        type=row.type,
        amount_cents=row.amount_cents,
        category_id=row.category_id,
        category_name=category.name if category else None,
        category_emoji=category.emoji if category else None,
        description=row.description,
        is_recurring=row.is_recurring,
        flow_type=row.flow_type,
    )


def income_source_row_values(data: IncomeSourceIn, tz: str) -> dict[str, object]:
    return {
        "name": data.name.strip(),
        "amount_cents": data.amount_cents,
        "frequency": data.frequency,
        "category": data.category,
        "is_primary": data.is_primary,
        "description": data.description,
        "is_active": data.is_active,
        "start_date": to_storage_instant(data.start_date, tz),
        "end_date": to_storage_instant(data.end_date, tz),
    }


def income_source_record(row: IncomeSource, tz: str) -> IncomeSourceRecord:
    return IncomeSourceRecord(
        id=row.id,
        user_id=row.user_id,
        name=row.name,
        amount_cents=row.amount_cents,
        frequency=row.frequency,
        category=row.category,
        is_primary=row.is_primary,
        is_active=row.is_active,
        start_date=to_local_date(row.start_date, tz),
        end_date=to_local_date(row.end_date, tz),
    )


def recurring_expense_row_values(
    data: RecurringExpenseIn, tz: str
) -> dict[str, object]:
    return {
        "name": data.name.strip(),
        "amount_cents": data.amount_cents,
        "frequency": data.frequency,
        "category": data.category,
        "due_day": data.due_day,
        "description": data.description,
        "is_active": data.is_active,
        "is_essential": data.is_essential,
        "start_date": to_storage_instant(data.start_date, tz),
        "end_date": to_storage_instant(data.end_date, tz),
        "last_paid": to_storage_instant(data.last_paid, tz),
    }


def recurring_expense_record(
    row: RecurringExpense, tz: str
) -> RecurringExpenseRecord:
    return RecurringExpenseRecord(
        id=row.id,
        user_id=row.user_id,
        name=row.name,
        amount_cents=row.amount_cents,
        frequency=row.frequency,
        category=row.category,
        due_day=row.due_day,
        is_active=row.is_active,
        is_essential=row.is_essential,
        start_date=to_local_date(row.start_date, tz),
        end_date=to_local_date(row.end_date, tz),
        last_paid=to_local_date(row.last_paid, tz),
    )


def asset_row_values(data: AssetIn, tz: str) -> dict[str, object]:
    return {
        "name": data.name.strip(),
        "value_cents": data.value_cents,
        "type": data.type,
        "category": data.category,
        "description": data.description,
        "purchase_date": to_storage_instant(data.purchase_date, tz),
    }


def asset_record(row: Asset, tz: str) -> AssetRecord:
    return AssetRecord(
        id=row.id,
        user_id=row.user_id,
        name=row.name,
        value_cents=row.value_cents,
        type=row.type,
        category=row.category,
        is_active=row.is_active,
        purchase_date=to_local_date(row.purchase_date, tz),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def debt_row_values(data: DebtIn, tz: str) -> dict[str, object]:
    return {
        "creditor": data.creditor.strip(),
        "total_amount_cents": data.total_amount_cents,
        "remaining_amount_cents": data.remaining_amount_cents,
        "monthly_payment_cents": data.monthly_payment_cents,
        "annual_rate": data.annual_rate,
        "type": data.type,
        "description": data.description,
        "start_date": to_storage_instant(data.start_date, tz),
        "end_date": to_storage_instant(data.end_date, tz),
    }


def debt_record(row: Debt, tz: str) -> DebtRecord:
    return DebtRecord(
        id=row.id,
        user_id=row.user_id,
        creditor=row.creditor,
        total_amount_cents=row.total_amount_cents,
        remaining_amount_cents=row.remaining_amount_cents,
        monthly_payment_cents=row.monthly_payment_cents,
        annual_rate=row.annual_rate,
        type=row.type,
        status=row.status,
        start_date=to_local_date(row.start_date, tz),
        end_date=to_local_date(row.end_date, tz),
        paid_date=to_local_date(row.paid_date, tz),
    )


def account_record(row: Account) -> AccountRecord:
    return AccountRecord(
        id=row.id,
        user_id=row.user_id,
        name=row.name,
        current_balance_cents=row.current_balance_cents,
        is_active=row.is_active,
    )


class LedgerRepository:
    def __init__(
        self,
        session: Session,
        user_id: int,
        ctx: Optional[TemporalContext] = None,
    ) -> None:
        self.session = session
        self.user_id = user_id
        self.ctx = ctx or current_context()

    @property
    def tz(self) -> str:
        return self.ctx.timezone

    def _owned(self, model, record_id: int, label: str):
        row = self.session.get(model, record_id)
        if not row or row.user_id != self.user_id:
            raise ValueError(f"{label} not found")
        return row

    def _local_range(self, start: date, end: date) -> tuple[datetime, datetime]:
        """Inclusive storage-instant bounds for date-bearing columns."""
        return to_storage_instant(start, self.tz), to_storage_instant(end, self.tz)

    def _timestamp_range(self, start: date, end: date) -> tuple[datetime, datetime]:
        """Half-open UTC bounds for system timestamps over local days."""
        return day_bounds(start, self.tz)[0], day_bounds(end, self.tz)[1]

    # Categories

    def list_categories(self) -> list[TransactionCategory]:
        stmt = (
            select(TransactionCategory)
            .where(TransactionCategory.user_id == self.user_id)
            .order_by(TransactionCategory.name)
        )
        return self.session.scalars(stmt).all()

    def add_category(self, data: CategoryIn) -> TransactionCategory:
        category = TransactionCategory(
            user_id=self.user_id,
            name=data.name.strip(),
            emoji=data.emoji,
            color=data.color,
            type=data.type,
        )
        self.session.add(category)
        self.session.flush()
        return category

    # Transactions

    def _transactions_stmt(self):
        return (
            select(Transaction)
            .options(joinedload(Transaction.category))
            .where(Transaction.user_id == self.user_id)
        )

    def get_transaction(self, transaction_id: int) -> TransactionRecord:
        row = self._owned(Transaction, transaction_id, "Transaction")
        return transaction_record(row, self.tz)

    def add_transaction(self, data: TransactionIn) -> TransactionRecord:
        self._check_category(data.category_id)
        row = Transaction(user_id=self.user_id, **transaction_row_values(data, self.tz))
        self.session.add(row)
        self.session.flush()
        self.session.refresh(row)
        return transaction_record(row, self.tz)

    def update_transaction(
        self, transaction_id: int, data: TransactionIn
    ) -> TransactionRecord:
        row = self._owned(Transaction, transaction_id, "Transaction")
        self._check_category(data.category_id)
        for key, value in transaction_row_values(data, self.tz).items():
            setattr(row, key, value)
        self.session.flush()
        self.session.refresh(row)
        return transaction_record(row, self.tz)

    def delete_transaction(self, transaction_id: int) -> None:
        row = self._owned(Transaction, transaction_id, "Transaction")
        self.session.delete(row)
        self.session.flush()

    def _check_category(self, category_id: Optional[int]) -> None:
        if category_id is None:
            return
        self._owned(TransactionCategory, category_id, "Category")

    def transactions_between(
        self,
        start: date,
        end: date,
        *,
        transaction_type: Optional[TransactionType] = None,
        operating_only: bool = False,
    ) -> list[TransactionRecord]:
        lower, upper = self._local_range(start, end)
        stmt = self._transactions_stmt().where(Transaction.date.between(lower, upper))
        if transaction_type is not None:
            stmt = stmt.where(Transaction.type == transaction_type)
        if operating_only:
            stmt = stmt.where(
                or_(
                    Transaction.flow_type.is_(None),
                    Transaction.flow_type == FlowType.operating,
                )
            )
        stmt = stmt.order_by(Transaction.date.asc(), Transaction.id.asc())
        return [transaction_record(row, self.tz) for row in self.session.scalars(stmt)]

    def expense_total_since(self, start: date) -> int:
        stmt = select(func.coalesce(func.sum(Transaction.amount_cents), 0)).where(
            Transaction.user_id == self.user_id,
            Transaction.type == TransactionType.expense,
            Transaction.date >= to_storage_instant(start, self.tz),
        )
        return int(self.session.execute(stmt).scalar_one() or 0)

    # Income sources

    def list_income_sources(self, active_only: bool = False) -> list[IncomeSourceRecord]:
        stmt = select(IncomeSource).where(IncomeSource.user_id == self.user_id)
        if active_only:
            stmt = stmt.where(IncomeSource.is_active.is_(True))
        stmt = stmt.order_by(IncomeSource.created_at.desc(), IncomeSource.id.desc())
        return [income_source_record(row, self.tz) for row in self.session.scalars(stmt)]

    def add_income_source(self, data: IncomeSourceIn) -> IncomeSourceRecord:
        row = IncomeSource(user_id=self.user_id, **income_source_row_values(data, self.tz))
        self.session.add(row)
        self.session.flush()
        return income_source_record(row, self.tz)

    def update_income_source(
        self, source_id: int, data: IncomeSourceIn
    ) -> IncomeSourceRecord:
        row = self._owned(IncomeSource, source_id, "Income source")
        for key, value in income_source_row_values(data, self.tz).items():
            setattr(row, key, value)
        self.session.flush()
        return income_source_record(row, self.tz)

    def delete_income_source(self, source_id: int) -> None:
        row = self._owned(IncomeSource, source_id, "Income source")
        self.session.delete(row)
        self.session.flush()

    # Recurring expenses

    def list_recurring_expenses(
        self, active_only: bool = False
    ) -> list[RecurringExpenseRecord]:
        stmt = select(RecurringExpense).where(RecurringExpense.user_id == self.user_id)
        if active_only:
            stmt = stmt.where(RecurringExpense.is_active.is_(True))
        stmt = stmt.order_by(
            RecurringExpense.created_at.desc(), RecurringExpense.id.desc()
        )
        return [
            recurring_expense_record(row, self.tz) for row in self.session.scalars(stmt)
        ]

    def add_recurring_expense(self, data: RecurringExpenseIn) -> RecurringExpenseRecord:
        row = RecurringExpense(
            user_id=self.user_id, **recurring_expense_row_values(data, self.tz)
        )
        self.session.add(row)
        self.session.flush()
        return recurring_expense_record(row, self.tz)

    def update_recurring_expense(
        self, expense_id: int, data: RecurringExpenseIn
    ) -> RecurringExpenseRecord:
        row = self._owned(RecurringExpense, expense_id, "Recurring expense")
        for key, value in recurring_expense_row_values(data, self.tz).items():
            setattr(row, key, value)
        self.session.flush()
        return recurring_expense_record(row, self.tz)

    def delete_recurring_expense(self, expense_id: int) -> None:
        row = self._owned(RecurringExpense, expense_id, "Recurring expense")
        self.session.delete(row)
        self.session.flush()

    # Assets

    def list_assets(self, active_only: bool = True) -> list[AssetRecord]:
        stmt = select(Asset).where(Asset.user_id == self.user_id)
        if active_only:
            stmt = stmt.where(Asset.is_active.is_(True))
        stmt = stmt.order_by(Asset.value_cents.desc(), Asset.id.asc())
        return [asset_record(row, self.tz) for row in self.session.scalars(stmt)]

    def add_asset(self, data: AssetIn) -> AssetRecord:
        row = Asset(user_id=self.user_id, **asset_row_values(data, self.tz))
        self.session.add(row)
        self.session.flush()
        self.session.refresh(row)
        return asset_record(row, self.tz)

    def update_asset(self, asset_id: int, data: AssetIn) -> AssetRecord:
        row = self._owned(Asset, asset_id, "Asset")
        if not row.is_active:
            raise ValueError("Asset not found")
        for key, value in asset_row_values(data, self.tz).items():
            setattr(row, key, value)
        self.session.flush()
        return asset_record(row, self.tz)

    def deactivate_asset(self, asset_id: int) -> AssetRecord:
        row = self._owned(Asset, asset_id, "Asset")
        row.is_active = False
        self.session.flush()
        self.session.refresh(row)
        return asset_record(row, self.tz)

    def assets_held_on(self, as_of: date) -> list[AssetRecord]:
        _, upper = day_bounds(as_of, self.tz)
        stmt = (
            select(Asset)
            .where(
                Asset.user_id == self.user_id,
                Asset.is_active.is_(True),
                Asset.created_at < upper,
            )
            .order_by(Asset.id)
        )
        return [asset_record(row, self.tz) for row in self.session.scalars(stmt)]

    def assets_created_between(self, start: date, end: date) -> list[AssetRecord]:
        lower, upper = self._timestamp_range(start, end)
        stmt = (
            select(Asset)
            .where(
                Asset.user_id == self.user_id,
                Asset.created_at >= lower,
                Asset.created_at < upper,
            )
            .order_by(Asset.created_at, Asset.id)
        )
        return [asset_record(row, self.tz) for row in self.session.scalars(stmt)]

    def assets_deactivated_between(self, start: date, end: date) -> list[AssetRecord]:
        lower, upper = self._timestamp_range(start, end)
        stmt = (
            select(Asset)
            .where(
                Asset.user_id == self.user_id,
                Asset.is_active.is_(False),
                Asset.updated_at >= lower,
                Asset.updated_at < upper,
            )
            .order_by(Asset.updated_at, Asset.id)
        )
        return [asset_record(row, self.tz) for row in self.session.scalars(stmt)]

    # Debts

    def list_debts(self, active_only: bool = True) -> list[DebtRecord]:
        stmt = select(Debt).where(Debt.user_id == self.user_id)
        if active_only:
            stmt = stmt.where(Debt.status == DebtStatus.active)
        stmt = stmt.order_by(Debt.remaining_amount_cents.desc(), Debt.id.asc())
        return [debt_record(row, self.tz) for row in self.session.scalars(stmt)]

    def add_debt(self, data: DebtIn) -> DebtRecord:
        row = Debt(
            user_id=self.user_id,
            status=DebtStatus.active,
            **debt_row_values(data, self.tz),
        )
        self.session.add(row)
        self.session.flush()
        return debt_record(row, self.tz)

    def update_debt(self, debt_id: int, data: DebtIn) -> DebtRecord:
        row = self._owned(Debt, debt_id, "Debt")
        for key, value in debt_row_values(data, self.tz).items():
            setattr(row, key, value)
        self.session.flush()
        return debt_record(row, self.tz)

    def mark_debt_paid(self, debt_id: int, paid_on: date) -> DebtRecord:
        row = self._owned(Debt, debt_id, "Debt")
        row.status = DebtStatus.paid
        row.paid_date = to_storage_instant(paid_on, self.tz)
        row.remaining_amount_cents = 0
        self.session.flush()
        return debt_record(row, self.tz)

    def delete_debt(self, debt_id: int) -> None:
        row = self._owned(Debt, debt_id, "Debt")
        self.session.delete(row)
        self.session.flush()

    def active_debts_started_by(self, as_of: date) -> list[DebtRecord]:
        stmt = (
            select(Debt)
            .where(
                Debt.user_id == self.user_id,
                Debt.status == DebtStatus.active,
                Debt.start_date <= to_storage_instant(as_of, self.tz),
            )
            .order_by(Debt.id)
        )
        return [debt_record(row, self.tz) for row in self.session.scalars(stmt)]

    def debts_started_between(self, start: date, end: date) -> list[DebtRecord]:
        lower, upper = self._local_range(start, end)
        stmt = (
            select(Debt)
            .where(Debt.user_id == self.user_id, Debt.start_date.between(lower, upper))
            .order_by(Debt.start_date, Debt.id)
        )
        return [debt_record(row, self.tz) for row in self.session.scalars(stmt)]

    def debts_paid_between(self, start: date, end: date) -> list[DebtRecord]:
        lower, upper = self._local_range(start, end)
        stmt = (
            select(Debt)
            .where(
                Debt.user_id == self.user_id,
                Debt.status == DebtStatus.paid,
                Debt.paid_date.between(lower, upper),
            )
            .order_by(Debt.paid_date, Debt.id)
        )
        return [debt_record(row, self.tz) for row in self.session.scalars(stmt)]

    # Accounts

    def list_accounts(self) -> list[AccountRecord]:
        stmt = (
            select(Account)
            .where(Account.user_id == self.user_id)
            .order_by(Account.name, Account.id)
        )
        return [account_record(row) for row in self.session.scalars(stmt)]

    def add_account(self, data: AccountIn) -> AccountRecord:
        row = Account(
            user_id=self.user_id,
            name=data.name.strip(),
            current_balance_cents=data.current_balance_cents,
            is_active=data.is_active,
        )
        self.session.add(row)
        self.session.flush()
        return account_record(row)

    def cash_balance_on(self, day: date) -> int:
        _, upper = day_bounds(day, self.tz)
        stmt = select(func.coalesce(func.sum(Account.current_balance_cents), 0)).where(
            Account.user_id == self.user_id,
            Account.is_active.is_(True),
            Account.created_at < upper,
        )
        return int(self.session.execute(stmt).scalar_one() or 0)

    # Snapshots

    def get_snapshot(self, day: date) -> Optional[FinancialSnapshot]:
        return self.session.scalar(
            select(FinancialSnapshot).where(
                FinancialSnapshot.user_id == self.user_id,
                FinancialSnapshot.date == day,
            )
        )

    def save_snapshot(self, day: date, values: dict[str, int]) -> FinancialSnapshot:
        snapshot = self.get_snapshot(day)
        if snapshot is None:
            snapshot = FinancialSnapshot(user_id=self.user_id, date=day)
            self.session.add(snapshot)
        for key, value in values.items():
            setattr(snapshot, key, value)
        self.session.flush()
        return snapshot
