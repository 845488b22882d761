import datetime as dt
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from config import DEFAULT_TIMEZONE
from database import Base


class TransactionType(str, Enum):
    income = "income"
    expense = "expense"


class CategoryType(str, Enum):
    income = "income"
    expense = "expense"
    both = "both"


class FlowType(str, Enum):
    operating = "operating"
    investing = "investing"
    financing = "financing"


class Frequency(str, Enum):
    weekly = "weekly"
    biweekly = "biweekly"
    monthly = "monthly"
    annual = "annual"


class IncomeCategory(str, Enum):
    salary = "salary"
    freelance = "freelance"
    business = "business"
    investment = "investment"
    rental = "rental"
    other = "other"


class ExpenseCategory(str, Enum):
    utilities = "utilities"
    internet = "internet"
    subscriptions = "subscriptions"
    transportation = "transportation"
    groceries = "groceries"
    health = "health"
    rent = "rent"
    education = "education"
    entertainment = "entertainment"
    other = "other"


class AssetType(str, Enum):
    liquid = "liquid"
    illiquid = "illiquid"


class AssetCategory(str, Enum):
    cash = "cash"
    investment = "investment"
    property = "property"
    vehicle = "vehicle"
    other = "other"


class DebtType(str, Enum):
    consumption = "consumption"
    housing = "housing"
    education = "education"
    vehicle = "vehicle"
    other = "other"


class DebtStatus(str, Enum):
    active = "active"
    paid = "paid"


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    timezone: Mapped[str] = mapped_column(
        String(64), nullable=False, default=DEFAULT_TIMEZONE
    )


class TransactionCategory(Base, TimestampMixin):
    __tablename__ = "transaction_categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    emoji: Mapped[str] = mapped_column(String(16), nullable=False, default="💰")
    color: Mapped[Optional[str]] = mapped_column(String(9))
    type: Mapped[CategoryType] = mapped_column(SAEnum(CategoryType), nullable=False)

    transactions: Mapped[list["Transaction"]] = relationship(
        "Transaction", back_populates="category"
    )

    __table_args__ = (
        UniqueConstraint("user_id", "type", "name", name="uq_txn_category_user_type_name"),
    )


class Transaction(Base, TimestampMixin):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    # Storage instant: UTC midnight of the user's local calendar day.
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType), nullable=False
    )
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    category_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("transaction_categories.id")
    )
    description: Mapped[Optional[str]] = mapped_column(Text)
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    flow_type: Mapped[Optional[FlowType]] = mapped_column(SAEnum(FlowType))

    category: Mapped[Optional["TransactionCategory"]] = relationship(
        "TransactionCategory", back_populates="transactions"
    )

    __table_args__ = (
        Index("ix_transactions_user_date", "user_id", "date"),
        Index("ix_transactions_user_type_date", "user_id", "type", "date"),
        CheckConstraint("amount_cents > 0", name="ck_transactions_amount_positive"),
    )


class IncomeSource(Base, TimestampMixin):
    __tablename__ = "income_sources"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    frequency: Mapped[Frequency] = mapped_column(SAEnum(Frequency), nullable=False)
    category: Mapped[str] = mapped_column(
        String(50), nullable=False, default=IncomeCategory.other.value
    )
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime)

    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_income_source_amount_positive"),
    )


class RecurringExpense(Base, TimestampMixin):
    __tablename__ = "recurring_expenses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    frequency: Mapped[Frequency] = mapped_column(SAEnum(Frequency), nullable=False)
    category: Mapped[str] = mapped_column(
        String(50), nullable=False, default=ExpenseCategory.other.value
    )
    due_day: Mapped[Optional[int]] = mapped_column(Integer)
    description: Mapped[Optional[str]] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_essential: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    last_paid: Mapped[Optional[datetime]] = mapped_column(DateTime)

    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_recurring_expense_amount_positive"),
    )


class Asset(Base, TimestampMixin):
    __tablename__ = "assets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    value_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[AssetType] = mapped_column(SAEnum(AssetType), nullable=False)
    category: Mapped[AssetCategory] = mapped_column(
        SAEnum(AssetCategory), nullable=False, default=AssetCategory.other
    )
    description: Mapped[Optional[str]] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    purchase_date: Mapped[Optional[datetime]] = mapped_column(DateTime)

    __table_args__ = (
        Index("ix_assets_user_active", "user_id", "is_active"),
        CheckConstraint("value_cents >= 0", name="ck_assets_value_non_negative"),
    )


class Debt(Base, TimestampMixin):
    __tablename__ = "debts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    creditor: Mapped[str] = mapped_column(String(120), nullable=False)
    total_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    remaining_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    monthly_payment_cents: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    annual_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    type: Mapped[DebtType] = mapped_column(SAEnum(DebtType), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[DebtStatus] = mapped_column(
        SAEnum(DebtStatus), nullable=False, default=DebtStatus.active
    )
    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    paid_date: Mapped[Optional[datetime]] = mapped_column(DateTime)

    __table_args__ = (
        Index("ix_debts_user_status", "user_id", "status"),
        CheckConstraint("total_amount_cents >= 0", name="ck_debts_total_non_negative"),
        CheckConstraint(
            "remaining_amount_cents >= 0 AND remaining_amount_cents <= total_amount_cents",
            name="ck_debts_remaining_in_range",
        ),
        CheckConstraint("monthly_payment_cents >= 0", name="ck_debts_payment_non_negative"),
        CheckConstraint("annual_rate >= 0", name="ck_debts_rate_non_negative"),
    )


class Account(Base, TimestampMixin):
    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    current_balance_cents: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class FinancialSnapshot(Base, TimestampMixin):
    __tablename__ = "financial_snapshots"
    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_snapshot_user_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    # Plain calendar date; the (user, date) key is already local to the user.
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    total_assets_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    liquid_assets_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    illiquid_assets_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    total_liabilities_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    short_term_liabilities_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    long_term_liabilities_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    equity_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    cash_balance_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    net_worth_cents: Mapped[int] = mapped_column(Integer, nullable=False)
