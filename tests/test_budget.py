from datetime import date

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from database import Base
from models import AssetType, CategoryType, DebtType, Frequency, TransactionType
from schemas import (
    AssetIn,
    CategoryIn,
    DebtIn,
    IncomeSourceIn,
    RecurringExpenseIn,
    TransactionIn,
)
from services import (
    BudgetService,
    CategoryService,
    FinancialService,
    TransactionService,
    planned_category_key,
)
from temporal import TemporalContext


CTX = TemporalContext(user_id=1, timezone="America/El_Salvador")
TODAY = date(2024, 5, 15)


def _make_session() -> Session:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    return Session(engine)


def _spend(session, name, amount, day=date(2024, 5, 3), kind=TransactionType.expense):
    category_type = CategoryType.income if kind == TransactionType.income else CategoryType.expense
    category = CategoryService(session, ctx=CTX).create(
        CategoryIn(name=name, type=category_type)
    )
    TransactionService(session, ctx=CTX).create(
        TransactionIn(date=day, type=kind, amount_cents=amount, category_id=category.id)
    )


def test_budget_summary_normalizes_frequencies_and_merges_actuals() -> None:
    with _make_session() as session:
        service = BudgetService(session, ctx=CTX)
        service.create_income_source(
            IncomeSourceIn(
                name="Job",
                amount_cents=500000,
                frequency=Frequency.monthly,
                category="salary",
                start_date=date(2024, 1, 1),
            )
        )
        service.create_recurring_expense(
            RecurringExpenseIn(
                name="Apartment",
                amount_cents=1_200_000,
                frequency=Frequency.annual,
                category="rent",
                is_essential=True,
                start_date=date(2024, 1, 1),
            )
        )
        service.create_recurring_expense(
            RecurringExpenseIn(
                name="Market",
                amount_cents=10000,
                frequency=Frequency.weekly,
                category="groceries",
                start_date=date(2024, 1, 1),
            )
        )
        _spend(session, "Alimentación", 5000)
        _spend(session, "Gym", 3000, day=date(2024, 5, 20))
        _spend(session, "Salario", 500000, kind=TransactionType.income)
        _spend(session, "Last month", 9999, day=date(2024, 4, 30))

        summary = service.get_budget_summary(TODAY)

        assert summary.total_monthly_income_cents == 500000
        assert summary.total_monthly_expenses_cents == 143300
        assert summary.available_balance_cents == 356700
        assert summary.savings_rate == pytest.approx(71.34)
        assert summary.actual_monthly_expenses_cents == 8000

        lines = {line.category: line for line in summary.expenses_by_category}
        assert [line.category for line in summary.expenses_by_category] == [
            "rent",
            "groceries",
            "Gym",
        ]
        assert lines["rent"].amount_cents == 100000
        assert lines["rent"].percentage == pytest.approx(20.0)
        assert lines["rent"].is_essential is True
        assert lines["groceries"].amount_cents == 43300
        assert lines["groceries"].actual_amount_cents == 5000
        assert lines["Gym"].amount_cents == 0
        assert lines["Gym"].actual_amount_cents == 3000

        (income,) = summary.income_by_category
        assert income.category == "salary"
        assert income.actual_amount_cents == 500000
        assert income.percentage == pytest.approx(100.0)


def test_budget_summary_with_no_income_has_zero_savings_rate() -> None:
    with _make_session() as session:
        service = BudgetService(session, ctx=CTX)
        service.create_recurring_expense(
            RecurringExpenseIn(
                name="Phone",
                amount_cents=2000,
                frequency=Frequency.monthly,
                category="internet",
                start_date=date(2024, 1, 1),
            )
        )

        summary = service.get_budget_summary(TODAY)

        assert summary.total_monthly_income_cents == 0
        assert summary.available_balance_cents == -2000
        assert summary.savings_rate == 0.0
        assert summary.income_by_category == []
        assert summary.expenses_by_category[0].percentage == 0.0


def test_inactive_sources_are_ignored() -> None:
    with _make_session() as session:
        service = BudgetService(session, ctx=CTX)
        source = service.create_income_source(
            IncomeSourceIn(
                name="Old gig",
                amount_cents=10000,
                frequency=Frequency.weekly,
                category="freelance",
                is_active=False,
                start_date=date(2023, 1, 1),
            )
        )
        assert service.get_budget_summary(TODAY).total_monthly_income_cents == 0

        service.delete_income_source(source.id)
        assert service.list_income_sources() == []


def test_planned_category_key_resolution_order() -> None:
    known = {"groceries", "rent"}
    mapping = {"alimentación": "groceries"}
    assert planned_category_key("Rent", mapping, known) == "rent"
    assert planned_category_key("Alimentación", mapping, known) == "groceries"
    assert planned_category_key("Cinema", mapping, known) == "Cinema"
    assert planned_category_key(None, mapping, known) == "uncategorized"


def test_financial_kpis() -> None:
    with _make_session() as session:
        budget = BudgetService(session, ctx=CTX)
        budget.create_income_source(
            IncomeSourceIn(
                name="Job",
                amount_cents=200000,
                frequency=Frequency.monthly,
                category="salary",
                start_date=date(2024, 1, 1),
            )
        )
        budget.create_recurring_expense(
            RecurringExpenseIn(
                name="Power",
                amount_cents=50000,
                frequency=Frequency.monthly,
                category="utilities",
                start_date=date(2024, 1, 1),
            )
        )

        financial = FinancialService(session, ctx=CTX)
        financial.create_asset(
            AssetIn(name="Savings", value_cents=300000, type=AssetType.liquid)
        )
        financial.create_asset(
            AssetIn(name="House", value_cents=700000, type=AssetType.illiquid)
        )
        for creditor, remaining, payment, kind in (
            ("Card", 50000, 5000, DebtType.consumption),
            ("Mortgage", 150000, 10000, DebtType.housing),
            ("Paid off", 9000, 900, DebtType.vehicle),
        ):
            financial.create_debt(
                DebtIn(
                    creditor=creditor,
                    total_amount_cents=remaining,
                    remaining_amount_cents=remaining,
                    monthly_payment_cents=payment,
                    type=kind,
                    start_date=date(2024, 1, 1),
                )
            )
        paid = [d for d in financial.list_debts() if d.creditor == "Paid off"][0]
        financial.mark_debt_paid(paid.id)

        kpis = financial.get_financial_kpis(TODAY)

        assert kpis.monthly_income_cents == 200000
        assert kpis.monthly_expenses_cents == 50000
        assert kpis.monthly_debt_payments_cents == 15000
        assert kpis.consumption_debt_payment_cents == 5000
        assert kpis.total_debt_cents == 200000
        assert kpis.total_assets_cents == 1000000
        assert kpis.liquid_assets_percentage == pytest.approx(30.0)
        assert kpis.illiquid_assets_percentage == pytest.approx(70.0)
        assert kpis.solvency_ratio == pytest.approx(300000 / 65000)
        assert [line.type for line in kpis.debts_by_type] == ["housing", "consumption"]
        assert kpis.debts_by_type[0].percentage == pytest.approx(75.0)
        assert kpis.debts_by_type[0].monthly_payment_cents == 10000


def test_financial_kpis_without_data_are_zero() -> None:
    with _make_session() as session:
        kpis = FinancialService(session, ctx=CTX).get_financial_kpis(TODAY)
        assert kpis.total_assets_cents == 0
        assert kpis.liquid_assets_percentage == 0.0
        assert kpis.solvency_ratio == 0.0
        assert kpis.debts_by_type == []
