from datetime import date, datetime, timedelta

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session

from database import Base
from models import (
    Account,
    Asset,
    AssetCategory,
    AssetType,
    CategoryType,
    DebtType,
    FinancialSnapshot,
    FlowType,
    TransactionType,
)
from schemas import AccountIn, AssetIn, CategoryIn, DebtIn, TransactionIn
from services import (
    BalanceSheetSource,
    CategoryService,
    FinancialReportsService,
    FinancialService,
    TransactionService,
    create_financial_snapshot,
    get_balance_sheet,
    get_budget_summary,
    get_cash_flow_statement,
    get_financial_kpis,
    get_income_statement,
)
from periods import custom_period
from temporal import TemporalContext, local_today


CTX = TemporalContext(user_id=1, timezone="America/El_Salvador")
AS_OF = date(2024, 6, 30)


def _make_session() -> Session:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    return Session(engine)


def _category(session: Session, name: str, kind: CategoryType) -> int:
    return CategoryService(session, ctx=CTX).create(CategoryIn(name=name, type=kind)).id


def _txn(session, day, kind, amount, category_id=None, flow_type=None):
    return TransactionService(session, ctx=CTX).create(
        TransactionIn(
            date=day,
            type=kind,
            amount_cents=amount,
            category_id=category_id,
            flow_type=flow_type,
        )
    )


def _asset(session, name, value, kind, created=datetime(2024, 1, 1)):
    record = FinancialService(session, ctx=CTX).create_asset(
        AssetIn(name=name, value_cents=value, type=kind, category=AssetCategory.other)
    )
    _stamp(session, Asset, record.id, created)
    return record


def _stamp(session, model, row_id, created=None, updated=None):
    row = session.get(model, row_id)
    if created is not None:
        row.created_at = created
        row.updated_at = created
    if updated is not None:
        row.updated_at = updated
    session.commit()


def _debt(session, creditor, remaining, end_date=None, start=date(2024, 1, 1), total=None):
    return FinancialService(session, ctx=CTX).create_debt(
        DebtIn(
            creditor=creditor,
            total_amount_cents=total or remaining,
            remaining_amount_cents=remaining,
            monthly_payment_cents=1000,
            type=DebtType.consumption,
            start_date=start,
            end_date=end_date,
        )
    )


def test_income_statement_groups_by_category_and_computes_margin() -> None:
    with _make_session() as session:
        salary = _category(session, "Salary", CategoryType.income)
        food = _category(session, "Food", CategoryType.expense)
        _txn(session, date(2024, 1, 10), TransactionType.income, 50000, salary)
        _txn(session, date(2024, 1, 12), TransactionType.expense, 10000, food)
        _txn(session, date(2024, 1, 20), TransactionType.expense, 5000, food)

        statement = get_income_statement(
            session, 1, date(2024, 1, 1), date(2024, 1, 31), CTX
        )

        assert statement.revenue.total_cents == 50000
        assert statement.expenses.total_cents == 15000
        assert statement.net_income_cents == 35000
        assert statement.net_income_margin == pytest.approx(70.0)
        (line,) = statement.expenses.categories
        assert line.category_name == "Food"
        assert line.percentage == pytest.approx(100.0)
        assert line.amount_cents == 15000
        assert line.transaction_count == 2
        assert [t.date for t in line.transactions] == [date(2024, 1, 12), date(2024, 1, 20)]


def test_income_statement_includes_end_day_and_buckets_uncategorized() -> None:
    with _make_session() as session:
        _txn(session, date(2024, 1, 31), TransactionType.expense, 900)
        _txn(session, date(2024, 2, 1), TransactionType.expense, 400)

        statement = FinancialReportsService(session, ctx=CTX).get_income_statement(
            date(2024, 1, 1), date(2024, 1, 31)
        )

        assert statement.expenses.total_cents == 900
        (line,) = statement.expenses.categories
        assert (line.category_id, line.category_name) == (0, "Uncategorized")
        assert statement.net_income_margin == 0.0


def test_balance_sheet_without_debts() -> None:
    with _make_session() as session:
        _asset(session, "Savings", 100000, AssetType.liquid)
        _asset(session, "Car", 400000, AssetType.illiquid)

        sheet = FinancialReportsService(session, ctx=CTX).get_balance_sheet(AS_OF)

        assert sheet.source == BalanceSheetSource.computed
        assert sheet.assets.total_cents == 500000
        assert sheet.liabilities.total_cents == 0
        assert sheet.equity_cents == 500000
        assert sheet.net_worth_cents == 500000
        assert sheet.ratios.debt_to_assets == 0.0
        assert sheet.ratios.current_ratio == 0.0
        assert sheet.assets.liquid[0].percentage == pytest.approx(20.0)
        assert sheet.assets.illiquid[0].percentage == pytest.approx(80.0)


def test_balance_sheet_excludes_items_that_did_not_exist_yet() -> None:
    with _make_session() as session:
        _asset(session, "Old", 1000, AssetType.liquid)
        # created now, long after the balance-sheet date
        FinancialService(session, ctx=CTX).create_asset(
            AssetIn(name="New", value_cents=5000, type=AssetType.liquid)
        )
        _debt(session, "Later", 3000, start=date(2024, 7, 1))

        sheet = FinancialReportsService(session, ctx=CTX).get_balance_sheet(AS_OF)

        assert [a.name for a in sheet.assets.liquid] == ["Old"]
        assert sheet.liabilities.total_cents == 0


def test_debt_due_within_a_year_is_current() -> None:
    with _make_session() as session:
        boundary = _debt(session, "Boundary", 1000, AS_OF + timedelta(days=365))
        later = _debt(session, "Later", 2000, AS_OF + timedelta(days=366))
        open_ended = _debt(session, "Open", 3000)
        _asset(session, "Savings", 5000, AssetType.liquid)

        sheet = FinancialReportsService(session, ctx=CTX).get_balance_sheet(AS_OF)

        assert [d.id for d in sheet.liabilities.current] == [boundary.id]
        assert {d.id for d in sheet.liabilities.long_term} == {later.id, open_ended.id}
        assert sheet.liabilities.current_total_cents == 1000
        assert sheet.liabilities.long_term_total_cents == 5000
        assert sheet.equity_cents == 5000 - 6000
        assert sheet.ratios.current_ratio == pytest.approx(5.0)
        assert sheet.ratios.debt_to_assets == pytest.approx(1.2)
        assert sheet.liabilities.long_term[0].percentage == pytest.approx(50.0)


def test_liquidity_months_use_trailing_three_months_of_expenses() -> None:
    with _make_session() as session:
        today = local_today(CTX.timezone)
        FinancialService(session, ctx=CTX).create_asset(
            AssetIn(name="Savings", value_cents=100000, type=AssetType.liquid)
        )
        _txn(session, today - timedelta(days=10), TransactionType.expense, 30000)

        sheet = FinancialReportsService(session, ctx=CTX).get_balance_sheet(
            today, use_snapshot=False
        )

        assert sheet.ratios.liquidity_months == pytest.approx(10.0)


def test_snapshot_is_preferred_and_upserted() -> None:
    with _make_session() as session:
        service = FinancialReportsService(session, ctx=CTX)
        _asset(session, "Savings", 100000, AssetType.liquid)
        _debt(session, "Card", 20000, AS_OF + timedelta(days=30))

        first = service.create_financial_snapshot(AS_OF)
        assert first.net_worth_cents == 80000
        assert first.short_term_liabilities_cents == 20000

        _asset(session, "Bonus", 50000, AssetType.liquid)
        service.create_financial_snapshot(AS_OF)
        count = session.scalar(select(func.count()).select_from(FinancialSnapshot))
        assert count == 1

        sheet = service.get_balance_sheet(AS_OF)
        assert sheet.source == BalanceSheetSource.snapshot
        assert sheet.assets.total_cents == 150000
        assert sheet.assets.liquid == []
        assert sheet.liabilities.current_total_cents == 20000
        assert sheet.net_worth_cents == 130000

        computed = service.get_balance_sheet(AS_OF, use_snapshot=False)
        assert computed.source == BalanceSheetSource.computed
        assert computed.equity_cents == sheet.equity_cents


def test_snapshot_rejects_today_and_later() -> None:
    with _make_session() as session:
        service = FinancialReportsService(session, ctx=CTX)
        today = local_today(CTX.timezone)
        for day in (today, today + timedelta(days=1)):
            with pytest.raises(ValueError, match="past dates"):
                service.create_financial_snapshot(day)
        assert session.scalar(select(func.count()).select_from(FinancialSnapshot)) == 0


def test_cash_flow_statement_balances() -> None:
    start, end = date(2024, 3, 1), date(2024, 3, 31)
    with _make_session() as session:
        salary = _category(session, "Salary", CategoryType.income)
        food = _category(session, "Food", CategoryType.expense)
        _txn(session, date(2024, 3, 5), TransactionType.income, 100000, salary)
        _txn(session, date(2024, 3, 10), TransactionType.expense, 40000, food, FlowType.operating)
        _txn(session, date(2024, 3, 11), TransactionType.expense, 5000, None, FlowType.investing)

        _asset(session, "Laptop", 20000, AssetType.illiquid, created=datetime(2024, 3, 10, 12))
        sold = _asset(session, "Bike", 5000, AssetType.illiquid)
        FinancialService(session, ctx=CTX).delete_asset(sold.id)
        _stamp(session, Asset, sold.id, updated=datetime(2024, 3, 20, 12))

        _debt(session, "Bank", 30000, start=date(2024, 3, 5))
        repaid = _debt(session, "Old loan", 4000, start=date(2023, 1, 1), total=10000)
        FinancialService(session, ctx=CTX).mark_debt_paid(repaid.id, date(2024, 3, 25))

        account = FinancialService(session, ctx=CTX).create_account(
            AccountIn(name="Checking", current_balance_cents=50000)
        )
        _stamp(session, Account, account.id, created=datetime(2024, 1, 1))

        flow = FinancialReportsService(session, ctx=CTX).get_cash_flow_statement(start, end)

        assert flow.period == custom_period(start, end)
        assert flow.operations.inflows_cents == 100000
        assert flow.operations.outflows_cents == 40000
        assert flow.operations.net_cents == 60000
        assert flow.operations.details[0].category_name == "Salary"
        assert flow.operations.details[0].percentage == pytest.approx(100000 / 140000 * 100)

        assert flow.investing.purchases_cents == 20000
        assert flow.investing.sales_cents == 5000
        assert flow.investing.net_cents == -15000
        assert [item.description for item in flow.investing.details] == [
            "Purchase: Laptop",
            "Sale: Bike",
        ]

        assert flow.financing.borrowing_cents == 30000
        assert flow.financing.repayment_cents == 10000
        assert flow.financing.net_cents == 20000
        assert [item.description for item in flow.financing.details] == [
            "Loan: Bank",
            "Repayment: Old loan",
        ]

        assert flow.net_cash_flow_cents == 65000
        assert flow.starting_cash_cents == 50000
        assert flow.ending_cash_cents == 115000
        assert flow.ending_cash_cents == flow.starting_cash_cents + (
            flow.operations.net_cents + flow.investing.net_cents + flow.financing.net_cents
        )


def test_income_statement_comparison() -> None:
    with _make_session() as session:
        _txn(session, date(2024, 1, 10), TransactionType.income, 10000)
        _txn(session, date(2024, 2, 10), TransactionType.income, 15000)
        _txn(session, date(2024, 2, 11), TransactionType.expense, 2500)

        comparison = FinancialReportsService(
            session, ctx=CTX
        ).get_income_statement_comparison(
            custom_period(date(2024, 2, 1), date(2024, 2, 29)),
            custom_period(date(2024, 1, 1), date(2024, 1, 31)),
        )

        assert comparison.revenue.change == 5000
        assert comparison.revenue.change_percent == pytest.approx(50.0)
        assert comparison.expenses.change_percent == 0.0
        assert comparison.net_income.current == 12500
        assert comparison.net_income.change_percent == pytest.approx(25.0)


def test_inverted_range_is_rejected() -> None:
    with _make_session() as session:
        with pytest.raises(ValueError):
            FinancialReportsService(session, ctx=CTX).get_income_statement(
                date(2024, 2, 1), date(2024, 1, 1)
            )


def test_module_level_entry_points_share_one_context() -> None:
    with _make_session() as session:
        _asset(session, "Savings", 80000, AssetType.liquid)
        _debt(session, "Card", 30000, AS_OF + timedelta(days=10))

        sheet = get_balance_sheet(session, 1, AS_OF, CTX)
        assert sheet.net_worth_cents == sheet.equity_cents == 50000

        snapshot = create_financial_snapshot(session, 1, AS_OF, CTX)
        assert snapshot.date == AS_OF
        assert get_balance_sheet(session, 1, AS_OF, CTX).source == BalanceSheetSource.snapshot

        flow = get_cash_flow_statement(session, 1, date(2024, 1, 1), date(2024, 1, 31), CTX)
        assert flow.financing.borrowing_cents == 30000

        assert get_budget_summary(session, 1, CTX).savings_rate == 0.0
        assert get_financial_kpis(session, 1, CTX).total_debt_cents == 30000
