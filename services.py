from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Optional

from sqlalchemy.orm import Session

from aggregation import CategoryAggregator, CategoryBreakdown, percent_of, ratio
from models import (
    AssetType,
    DebtType,
    ExpenseCategory,
    FinancialSnapshot,
    IncomeCategory,
    TransactionCategory,
    TransactionType,
)
from periods import Period, custom_period
from recurrence import monthly_equivalent_cents
from repositories import (
    AccountRecord,
    AssetRecord,
    DebtRecord,
    IncomeSourceRecord,
    LedgerRepository,
    RecurringExpenseRecord,
    TransactionRecord,
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
    add_months,
    current_context,
    local_today,
    month_bounds,
)


logger = logging.getLogger(__name__)

# A debt due within this horizon of the balance-sheet date is a current liability.
CURRENT_LIABILITY_HORIZON = timedelta(days=365)
TRAILING_EXPENSE_MONTHS = 3


def get_current_user_id() -> int:
    return 1


class _UserScopedService:
    def __init__(
        self,
        session: Session,
        user_id: Optional[int] = None,
        ctx: Optional[TemporalContext] = None,
    ) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()
        self.ctx = ctx or current_context()
        self.repo = LedgerRepository(session, self.user_id, self.ctx)

    @property
    def tz(self) -> str:
        return self.ctx.timezone

    def today(self) -> date:
        return local_today(self.tz)


class CategoryService(_UserScopedService):
    def list_all(self) -> list[TransactionCategory]:
        return self.repo.list_categories()

    def create(self, data: CategoryIn) -> TransactionCategory:
        existing = {(c.type, c.name.lower()) for c in self.repo.list_categories()}
        if (data.type, data.name.strip().lower()) in existing:
            raise ValueError("Category already exists")
        category = self.repo.add_category(data)
        self.session.commit()
        return category


class TransactionService(_UserScopedService):
    def get(self, transaction_id: int) -> TransactionRecord:
        return self.repo.get_transaction(transaction_id)

    def create(self, data: TransactionIn) -> TransactionRecord:
        record = self.repo.add_transaction(data)
        self.session.commit()
        return record

    def update(self, transaction_id: int, data: TransactionIn) -> TransactionRecord:
        record = self.repo.update_transaction(transaction_id, data)
        self.session.commit()
        return record

    def delete(self, transaction_id: int) -> None:
        self.repo.delete_transaction(transaction_id)
        self.session.commit()

    def list_for_period(self, period: Period) -> list[TransactionRecord]:
        return self.repo.transactions_between(period.start, period.end)


# Budget


EXPENSE_CATEGORY_LABELS: dict[str, str] = {
    ExpenseCategory.utilities.value: "Utilities",
    ExpenseCategory.internet.value: "Internet/Phone",
    ExpenseCategory.subscriptions.value: "Subscriptions",
    ExpenseCategory.transportation.value: "Transportation",
    ExpenseCategory.groceries.value: "Groceries",
    ExpenseCategory.health.value: "Health/Insurance",
    ExpenseCategory.rent.value: "Rent/Mortgage",
    ExpenseCategory.education.value: "Education",
    ExpenseCategory.entertainment.value: "Entertainment",
    ExpenseCategory.other.value: "Other",
}

INCOME_CATEGORY_LABELS: dict[str, str] = {
    IncomeCategory.salary.value: "Salary",
    IncomeCategory.freelance.value: "Freelance",
    IncomeCategory.business.value: "Business",
    IncomeCategory.investment.value: "Investments",
    IncomeCategory.rental.value: "Rental",
    IncomeCategory.other.value: "Other",
}

# Realized transaction category names -> planned budget category keys.
EXPENSE_NAME_TO_CATEGORY: dict[str, str] = {
    "alimentación": ExpenseCategory.groceries.value,
    "alimentacion": ExpenseCategory.groceries.value,
    "food": ExpenseCategory.groceries.value,
    "supermercado": ExpenseCategory.groceries.value,
    "transporte": ExpenseCategory.transportation.value,
    "transport": ExpenseCategory.transportation.value,
    "vivienda": ExpenseCategory.rent.value,
    "housing": ExpenseCategory.rent.value,
    "mortgage": ExpenseCategory.rent.value,
    "servicios": ExpenseCategory.utilities.value,
    "salud": ExpenseCategory.health.value,
    "insurance": ExpenseCategory.health.value,
    "educación": ExpenseCategory.education.value,
    "educacion": ExpenseCategory.education.value,
    "entretenimiento": ExpenseCategory.entertainment.value,
    "suscripciones": ExpenseCategory.subscriptions.value,
    "telefonía": ExpenseCategory.internet.value,
    "phone": ExpenseCategory.internet.value,
    "otro gasto": ExpenseCategory.other.value,
}

INCOME_NAME_TO_CATEGORY: dict[str, str] = {
    "salario": IncomeCategory.salary.value,
    "sueldo": IncomeCategory.salary.value,
    "negocio": IncomeCategory.business.value,
    "inversiones": IncomeCategory.investment.value,
    "investments": IncomeCategory.investment.value,
    "alquiler": IncomeCategory.rental.value,
    "rent": IncomeCategory.rental.value,
    "otro ingreso": IncomeCategory.other.value,
}


@dataclass
class BudgetCategoryLine:
    category: str
    category_name: str
    amount_cents: int
    actual_amount_cents: int = 0
    percentage: float = 0.0
    is_essential: bool = False


@dataclass
class BudgetSummary:
    total_monthly_income_cents: int
    total_monthly_expenses_cents: int
    actual_monthly_expenses_cents: int
    available_balance_cents: int
    savings_rate: float
    expenses_by_category: list[BudgetCategoryLine]
    income_by_category: list[BudgetCategoryLine]


def planned_category_key(
    category_name: Optional[str], mapping: dict[str, str], known: set[str]
) -> str:
    """Resolve a transaction's category name to a planned budget key.

    Falls back to the name itself, which becomes an ad-hoc bucket.
    """
    name = (category_name or "").strip()
    lowered = name.lower()
    if lowered in mapping:
        return mapping[lowered]
    if lowered in known:
        return lowered
    return name or "uncategorized"


class BudgetService(_UserScopedService):
    # Income sources

    def list_income_sources(self) -> list[IncomeSourceRecord]:
        return self.repo.list_income_sources()

    def create_income_source(self, data: IncomeSourceIn) -> IncomeSourceRecord:
        record = self.repo.add_income_source(data)
        self.session.commit()
        return record

    def update_income_source(
        self, source_id: int, data: IncomeSourceIn
    ) -> IncomeSourceRecord:
        record = self.repo.update_income_source(source_id, data)
        self.session.commit()
        return record

    def delete_income_source(self, source_id: int) -> None:
        self.repo.delete_income_source(source_id)
        self.session.commit()

    # Recurring expenses

    def list_recurring_expenses(self) -> list[RecurringExpenseRecord]:
        return self.repo.list_recurring_expenses()

    def create_recurring_expense(
        self, data: RecurringExpenseIn
    ) -> RecurringExpenseRecord:
        record = self.repo.add_recurring_expense(data)
        self.session.commit()
        return record

    def update_recurring_expense(
        self, expense_id: int, data: RecurringExpenseIn
    ) -> RecurringExpenseRecord:
        record = self.repo.update_recurring_expense(expense_id, data)
        self.session.commit()
        return record

    def delete_recurring_expense(self, expense_id: int) -> None:
        self.repo.delete_recurring_expense(expense_id)
        self.session.commit()

    # Summary

    def get_budget_summary(self, today: Optional[date] = None) -> BudgetSummary:
        today = today or self.today()
        sources = self.repo.list_income_sources(active_only=True)
        expenses = self.repo.list_recurring_expenses(active_only=True)
        realized = self.repo.transactions_between(*month_bounds(today))

        planned_income = CategoryAggregator(keep_items=False)
        for source in sources:
            planned_income.add(
                source.category,
                INCOME_CATEGORY_LABELS.get(source.category, source.category),
                None,
                monthly_equivalent_cents(source.amount_cents, source.frequency),
            )

        planned_expenses = CategoryAggregator(keep_items=False)
        essential: set[str] = set()
        for expense in expenses:
            planned_expenses.add(
                expense.category,
                EXPENSE_CATEGORY_LABELS.get(expense.category, expense.category),
                None,
                monthly_equivalent_cents(expense.amount_cents, expense.frequency),
            )
            if expense.is_essential:
                essential.add(expense.category)

        total_income = planned_income.total_cents
        total_expenses = planned_expenses.total_cents

        income_lines = self._planned_lines(planned_income, total_income, set())
        expense_lines = self._planned_lines(planned_expenses, total_income, essential)

        actual_expenses = self._merge_actuals(
            expense_lines,
            [t for t in realized if t.type == TransactionType.expense],
            EXPENSE_NAME_TO_CATEGORY,
            EXPENSE_CATEGORY_LABELS,
        )
        self._merge_actuals(
            income_lines,
            [t for t in realized if t.type == TransactionType.income],
            INCOME_NAME_TO_CATEGORY,
            INCOME_CATEGORY_LABELS,
        )

        available = total_income - total_expenses
        return BudgetSummary(
            total_monthly_income_cents=total_income,
            total_monthly_expenses_cents=total_expenses,
            actual_monthly_expenses_cents=actual_expenses,
            available_balance_cents=available,
            savings_rate=percent_of(available, total_income),
            expenses_by_category=self._sorted(expense_lines),
            income_by_category=self._sorted(income_lines),
        )

    @staticmethod
    def _planned_lines(
        aggregator: CategoryAggregator, base_cents: int, essential: set[str]
    ) -> dict[str, BudgetCategoryLine]:
        lines: dict[str, BudgetCategoryLine] = {}
        for group in aggregator.breakdown(base_cents):
            lines[group.category_id] = BudgetCategoryLine(
                category=group.category_id,
                category_name=group.category_name,
                amount_cents=group.amount_cents,
                percentage=group.percentage,
                is_essential=group.category_id in essential,
            )
        return lines

    @staticmethod
    def _merge_actuals(
        lines: dict[str, BudgetCategoryLine],
        transactions: list[TransactionRecord],
        mapping: dict[str, str],
        labels: dict[str, str],
    ) -> int:
        known = set(labels) | set(lines)
        total = 0
        for txn in transactions:
            key = planned_category_key(txn.category_name, mapping, known)
            line = lines.get(key)
            if line is None:
                line = BudgetCategoryLine(
                    category=key,
                    category_name=labels.get(key, key),
                    amount_cents=0,
                )
                lines[key] = line
            line.actual_amount_cents += txn.amount_cents
            total += txn.amount_cents
        return total

    @staticmethod
    def _sorted(lines: dict[str, BudgetCategoryLine]) -> list[BudgetCategoryLine]:
        return sorted(
            lines.values(),
            key=lambda line: (line.amount_cents, line.actual_amount_cents),
            reverse=True,
        )


# Financial statements


@dataclass
class StatementSection:
    categories: list[CategoryBreakdown[TransactionRecord]]
    total_cents: int


@dataclass
class IncomeStatement:
    period: Period
    revenue: StatementSection
    expenses: StatementSection
    net_income_cents: int
    net_income_margin: float


class BalanceSheetSource(str, Enum):
    snapshot = "snapshot"
    computed = "computed"


@dataclass
class AssetLine:
    id: int
    name: str
    category: str
    amount_cents: int
    percentage: float = 0.0


@dataclass
class DebtLine:
    id: int
    creditor: str
    type: str
    amount_cents: int
    monthly_payment_cents: int
    end_date: Optional[date]
    percentage: float = 0.0


@dataclass
class AssetsSection:
    liquid: list[AssetLine]
    illiquid: list[AssetLine]
    liquid_total_cents: int
    illiquid_total_cents: int
    total_cents: int


@dataclass
class LiabilitiesSection:
    current: list[DebtLine]
    long_term: list[DebtLine]
    current_total_cents: int
    long_term_total_cents: int
    total_cents: int


@dataclass
class BalanceRatios:
    debt_to_assets: float
    current_ratio: float
    liquidity_months: float


@dataclass
class BalanceSheet:
    """Point-in-time position.

    ``source`` tells whether the figures came from a stored snapshot (no
    per-item detail) or were computed from live assets and debts.
    """

    date: date
    source: BalanceSheetSource
    assets: AssetsSection
    liabilities: LiabilitiesSection
    equity_cents: int
    net_worth_cents: int
    ratios: BalanceRatios


@dataclass
class CashFlowItem:
    description: str
    amount_cents: int
    category: Optional[str] = None


@dataclass
class OperatingActivities:
    inflows_cents: int
    outflows_cents: int
    net_cents: int
    details: list[CategoryBreakdown[TransactionRecord]]


@dataclass
class InvestingActivities:
    purchases_cents: int
    sales_cents: int
    net_cents: int
    details: list[CashFlowItem]


@dataclass
class FinancingActivities:
    borrowing_cents: int
    repayment_cents: int
    net_cents: int
    details: list[CashFlowItem]


@dataclass
class CashFlowStatement:
    period: Period
    operations: OperatingActivities
    investing: InvestingActivities
    financing: FinancingActivities
    net_cash_flow_cents: int
    starting_cash_cents: int
    ending_cash_cents: int


@dataclass
class MetricComparison:
    current: int
    previous: int
    change: int
    change_percent: float


@dataclass
class PeriodComparison:
    current_period: Period
    previous_period: Period
    revenue: MetricComparison
    expenses: MetricComparison
    net_income: MetricComparison


def compare_metric(current: int, previous: int) -> MetricComparison:
    change = current - previous
    return MetricComparison(
        current=current,
        previous=previous,
        change=change,
        change_percent=percent_of(change, abs(previous)),
    )


def categorize_transactions(
    transactions: list[TransactionRecord],
) -> CategoryAggregator[TransactionRecord]:
    aggregator: CategoryAggregator[TransactionRecord] = CategoryAggregator()
    for txn in transactions:
        aggregator.add(
            txn.category_id,
            txn.category_name,
            txn.category_emoji,
            txn.amount_cents,
            txn,
        )
    return aggregator


def is_current_liability(debt: DebtRecord, as_of: date) -> bool:
    return debt.end_date is not None and debt.end_date <= as_of + CURRENT_LIABILITY_HORIZON


class FinancialReportsService(_UserScopedService):
    def get_income_statement(self, start: date, end: date) -> IncomeStatement:
        period = custom_period(start, end)
        transactions = self.repo.transactions_between(start, end)

        revenue = categorize_transactions(
            [t for t in transactions if t.type == TransactionType.income]
        )
        expenses = categorize_transactions(
            [t for t in transactions if t.type == TransactionType.expense]
        )
        net_income = revenue.total_cents - expenses.total_cents

        return IncomeStatement(
            period=period,
            revenue=StatementSection(revenue.breakdown(), revenue.total_cents),
            expenses=StatementSection(expenses.breakdown(), expenses.total_cents),
            net_income_cents=net_income,
            net_income_margin=percent_of(net_income, revenue.total_cents),
        )

    def get_income_statement_comparison(
        self, current: Period, previous: Period
    ) -> PeriodComparison:
        now = self.get_income_statement(current.start, current.end)
        before = self.get_income_statement(previous.start, previous.end)
        return PeriodComparison(
            current_period=current,
            previous_period=previous,
            revenue=compare_metric(now.revenue.total_cents, before.revenue.total_cents),
            expenses=compare_metric(
                now.expenses.total_cents, before.expenses.total_cents
            ),
            net_income=compare_metric(now.net_income_cents, before.net_income_cents),
        )

    # Balance sheet

    def get_balance_sheet(self, as_of: date, use_snapshot: bool = True) -> BalanceSheet:
        if use_snapshot:
            snapshot = self.repo.get_snapshot(as_of)
            if snapshot is not None:
                logger.debug(
                    f"balance_sheet: user={self.user_id} date={as_of} source=snapshot"
                )
                return self._balance_sheet_from_snapshot(snapshot)
        logger.debug(f"balance_sheet: user={self.user_id} date={as_of} source=computed")
        return self._compute_balance_sheet(as_of)

    def _compute_balance_sheet(self, as_of: date) -> BalanceSheet:
        assets = self.repo.assets_held_on(as_of)
        debts = self.repo.active_debts_started_by(as_of)

        liquid = [self._asset_line(a) for a in assets if a.type == AssetType.liquid]
        illiquid = [self._asset_line(a) for a in assets if a.type != AssetType.liquid]
        liquid_total = sum(line.amount_cents for line in liquid)
        illiquid_total = sum(line.amount_cents for line in illiquid)
        total_assets = liquid_total + illiquid_total
        for line in liquid + illiquid:
            line.percentage = percent_of(line.amount_cents, total_assets)

        current = [self._debt_line(d) for d in debts if is_current_liability(d, as_of)]
        long_term = [
            self._debt_line(d) for d in debts if not is_current_liability(d, as_of)
        ]
        current_total = sum(line.amount_cents for line in current)
        long_term_total = sum(line.amount_cents for line in long_term)
        total_liabilities = current_total + long_term_total
        for line in current + long_term:
            line.percentage = percent_of(line.amount_cents, total_liabilities)

        equity = total_assets - total_liabilities
        return BalanceSheet(
            date=as_of,
            source=BalanceSheetSource.computed,
            assets=AssetsSection(
                liquid=self._by_amount(liquid),
                illiquid=self._by_amount(illiquid),
                liquid_total_cents=liquid_total,
                illiquid_total_cents=illiquid_total,
                total_cents=total_assets,
            ),
            liabilities=LiabilitiesSection(
                current=self._by_amount(current),
                long_term=self._by_amount(long_term),
                current_total_cents=current_total,
                long_term_total_cents=long_term_total,
                total_cents=total_liabilities,
            ),
            equity_cents=equity,
            net_worth_cents=equity,
            ratios=self._ratios(liquid_total, total_assets, current_total, total_liabilities),
        )

    def _balance_sheet_from_snapshot(self, snapshot: FinancialSnapshot) -> BalanceSheet:
        return BalanceSheet(
            date=snapshot.date,
            source=BalanceSheetSource.snapshot,
            assets=AssetsSection(
                liquid=[],
                illiquid=[],
                liquid_total_cents=snapshot.liquid_assets_cents,
                illiquid_total_cents=snapshot.illiquid_assets_cents,
                total_cents=snapshot.total_assets_cents,
            ),
            liabilities=LiabilitiesSection(
                current=[],
                long_term=[],
                current_total_cents=snapshot.short_term_liabilities_cents,
                long_term_total_cents=snapshot.long_term_liabilities_cents,
                total_cents=snapshot.total_liabilities_cents,
            ),
            equity_cents=snapshot.equity_cents,
            net_worth_cents=snapshot.net_worth_cents,
            ratios=self._ratios(
                snapshot.liquid_assets_cents,
                snapshot.total_assets_cents,
                snapshot.short_term_liabilities_cents,
                snapshot.total_liabilities_cents,
            ),
        )

    def _ratios(
        self,
        liquid_cents: int,
        total_assets_cents: int,
        current_liabilities_cents: int,
        total_liabilities_cents: int,
    ) -> BalanceRatios:
        monthly_expenses = self.average_monthly_expenses()
        return BalanceRatios(
            debt_to_assets=ratio(total_liabilities_cents, total_assets_cents),
            current_ratio=ratio(liquid_cents, current_liabilities_cents),
            liquidity_months=ratio(liquid_cents, monthly_expenses),
        )

    def average_monthly_expenses(self) -> float:
        # Trailing window is anchored on today, not on the balance-sheet date.
        since = add_months(self.today(), -TRAILING_EXPENSE_MONTHS)
        return self.repo.expense_total_since(since) / TRAILING_EXPENSE_MONTHS

    @staticmethod
    def _asset_line(asset: AssetRecord) -> AssetLine:
        return AssetLine(
            id=asset.id,
            name=asset.name,
            category=asset.category.value,
            amount_cents=asset.value_cents,
        )

    @staticmethod
    def _debt_line(debt: DebtRecord) -> DebtLine:
        return DebtLine(
            id=debt.id,
            creditor=debt.creditor,
            type=debt.type.value,
            amount_cents=debt.remaining_amount_cents,
            monthly_payment_cents=debt.monthly_payment_cents,
            end_date=debt.end_date,
        )

    @staticmethod
    def _by_amount(lines: list) -> list:
        return sorted(lines, key=lambda line: line.amount_cents, reverse=True)

    def create_financial_snapshot(self, as_of: date) -> FinancialSnapshot:
        # Today is still changing; a snapshot would freeze it.
        if as_of >= self.today():
            raise ValueError("Snapshots can only be taken for past dates")
        sheet = self._compute_balance_sheet(as_of)
        snapshot = self.repo.save_snapshot(
            as_of,
            {
                "total_assets_cents": sheet.assets.total_cents,
                "liquid_assets_cents": sheet.assets.liquid_total_cents,
                "illiquid_assets_cents": sheet.assets.illiquid_total_cents,
                "total_liabilities_cents": sheet.liabilities.total_cents,
                "short_term_liabilities_cents": sheet.liabilities.current_total_cents,
                "long_term_liabilities_cents": sheet.liabilities.long_term_total_cents,
                "equity_cents": sheet.equity_cents,
                "cash_balance_cents": self.repo.cash_balance_on(as_of),
                "net_worth_cents": sheet.net_worth_cents,
            },
        )
        self.session.commit()
        logger.info(
            f"snapshot_created: user={self.user_id} date={as_of} "
            f"net_worth_cents={snapshot.net_worth_cents}"
        )
        return snapshot

    # Cash flow

    def get_cash_flow_statement(self, start: date, end: date) -> CashFlowStatement:
        period = custom_period(start, end)
        operations = self._operating_activities(start, end)
        investing = self._investing_activities(start, end)
        financing = self._financing_activities(start, end)

        starting_cash = self.repo.cash_balance_on(start)
        net_cash_flow = operations.net_cents + investing.net_cents + financing.net_cents
        return CashFlowStatement(
            period=period,
            operations=operations,
            investing=investing,
            financing=financing,
            net_cash_flow_cents=net_cash_flow,
            starting_cash_cents=starting_cash,
            ending_cash_cents=starting_cash + net_cash_flow,
        )

    def _operating_activities(self, start: date, end: date) -> OperatingActivities:
        transactions = self.repo.transactions_between(start, end, operating_only=True)
        inflows = sum(
            t.amount_cents for t in transactions if t.type == TransactionType.income
        )
        outflows = sum(
            t.amount_cents for t in transactions if t.type == TransactionType.expense
        )
        details = categorize_transactions(transactions).breakdown(inflows + outflows)
        return OperatingActivities(
            inflows_cents=inflows,
            outflows_cents=outflows,
            net_cents=inflows - outflows,
            details=details,
        )

    def _investing_activities(self, start: date, end: date) -> InvestingActivities:
        purchased = self.repo.assets_created_between(start, end)
        # No sale price is recorded; a deactivated asset is treated as sold at its value.
        sold = self.repo.assets_deactivated_between(start, end)
        purchases = sum(a.value_cents for a in purchased)
        sales = sum(a.value_cents for a in sold)
        details = [
            CashFlowItem(f"Purchase: {a.name}", -a.value_cents, a.category.value)
            for a in purchased
        ] + [
            CashFlowItem(f"Sale: {a.name}", a.value_cents, a.category.value)
            for a in sold
        ]
        return InvestingActivities(
            purchases_cents=purchases,
            sales_cents=sales,
            net_cents=sales - purchases,
            details=details,
        )

    def _financing_activities(self, start: date, end: date) -> FinancingActivities:
        borrowed = self.repo.debts_started_between(start, end)
        repaid = self.repo.debts_paid_between(start, end)
        borrowing = sum(d.total_amount_cents for d in borrowed)
        repayment = sum(d.total_amount_cents for d in repaid)
        details = [
            CashFlowItem(f"Loan: {d.creditor}", d.total_amount_cents, d.type.value)
            for d in borrowed
        ] + [
            CashFlowItem(f"Repayment: {d.creditor}", -d.total_amount_cents, d.type.value)
            for d in repaid
        ]
        return FinancingActivities(
            borrowing_cents=borrowing,
            repayment_cents=repayment,
            net_cents=borrowing - repayment,
            details=details,
        )


# Assets, debts and KPIs


DEBT_TYPE_LABELS: dict[str, str] = {
    DebtType.consumption.value: "Consumer",
    DebtType.housing.value: "Housing",
    DebtType.education.value: "Education",
    DebtType.vehicle.value: "Vehicle",
    DebtType.other.value: "Other",
}


@dataclass
class DebtTypeLine:
    type: str
    label: str
    amount_cents: int
    percentage: float
    monthly_payment_cents: int


@dataclass
class FinancialKPIs:
    monthly_income_cents: int
    monthly_expenses_cents: int
    monthly_debt_payments_cents: int
    consumption_debt_payment_cents: int
    total_debt_cents: int
    liquid_assets_cents: int
    illiquid_assets_cents: int
    total_assets_cents: int
    liquid_assets_percentage: float
    illiquid_assets_percentage: float
    solvency_ratio: float
    debts_by_type: list[DebtTypeLine] = field(default_factory=list)


class FinancialService(_UserScopedService):
    # Assets

    def list_assets(self) -> list[AssetRecord]:
        return self.repo.list_assets(active_only=True)

    def create_asset(self, data: AssetIn) -> AssetRecord:
        record = self.repo.add_asset(data)
        self.session.commit()
        return record

    def update_asset(self, asset_id: int, data: AssetIn) -> AssetRecord:
        record = self.repo.update_asset(asset_id, data)
        self.session.commit()
        return record

    def delete_asset(self, asset_id: int) -> AssetRecord:
        """Soft delete so historical balance sheets stay reconstructable."""
        record = self.repo.deactivate_asset(asset_id)
        self.session.commit()
        return record

    # Debts

    def list_debts(self, active_only: bool = True) -> list[DebtRecord]:
        return self.repo.list_debts(active_only=active_only)

    def create_debt(self, data: DebtIn) -> DebtRecord:
        record = self.repo.add_debt(data)
        self.session.commit()
        return record

    def update_debt(self, debt_id: int, data: DebtIn) -> DebtRecord:
        record = self.repo.update_debt(debt_id, data)
        self.session.commit()
        return record

    def mark_debt_paid(self, debt_id: int, paid_on: Optional[date] = None) -> DebtRecord:
        record = self.repo.mark_debt_paid(debt_id, paid_on or self.today())
        self.session.commit()
        return record

    def delete_debt(self, debt_id: int) -> None:
        self.repo.delete_debt(debt_id)
        self.session.commit()

    # Accounts

    def list_accounts(self) -> list[AccountRecord]:
        return self.repo.list_accounts()

    def create_account(self, data: AccountIn) -> AccountRecord:
        record = self.repo.add_account(data)
        self.session.commit()
        return record

    # KPIs

    def get_financial_kpis(self, today: Optional[date] = None) -> FinancialKPIs:
        budget = BudgetService(self.session, self.user_id, self.ctx).get_budget_summary(
            today
        )
        assets = self.repo.list_assets(active_only=True)
        debts = self.repo.list_debts(active_only=True)

        liquid = sum(a.value_cents for a in assets if a.type == AssetType.liquid)
        illiquid = sum(a.value_cents for a in assets if a.type == AssetType.illiquid)
        total_assets = liquid + illiquid

        by_type = CategoryAggregator(keep_items=False)
        payments_by_type: dict[str, int] = {}
        for debt in debts:
            key = debt.type.value
            by_type.add(
                key,
                DEBT_TYPE_LABELS.get(key, key),
                None,
                debt.remaining_amount_cents,
            )
            payments_by_type[key] = (
                payments_by_type.get(key, 0) + debt.monthly_payment_cents
            )
        total_debt = by_type.total_cents
        monthly_debts = sum(payments_by_type.values())

        debts_by_type = [
            DebtTypeLine(
                type=group.category_id,
                label=group.category_name,
                amount_cents=group.amount_cents,
                percentage=group.percentage,
                monthly_payment_cents=payments_by_type[group.category_id],
            )
            for group in by_type.breakdown(total_debt)
        ]

        obligations = budget.total_monthly_expenses_cents + monthly_debts
        return FinancialKPIs(
            monthly_income_cents=budget.total_monthly_income_cents,
            monthly_expenses_cents=budget.total_monthly_expenses_cents,
            monthly_debt_payments_cents=monthly_debts,
            consumption_debt_payment_cents=payments_by_type.get(
                DebtType.consumption.value, 0
            ),
            total_debt_cents=total_debt,
            liquid_assets_cents=liquid,
            illiquid_assets_cents=illiquid,
            total_assets_cents=total_assets,
            liquid_assets_percentage=percent_of(liquid, total_assets),
            illiquid_assets_percentage=percent_of(illiquid, total_assets),
            solvency_ratio=ratio(liquid, obligations),
            debts_by_type=debts_by_type,
        )


def get_income_statement(
    session: Session,
    user_id: int,
    start: date,
    end: date,
    ctx: Optional[TemporalContext] = None,
) -> IncomeStatement:
    return FinancialReportsService(session, user_id, ctx).get_income_statement(
        start, end
    )


def get_balance_sheet(
    session: Session,
    user_id: int,
    as_of: date,
    ctx: Optional[TemporalContext] = None,
) -> BalanceSheet:
    return FinancialReportsService(session, user_id, ctx).get_balance_sheet(as_of)


def get_cash_flow_statement(
    session: Session,
    user_id: int,
    start: date,
    end: date,
    ctx: Optional[TemporalContext] = None,
) -> CashFlowStatement:
    return FinancialReportsService(session, user_id, ctx).get_cash_flow_statement(
        start, end
    )


def get_budget_summary(
    session: Session, user_id: int, ctx: Optional[TemporalContext] = None
) -> BudgetSummary:
    return BudgetService(session, user_id, ctx).get_budget_summary()


def get_financial_kpis(
    session: Session, user_id: int, ctx: Optional[TemporalContext] = None
) -> FinancialKPIs:
    return FinancialService(session, user_id, ctx).get_financial_kpis()


def create_financial_snapshot(
    session: Session,
    user_id: int,
    as_of: date,
    ctx: Optional[TemporalContext] = None,
) -> FinancialSnapshot:
    return FinancialReportsService(session, user_id, ctx).create_financial_snapshot(
        as_of
    )
