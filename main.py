import logging
from datetime import date, timedelta
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from sqlalchemy.orm import Session

from config import get_settings
from database import SessionLocal
from models import FinancialSnapshot, TransactionCategory, User
from periods import Period, custom_period, resolve_period
from scheduler import SchedulerManager
from schemas import (
    AccountIn,
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
    FinancialReportsService,
    FinancialService,
    TransactionService,
    get_current_user_id,
)
from temporal import TemporalContext, local_today


logging.basicConfig(level=get_settings().log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Ledger")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_temporal_context(db: Session = Depends(get_db)) -> TemporalContext:
    user_id = get_current_user_id()
    user = db.get(User, user_id)
    return TemporalContext.resolve(user_id, user.timezone if user else None)


scheduler_manager = SchedulerManager()


@app.on_event("startup")
def startup_event():
    scheduler_manager.start()


@app.on_event("shutdown")
def shutdown_event():
    scheduler_manager.stop()


def http_error(exc: ValueError) -> HTTPException:
    message = str(exc)
    status = 404 if "not found" in message.lower() else 400
    return HTTPException(status_code=status, detail=message)


def period_from_request(request: Request, ctx: TemporalContext) -> Period:
    try:
        return resolve_period(
            request.query_params.get("period"),
            request.query_params.get("start"),
            request.query_params.get("end"),
            today=local_today(ctx.timezone),
        )
    except ValueError as exc:
        raise http_error(exc) from exc


def previous_period(period: Period) -> Period:
    length = period.end - period.start
    end = period.start - timedelta(days=1)
    return custom_period(end - length, end)


def category_payload(category: TransactionCategory) -> dict:
    return {
        "id": category.id,
        "name": category.name,
        "emoji": category.emoji,
        "color": category.color,
        "type": category.type.value,
    }


def snapshot_payload(snapshot: FinancialSnapshot) -> dict:
    return {
        "id": snapshot.id,
        "date": snapshot.date.isoformat(),
        "total_assets_cents": snapshot.total_assets_cents,
        "liquid_assets_cents": snapshot.liquid_assets_cents,
        "illiquid_assets_cents": snapshot.illiquid_assets_cents,
        "total_liabilities_cents": snapshot.total_liabilities_cents,
        "short_term_liabilities_cents": snapshot.short_term_liabilities_cents,
        "long_term_liabilities_cents": snapshot.long_term_liabilities_cents,
        "equity_cents": snapshot.equity_cents,
        "cash_balance_cents": snapshot.cash_balance_cents,
        "net_worth_cents": snapshot.net_worth_cents,
    }


# Financial reports


@app.get("/api/financial-reports/income-statement")
def api_income_statement(
    request: Request,
    db: Session = Depends(get_db),
    ctx: TemporalContext = Depends(get_temporal_context),
):
    period = period_from_request(request, ctx)
    service = FinancialReportsService(db, ctx.user_id, ctx)
    try:
        return service.get_income_statement(period.start, period.end)
    except ValueError as exc:
        raise http_error(exc) from exc


@app.get("/api/financial-reports/balance-sheet")
def api_balance_sheet(
    date: Optional[date] = None,
    use_snapshot: bool = True,
    db: Session = Depends(get_db),
    ctx: TemporalContext = Depends(get_temporal_context),
):
    as_of = date or local_today(ctx.timezone)
    service = FinancialReportsService(db, ctx.user_id, ctx)
    return service.get_balance_sheet(as_of, use_snapshot=use_snapshot)


@app.get("/api/financial-reports/cash-flow")
def api_cash_flow(
    request: Request,
    db: Session = Depends(get_db),
    ctx: TemporalContext = Depends(get_temporal_context),
):
    period = period_from_request(request, ctx)
    service = FinancialReportsService(db, ctx.user_id, ctx)
    try:
        return service.get_cash_flow_statement(period.start, period.end)
    except ValueError as exc:
        raise http_error(exc) from exc


@app.get("/api/financial-reports/comparison")
def api_income_statement_comparison(
    request: Request,
    db: Session = Depends(get_db),
    ctx: TemporalContext = Depends(get_temporal_context),
):
    period = period_from_request(request, ctx)
    service = FinancialReportsService(db, ctx.user_id, ctx)
    try:
        return service.get_income_statement_comparison(period, previous_period(period))
    except ValueError as exc:
        raise http_error(exc) from exc


@app.post("/api/financial-reports/snapshots", status_code=201)
def api_create_snapshot(
    date: date,
    db: Session = Depends(get_db),
    ctx: TemporalContext = Depends(get_temporal_context),
):
    service = FinancialReportsService(db, ctx.user_id, ctx)
    try:
        snapshot = service.create_financial_snapshot(date)
    except ValueError as exc:
        raise http_error(exc) from exc
    return snapshot_payload(snapshot)


@app.get("/api/budget/summary")
def api_budget_summary(
    db: Session = Depends(get_db),
    ctx: TemporalContext = Depends(get_temporal_context),
):
    return BudgetService(db, ctx.user_id, ctx).get_budget_summary()


@app.get("/api/financial/kpis")
def api_financial_kpis(
    db: Session = Depends(get_db),
    ctx: TemporalContext = Depends(get_temporal_context),
):
    return FinancialService(db, ctx.user_id, ctx).get_financial_kpis()


# Categories


@app.get("/api/categories")
def api_list_categories(
    db: Session = Depends(get_db),
    ctx: TemporalContext = Depends(get_temporal_context),
):
    categories = CategoryService(db, ctx.user_id, ctx).list_all()
    return [category_payload(c) for c in categories]


@app.post("/api/categories", status_code=201)
def api_create_category(
    payload: CategoryIn,
    db: Session = Depends(get_db),
    ctx: TemporalContext = Depends(get_temporal_context),
):
    try:
        category = CategoryService(db, ctx.user_id, ctx).create(payload)
    except ValueError as exc:
        raise http_error(exc) from exc
    return category_payload(category)


# Transactions


@app.get("/api/transactions")
def api_list_transactions(
    request: Request,
    db: Session = Depends(get_db),
    ctx: TemporalContext = Depends(get_temporal_context),
):
    period = period_from_request(request, ctx)
    items = TransactionService(db, ctx.user_id, ctx).list_for_period(period)
    return {
        "period": period,
        "items": items,
    }


@app.post("/api/transactions", status_code=201)
def api_create_transaction(
    payload: TransactionIn,
    db: Session = Depends(get_db),
    ctx: TemporalContext = Depends(get_temporal_context),
):
    try:
        return TransactionService(db, ctx.user_id, ctx).create(payload)
    except ValueError as exc:
        raise http_error(exc) from exc


@app.put("/api/transactions/{transaction_id}")
def api_update_transaction(
    transaction_id: int,
    payload: TransactionIn,
    db: Session = Depends(get_db),
    ctx: TemporalContext = Depends(get_temporal_context),
):
    try:
        return TransactionService(db, ctx.user_id, ctx).update(transaction_id, payload)
    except ValueError as exc:
        raise http_error(exc) from exc


@app.delete("/api/transactions/{transaction_id}", status_code=204)
def api_delete_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    ctx: TemporalContext = Depends(get_temporal_context),
):
    try:
        TransactionService(db, ctx.user_id, ctx).delete(transaction_id)
    except ValueError as exc:
        raise http_error(exc) from exc


# Budget: income sources and recurring expenses


@app.get("/api/budget/income-sources")
def api_list_income_sources(
    db: Session = Depends(get_db),
    ctx: TemporalContext = Depends(get_temporal_context),
):
    return BudgetService(db, ctx.user_id, ctx).list_income_sources()


@app.post("/api/budget/income-sources", status_code=201)
def api_create_income_source(
    payload: IncomeSourceIn,
    db: Session = Depends(get_db),
    ctx: TemporalContext = Depends(get_temporal_context),
):
    return BudgetService(db, ctx.user_id, ctx).create_income_source(payload)


@app.put("/api/budget/income-sources/{source_id}")
def api_update_income_source(
    source_id: int,
    payload: IncomeSourceIn,
    db: Session = Depends(get_db),
    ctx: TemporalContext = Depends(get_temporal_context),
):
    try:
        return BudgetService(db, ctx.user_id, ctx).update_income_source(
            source_id, payload
        )
    except ValueError as exc:
        raise http_error(exc) from exc


@app.delete("/api/budget/income-sources/{source_id}", status_code=204)
def api_delete_income_source(
    source_id: int,
    db: Session = Depends(get_db),
    ctx: TemporalContext = Depends(get_temporal_context),
):
    try:
        BudgetService(db, ctx.user_id, ctx).delete_income_source(source_id)
    except ValueError as exc:
        raise http_error(exc) from exc


@app.get("/api/budget/recurring-expenses")
def api_list_recurring_expenses(
    db: Session = Depends(get_db),
    ctx: TemporalContext = Depends(get_temporal_context),
):
    return BudgetService(db, ctx.user_id, ctx).list_recurring_expenses()


@app.post("/api/budget/recurring-expenses", status_code=201)
def api_create_recurring_expense(
    payload: RecurringExpenseIn,
    db: Session = Depends(get_db),
    ctx: TemporalContext = Depends(get_temporal_context),
):
    return BudgetService(db, ctx.user_id, ctx).create_recurring_expense(payload)


@app.put("/api/budget/recurring-expenses/{expense_id}")
def api_update_recurring_expense(
    expense_id: int,
    payload: RecurringExpenseIn,
    db: Session = Depends(get_db),
    ctx: TemporalContext = Depends(get_temporal_context),
):
    try:
        return BudgetService(db, ctx.user_id, ctx).update_recurring_expense(
            expense_id, payload
        )
    except ValueError as exc:
        raise http_error(exc) from exc


@app.delete("/api/budget/recurring-expenses/{expense_id}", status_code=204)
def api_delete_recurring_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    ctx: TemporalContext = Depends(get_temporal_context),
):
    try:
        BudgetService(db, ctx.user_id, ctx).delete_recurring_expense(expense_id)
    except ValueError as exc:
        raise http_error(exc) from exc


# Assets


@app.get("/api/financial/assets")
def api_list_assets(
    db: Session = Depends(get_db),
    ctx: TemporalContext = Depends(get_temporal_context),
):
    return FinancialService(db, ctx.user_id, ctx).list_assets()


@app.post("/api/financial/assets", status_code=201)
def api_create_asset(
    payload: AssetIn,
    db: Session = Depends(get_db),
    ctx: TemporalContext = Depends(get_temporal_context),
):
    return FinancialService(db, ctx.user_id, ctx).create_asset(payload)


@app.put("/api/financial/assets/{asset_id}")
def api_update_asset(
    asset_id: int,
    payload: AssetIn,
    db: Session = Depends(get_db),
    ctx: TemporalContext = Depends(get_temporal_context),
):
    try:
        return FinancialService(db, ctx.user_id, ctx).update_asset(asset_id, payload)
    except ValueError as exc:
        raise http_error(exc) from exc


@app.delete("/api/financial/assets/{asset_id}")
def api_delete_asset(
    asset_id: int,
    db: Session = Depends(get_db),
    ctx: TemporalContext = Depends(get_temporal_context),
):
    try:
        return FinancialService(db, ctx.user_id, ctx).delete_asset(asset_id)
    except ValueError as exc:
        raise http_error(exc) from exc


# Debts


@app.get("/api/financial/debts")
def api_list_debts(
    include_paid: bool = False,
    db: Session = Depends(get_db),
    ctx: TemporalContext = Depends(get_temporal_context),
):
    service = FinancialService(db, ctx.user_id, ctx)
    return service.list_debts(active_only=not include_paid)


@app.post("/api/financial/debts", status_code=201)
def api_create_debt(
    payload: DebtIn,
    db: Session = Depends(get_db),
    ctx: TemporalContext = Depends(get_temporal_context),
):
    return FinancialService(db, ctx.user_id, ctx).create_debt(payload)


@app.put("/api/financial/debts/{debt_id}")
def api_update_debt(
    debt_id: int,
    payload: DebtIn,
    db: Session = Depends(get_db),
    ctx: TemporalContext = Depends(get_temporal_context),
):
    try:
        return FinancialService(db, ctx.user_id, ctx).update_debt(debt_id, payload)
    except ValueError as exc:
        raise http_error(exc) from exc


@app.post("/api/financial/debts/{debt_id}/paid")
def api_mark_debt_paid(
    debt_id: int,
    db: Session = Depends(get_db),
    ctx: TemporalContext = Depends(get_temporal_context),
):
    try:
        return FinancialService(db, ctx.user_id, ctx).mark_debt_paid(debt_id)
    except ValueError as exc:
        raise http_error(exc) from exc


@app.delete("/api/financial/debts/{debt_id}", status_code=204)
def api_delete_debt(
    debt_id: int,
    db: Session = Depends(get_db),
    ctx: TemporalContext = Depends(get_temporal_context),
):
    try:
        FinancialService(db, ctx.user_id, ctx).delete_debt(debt_id)
    except ValueError as exc:
        raise http_error(exc) from exc


# Accounts


@app.get("/api/financial/accounts")
def api_list_accounts(
    db: Session = Depends(get_db),
    ctx: TemporalContext = Depends(get_temporal_context),
):
    return FinancialService(db, ctx.user_id, ctx).list_accounts()


@app.post("/api/financial/accounts", status_code=201)
def api_create_account(
    payload: AccountIn,
    db: Session = Depends(get_db),
    ctx: TemporalContext = Depends(get_temporal_context),
):
    return FinancialService(db, ctx.user_id, ctx).create_account(payload)
