"""initial ledger schema

Revision ID: 202610010900
Revises:
Create Date: 2026-10-01 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202610010900"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


FREQUENCY = sa.Enum("weekly", "biweekly", "monthly", "annual", name="frequency")


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column(
            "timezone",
            sa.String(length=64),
            nullable=False,
            server_default="America/El_Salvador",
        ),
        *_timestamps(),
    )

    op.create_table(
        "transaction_categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("emoji", sa.String(length=16), nullable=False),
        sa.Column("color", sa.String(length=9)),
        sa.Column(
            "type",
            sa.Enum("income", "expense", "both", name="categorytype"),
            nullable=False,
        ),
        *_timestamps(),
        sa.UniqueConstraint(
            "user_id", "type", "name", name="uq_txn_category_user_type_name"
        ),
    )

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("date", sa.DateTime(), nullable=False),
        sa.Column(
            "type",
            sa.Enum("income", "expense", name="transactiontype"),
            nullable=False,
        ),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column(
            "category_id", sa.Integer(), sa.ForeignKey("transaction_categories.id")
        ),
        sa.Column("description", sa.Text()),
        sa.Column(
            "is_recurring", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column(
            "flow_type",
            sa.Enum("operating", "investing", "financing", name="flowtype"),
        ),
        *_timestamps(),
        sa.CheckConstraint("amount_cents > 0", name="ck_transactions_amount_positive"),
    )
    op.create_index("ix_transactions_user_date", "transactions", ["user_id", "date"])
    op.create_index(
        "ix_transactions_user_type_date", "transactions", ["user_id", "type", "date"]
    )

    op.create_table(
        "income_sources",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("frequency", FREQUENCY, nullable=False),
        sa.Column("category", sa.String(length=50), nullable=False),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("description", sa.Text()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("start_date", sa.DateTime(), nullable=False),
        sa.Column("end_date", sa.DateTime()),
        *_timestamps(),
        sa.CheckConstraint(
            "amount_cents > 0", name="ck_income_source_amount_positive"
        ),
    )

    op.create_table(
        "recurring_expenses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("frequency", FREQUENCY, nullable=False),
        sa.Column("category", sa.String(length=50), nullable=False),
        sa.Column("due_day", sa.Integer()),
        sa.Column("description", sa.Text()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "is_essential", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("start_date", sa.DateTime(), nullable=False),
        sa.Column("end_date", sa.DateTime()),
        sa.Column("last_paid", sa.DateTime()),
        *_timestamps(),
        sa.CheckConstraint(
            "amount_cents > 0", name="ck_recurring_expense_amount_positive"
        ),
    )

    op.create_table(
        "assets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("value_cents", sa.Integer(), nullable=False),
        sa.Column(
            "type", sa.Enum("liquid", "illiquid", name="assettype"), nullable=False
        ),
        sa.Column(
            "category",
            sa.Enum(
                "cash", "investment", "property", "vehicle", "other",
                name="assetcategory",
            ),
            nullable=False,
        ),
        sa.Column("description", sa.Text()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("purchase_date", sa.DateTime()),
        *_timestamps(),
        sa.CheckConstraint("value_cents >= 0", name="ck_assets_value_non_negative"),
    )
    op.create_index("ix_assets_user_active", "assets", ["user_id", "is_active"])

    op.create_table(
        "debts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("creditor", sa.String(length=120), nullable=False),
        sa.Column("total_amount_cents", sa.Integer(), nullable=False),
        sa.Column("remaining_amount_cents", sa.Integer(), nullable=False),
        sa.Column(
            "monthly_payment_cents", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("annual_rate", sa.Float(), nullable=False, server_default="0"),
        sa.Column(
            "type",
            sa.Enum(
                "consumption", "housing", "education", "vehicle", "other",
                name="debttype",
            ),
            nullable=False,
        ),
        sa.Column("description", sa.Text()),
        sa.Column(
            "status",
            sa.Enum("active", "paid", name="debtstatus"),
            nullable=False,
            server_default="active",
        ),
        sa.Column("start_date", sa.DateTime(), nullable=False),
        sa.Column("end_date", sa.DateTime()),
        sa.Column("paid_date", sa.DateTime()),
        *_timestamps(),
        sa.CheckConstraint(
            "total_amount_cents >= 0", name="ck_debts_total_non_negative"
        ),
        sa.CheckConstraint(
            "remaining_amount_cents >= 0 AND remaining_amount_cents <= total_amount_cents",
            name="ck_debts_remaining_in_range",
        ),
        sa.CheckConstraint(
            "monthly_payment_cents >= 0", name="ck_debts_payment_non_negative"
        ),
        sa.CheckConstraint("annual_rate >= 0", name="ck_debts_rate_non_negative"),
    )
    op.create_index("ix_debts_user_status", "debts", ["user_id", "status"])

    op.create_table(
        "accounts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column(
            "current_balance_cents", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "financial_snapshots",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("total_assets_cents", sa.Integer(), nullable=False),
        sa.Column("liquid_assets_cents", sa.Integer(), nullable=False),
        sa.Column("illiquid_assets_cents", sa.Integer(), nullable=False),
        sa.Column("total_liabilities_cents", sa.Integer(), nullable=False),
        sa.Column("short_term_liabilities_cents", sa.Integer(), nullable=False),
        sa.Column("long_term_liabilities_cents", sa.Integer(), nullable=False),
        sa.Column("equity_cents", sa.Integer(), nullable=False),
        sa.Column("cash_balance_cents", sa.Integer(), nullable=False),
        sa.Column("net_worth_cents", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "date", name="uq_snapshot_user_date"),
    )


def downgrade():
    op.drop_table("financial_snapshots")
    op.drop_table("accounts")
    op.drop_index("ix_debts_user_status", table_name="debts")
    op.drop_table("debts")
    op.drop_index("ix_assets_user_active", table_name="assets")
    op.drop_table("assets")
    op.drop_table("recurring_expenses")
    op.drop_table("income_sources")
    op.drop_index("ix_transactions_user_type_date", table_name="transactions")
    op.drop_index("ix_transactions_user_date", table_name="transactions")
    op.drop_table("transactions")
    op.drop_table("transaction_categories")
    op.drop_table("users")
