"""initial_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-17

Initial database schema for the marketplace settlement engine.
"""

from collections.abc import Sequence

import sqlalchemy as sa
import sqlmodel

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

String = sqlmodel.sql.sqltypes.AutoString


def _money(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.DECIMAL(32, 2), nullable=nullable)


def _rate(name: str) -> sa.Column:
    return sa.Column(name, sa.DECIMAL(10, 4), nullable=False)


def upgrade() -> None:
    """Create initial database schema."""
    # Users table
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("clerk_id", String(length=255), nullable=False),
        sa.Column("email", String(length=255), nullable=False),
        sa.Column("full_name", String(length=255), nullable=True),
        sa.Column("role", String(length=20), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("vat_registered", sa.Boolean(), nullable=False),
        _money("annual_turnover"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_clerk_id"), "users", ["clerk_id"], unique=True)
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=False)
    op.create_index(op.f("ix_users_role"), "users", ["role"], unique=False)

    # Orders table
    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("order_no", String(length=32), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("delivery_agent_id", sa.Integer(), nullable=True),
        _money("delivery_fee"),
        _money("total_amount"),
        sa.Column("vat_category_code", String(length=32), nullable=True),
        sa.Column("payment_status", String(length=20), nullable=False),
        sa.Column("payment_reference", String(length=128), nullable=True),
        sa.Column("payment_transaction_id", String(length=64), nullable=True),
        _money("refunded_amount"),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["customer_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["delivery_agent_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("order_no"),
    )
    op.create_index(op.f("ix_orders_customer_id"), "orders", ["customer_id"], unique=False)
    op.create_index(
        op.f("ix_orders_delivery_agent_id"), "orders", ["delivery_agent_id"], unique=False
    )
    op.create_index(op.f("ix_orders_payment_status"), "orders", ["payment_status"], unique=False)
    op.create_index(
        op.f("ix_orders_payment_reference"), "orders", ["payment_reference"], unique=False
    )

    # Order lines table
    op.create_table(
        "order_lines",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("order_id", sa.Integer(), nullable=True),
        sa.Column("vendor_id", sa.Integer(), nullable=False),
        sa.Column("product_name", String(length=255), nullable=False),
        _money("store_price"),
        _money("listed_price"),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"]),
        sa.ForeignKeyConstraint(["vendor_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_order_lines_order_id"), "order_lines", ["order_id"], unique=False)
    op.create_index(op.f("ix_order_lines_vendor_id"), "order_lines", ["vendor_id"], unique=False)

    # Ledger transactions table
    op.create_table(
        "ledger_transactions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("transaction_id", String(length=64), nullable=False),
        sa.Column("reference", String(length=128), nullable=False),
        sa.Column("idempotency_key", String(length=128), nullable=True),
        sa.Column("type", String(length=32), nullable=False),
        _money("total_amount"),
        _money("fee_amount"),
        sa.Column("currency", String(length=3), nullable=False),
        _rate("vat_rate"),
        _money("vat_amount"),
        sa.Column("vat_responsibility", String(length=16), nullable=False),
        sa.Column("vat_collected", sa.Boolean(), nullable=False),
        sa.Column("vat_remitted", sa.Boolean(), nullable=False),
        sa.Column("vat_remittance_date", sa.DateTime(), nullable=True),
        _rate("platform_rate"),
        _money("platform_amount"),
        _money("vendor_amount"),
        _money("dispatch_amount"),
        sa.Column("vendor_shares", sa.JSON(), nullable=False),
        sa.Column("related_entity_type", String(length=16), nullable=True),
        sa.Column("related_entity_id", sa.Integer(), nullable=True),
        sa.Column("status", String(length=16), nullable=False),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("approved_by", sa.Integer(), nullable=True),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        sa.Column("reversal_reason", String(length=500), nullable=True),
        sa.Column("reversed_by", sa.Integer(), nullable=True),
        sa.Column("reversed_at", sa.DateTime(), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"]),
        sa.ForeignKeyConstraint(["approved_by"], ["users.id"]),
        sa.ForeignKeyConstraint(["reversed_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("idempotency_key"),
    )
    op.create_index(
        op.f("ix_ledger_transactions_transaction_id"),
        "ledger_transactions",
        ["transaction_id"],
        unique=True,
    )
    op.create_index(
        op.f("ix_ledger_transactions_reference"), "ledger_transactions", ["reference"], unique=False
    )
    op.create_index(op.f("ix_ledger_transactions_type"), "ledger_transactions", ["type"], unique=False)
    op.create_index(
        op.f("ix_ledger_transactions_status"), "ledger_transactions", ["status"], unique=False
    )
    op.create_index(
        op.f("ix_ledger_transactions_related_entity_id"),
        "ledger_transactions",
        ["related_entity_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_ledger_transactions_created_at"), "ledger_transactions", ["created_at"], unique=False
    )

    # Ledger entries table
    op.create_table(
        "ledger_entries",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("transaction_pk", sa.Integer(), nullable=True),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("account", String(length=32), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=True),
        _money("debit"),
        _money("credit"),
        sa.Column("description", String(length=500), nullable=False),
        sa.Column("is_total", sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(["transaction_pk"], ["ledger_transactions.id"]),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_ledger_entries_transaction_pk"), "ledger_entries", ["transaction_pk"], unique=False
    )
    op.create_index(op.f("ix_ledger_entries_account"), "ledger_entries", ["account"], unique=False)
    op.create_index(op.f("ix_ledger_entries_user_id"), "ledger_entries", ["user_id"], unique=False)

    # Wallets table
    op.create_table(
        "wallets",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("wallet_type", String(length=16), nullable=False),
        _money("balance"),
        sa.Column("currency", String(length=3), nullable=False),
        sa.Column("status", String(length=16), nullable=False),
        _money("daily_withdrawal_limit"),
        _money("monthly_withdrawal_limit"),
        _money("minimum_balance"),
        _money("daily_withdrawn_amount"),
        sa.Column("daily_withdrawn_date", sa.Date(), nullable=True),
        _money("monthly_withdrawn_amount"),
        sa.Column("monthly_window_start", sa.Date(), nullable=True),
        sa.Column("bank_account_name", String(length=255), nullable=True),
        sa.Column("bank_account_number", String(length=32), nullable=True),
        sa.Column("bank_code", String(length=16), nullable=True),
        sa.Column("bank_name", String(length=255), nullable=True),
        sa.Column("bank_verified", sa.Boolean(), nullable=False),
        sa.Column("bank_verified_at", sa.DateTime(), nullable=True),
        _money("total_earnings"),
        _money("total_withdrawals"),
        _money("total_commissions"),
        _money("total_vat_collected"),
        sa.Column("last_transaction_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_wallets_user_id"), "wallets", ["user_id"], unique=True)
    op.create_index(op.f("ix_wallets_status"), "wallets", ["status"], unique=False)

    # Tax policies table
    op.create_table(
        "tax_policies",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("status", String(length=16), nullable=False),
        _rate("standard_rate"),
        _rate("reduced_rate"),
        _rate("zero_rate"),
        _money("registration_threshold"),
        _money("collection_threshold"),
        sa.Column("platform_conditions", sa.JSON(), nullable=False),
        sa.Column("platform_categories", sa.JSON(), nullable=False),
        _money("platform_threshold", nullable=True),
        sa.Column("vendor_conditions", sa.JSON(), nullable=False),
        sa.Column("vendor_categories", sa.JSON(), nullable=False),
        _money("vendor_threshold", nullable=True),
        sa.Column("remittance_frequency", String(length=16), nullable=False),
        sa.Column("remittance_due_day", sa.Integer(), nullable=False),
        _money("remittance_minimum_amount"),
        sa.Column("effective_date", sa.DateTime(), nullable=False),
        sa.Column("expiry_date", sa.DateTime(), nullable=True),
        sa.Column("notes", String(length=500), nullable=True),
        sa.Column("updated_by", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["updated_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_tax_policies_version"), "tax_policies", ["version"], unique=False)
    op.create_index(op.f("ix_tax_policies_status"), "tax_policies", ["status"], unique=False)
    op.create_index(
        op.f("ix_tax_policies_effective_date"), "tax_policies", ["effective_date"], unique=False
    )
    op.create_index(
        op.f("ix_tax_policies_expiry_date"), "tax_policies", ["expiry_date"], unique=False
    )

    # Tax categories table
    op.create_table(
        "tax_categories",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("policy_id", sa.Integer(), nullable=True),
        sa.Column("code", String(length=32), nullable=False),
        sa.Column("name", String(length=100), nullable=False),
        _rate("rate"),
        sa.Column("description", String(length=255), nullable=True),
        sa.Column("is_exempt", sa.Boolean(), nullable=False),
        sa.Column("exemption_reason", String(length=255), nullable=True),
        sa.ForeignKeyConstraint(["policy_id"], ["tax_policies.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("policy_id", "code", name="uq_tax_category_code"),
    )
    op.create_index(
        op.f("ix_tax_categories_policy_id"), "tax_categories", ["policy_id"], unique=False
    )


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("tax_categories")
    op.drop_table("tax_policies")
    op.drop_table("wallets")
    op.drop_table("ledger_entries")
    op.drop_table("ledger_transactions")
    op.drop_table("order_lines")
    op.drop_table("orders")
    op.drop_table("users")
