"""initial schema

Revision ID: 3f1c9a7d2b10
Revises:
Create Date: 2026-09-28
"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

revision: str = "3f1c9a7d2b10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "tenants",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("uuid", sa.String(26), nullable=False, unique=True),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("config", sa.Text, nullable=False),
        sa.Column("config_version", sa.Integer, nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("deleted_at", sa.DateTime, nullable=True),
    )

    op.create_table(
        "accounts",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("uuid", sa.String(26), nullable=False, unique=True),
        sa.Column("tenant_id", sa.Integer, sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("unit_no", sa.String(50), nullable=False),
        sa.Column("wing", sa.String(50), nullable=False, server_default=""),
        sa.Column("owner_name", sa.Text, nullable=False, server_default=""),
        sa.Column("contact", sa.Text, nullable=False, server_default=""),
        sa.Column("area", sa.String(32), nullable=False, server_default="0"),
        sa.Column("opening_balance_paise", sa.BigInteger, nullable=False, server_default="0"),
        sa.Column("ledger_seq", sa.Integer, nullable=False, server_default="0"),
        sa.Column("ledger_tail_id", sa.Integer, nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("tenant_id", "wing", "unit_no", name="uq_accounts_tenant_unit"),
    )

    op.create_table(
        "charge_rules",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("uuid", sa.String(26), nullable=False, unique=True),
        sa.Column("tenant_id", sa.Integer, sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("calculation_type", sa.String(20), nullable=False),
        sa.Column("amount", sa.String(32), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("is_deleted", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("sort_order", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("deleted_at", sa.DateTime, nullable=True),
    )
    op.create_index("ix_charge_rules_tenant_name", "charge_rules", ["tenant_id", "name"])

    op.create_table(
        "bills",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("uuid", sa.String(26), nullable=False, unique=True),
        sa.Column("tenant_id", sa.Integer, sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("account_id", sa.Integer, sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("period", sa.String(7), nullable=False),
        sa.Column("previous_balance_paise", sa.BigInteger, nullable=False, server_default="0"),
        sa.Column("interest_paise", sa.BigInteger, nullable=False, server_default="0"),
        sa.Column("subtotal_paise", sa.BigInteger, nullable=False, server_default="0"),
        sa.Column("tax_paise", sa.BigInteger, nullable=False, server_default="0"),
        sa.Column("total_paise", sa.BigInteger, nullable=False, server_default="0"),
        sa.Column("amount_paid_paise", sa.BigInteger, nullable=False, server_default="0"),
        sa.Column("balance_paise", sa.BigInteger, nullable=False, server_default="0"),
        sa.Column("due_date", sa.Date, nullable=False),
        sa.Column("status", sa.String(10), nullable=False, server_default="Unpaid"),
        sa.Column("status_updated_at", sa.DateTime, nullable=True),
        sa.Column("is_locked", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("notes", sa.Text, nullable=False, server_default=""),
        sa.Column("generated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("generated_by", sa.Integer, nullable=True),
        sa.UniqueConstraint("account_id", "period", name="uq_bills_account_period"),
    )
    op.create_index("ix_bills_tenant_period", "bills", ["tenant_id", "period"])
    op.create_index("ix_bills_status_due", "bills", ["status", "due_date"])

    op.create_table(
        "bill_charges",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("bill_id", sa.Integer, sa.ForeignKey("bills.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("amount_paise", sa.BigInteger, nullable=False),
        sa.Column("basis", sa.Text, nullable=False, server_default=""),
        sa.Column("sort_order", sa.Integer, nullable=False, server_default="0"),
    )

    op.create_table(
        "ledger_entries",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("uuid", sa.String(26), nullable=False, unique=True),
        sa.Column("tenant_id", sa.Integer, sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("account_id", sa.Integer, sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("seq", sa.Integer, nullable=False),
        sa.Column("entry_date", sa.Date, nullable=False),
        sa.Column("direction", sa.String(6), nullable=False),
        sa.Column("category", sa.String(20), nullable=False),
        sa.Column("amount_paise", sa.BigInteger, nullable=False),
        sa.Column("balance_after_paise", sa.BigInteger, nullable=False),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("bill_id", sa.Integer, sa.ForeignKey("bills.id"), nullable=True),
        sa.Column("period", sa.String(7), nullable=True),
        sa.Column("payment_mode", sa.String(10), nullable=True),
        sa.Column("payment_details", sa.Text, nullable=False, server_default="{}"),
        sa.Column("is_reversed", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("reversal_of_id", sa.Integer, sa.ForeignKey("ledger_entries.id"), nullable=True),
        sa.Column("reversed_by_id", sa.Integer, sa.ForeignKey("ledger_entries.id"), nullable=True),
        sa.Column("financial_year", sa.String(10), nullable=False, server_default=""),
        sa.Column("created_by", sa.Integer, nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("amount_paise > 0", name="ck_ledger_entries_amount_positive"),
        sa.UniqueConstraint("account_id", "seq", name="uq_ledger_entries_account_seq"),
    )
    op.create_index("ix_ledger_entries_account_date", "ledger_entries", ["account_id", "entry_date"])
    op.create_index("ix_ledger_entries_category_date", "ledger_entries", ["tenant_id", "category", "entry_date"])

    op.create_table(
        "payment_allocations",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("payment_entry_id", sa.Integer, sa.ForeignKey("ledger_entries.id"), nullable=False),
        sa.Column("bill_id", sa.Integer, sa.ForeignKey("bills.id"), nullable=False),
        sa.Column("amount_paise", sa.BigInteger, nullable=False),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_payment_allocations_payment", "payment_allocations", ["payment_entry_id"])


def downgrade() -> None:
    op.drop_table("payment_allocations")
    op.drop_table("ledger_entries")
    op.drop_table("bill_charges")
    op.drop_table("bills")
    op.drop_table("charge_rules")
    op.drop_table("accounts")
    op.drop_table("tenants")
