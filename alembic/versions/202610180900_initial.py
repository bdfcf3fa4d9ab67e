"""initial farm ledger schema

Revision ID: 202610180900
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202610180900"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade():
    op.create_table(
        "farm_profiles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("user_id", name="uq_farm_profile_user"),
    )

    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column(
            "type", sa.Enum("income", "expense", name="transactiontype"), nullable=False
        ),
        sa.Column("color", sa.String(length=9)),
        *_timestamps(),
        sa.UniqueConstraint(
            "user_id", "type", "name", name="uq_category_user_type_name"
        ),
    )

    op.create_table(
        "accounts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column(
            "type", sa.Enum("standard", "credit", name="accounttype"), nullable=False
        ),
        sa.Column("initial_balance_cents", sa.Integer(), nullable=False),
        sa.Column("payment_day", sa.Integer()),
        *_timestamps(),
        sa.CheckConstraint(
            "payment_day IS NULL OR (payment_day BETWEEN 1 AND 31)",
            name="ck_account_payment_day_range",
        ),
    )

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column(
            "type", sa.Enum("income", "expense", name="transactiontype"), nullable=False
        ),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column(
            "category_id",
            sa.Integer(),
            sa.ForeignKey("categories.id", ondelete="SET NULL"),
        ),
        sa.Column(
            "account_id",
            sa.Integer(),
            sa.ForeignKey("accounts.id", ondelete="SET NULL"),
        ),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        *_timestamps(),
        sa.CheckConstraint("amount_cents >= 0", name="ck_transactions_amount_positive"),
    )
    op.create_index("ix_transactions_user_date", "transactions", ["user_id", "date"])
    op.create_index(
        "ix_transactions_user_account", "transactions", ["user_id", "account_id"]
    )

    op.create_table(
        "liabilities",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("category", sa.String(length=60)),
        sa.Column("description", sa.Text()),
        sa.Column("current_balance_cents", sa.Integer(), nullable=False),
        sa.Column("due_date", sa.Date()),
        sa.Column("installment_amount_cents", sa.Integer()),
        *_timestamps(),
        sa.CheckConstraint(
            "current_balance_cents >= 0", name="ck_liability_balance_positive"
        ),
    )

    op.create_table(
        "assets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("category", sa.String(length=60)),
        sa.Column("description", sa.Text()),
        sa.Column("purchase_date", sa.Date()),
        sa.Column("value_cents", sa.Integer(), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "animal_species",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("breed", sa.String(length=100)),
        sa.Column("tag", sa.String(length=50)),
        sa.Column("head_count", sa.Integer(), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "animal_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column(
            "species_id",
            sa.Integer(),
            sa.ForeignKey("animal_species.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("type", sa.String(length=40), nullable=False),
        sa.Column("note", sa.Text()),
        sa.Column("quantity", sa.Integer(), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "inventory_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("sku", sa.String(length=60)),
        sa.Column("description", sa.Text()),
        sa.Column("unit", sa.String(length=20)),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_cost_cents", sa.Integer(), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "inventory_movements",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column(
            "item_id",
            sa.Integer(),
            sa.ForeignKey("inventory_items.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("note", sa.Text()),
        *_timestamps(),
    )

    op.create_table(
        "cloud_snapshots",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("key", sa.String(length=320), nullable=False, unique=True),
        sa.Column("payload", sa.Text(), nullable=False),
        *_timestamps(),
    )


def downgrade():
    op.drop_table("cloud_snapshots")
    op.drop_table("inventory_movements")
    op.drop_table("inventory_items")
    op.drop_table("animal_logs")
    op.drop_table("animal_species")
    op.drop_table("assets")
    op.drop_table("liabilities")
    op.drop_index("ix_transactions_user_account", table_name="transactions")
    op.drop_index("ix_transactions_user_date", table_name="transactions")
    op.drop_table("transactions")
    op.drop_table("accounts")
    op.drop_table("categories")
    op.drop_table("farm_profiles")
