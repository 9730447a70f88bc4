from __future__ import annotations
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = "20261001_0001"
down_revision = None
branch_labels = None
depends_on = None

def _id():
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False,
                     server_default=sa.text("gen_random_uuid()"))

def _created_at():
    return sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False)

def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    op.create_table(
        "withdrawal_requests",
        _id(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("payout_method", sa.String(length=32), nullable=True),
        _created_at(),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("processed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.CheckConstraint("amount > 0", name="ck_withdrawal_requests_amount_positive"),
        sa.CheckConstraint(
            "status IN ('pending','approved','processing','completed','rejected')",
            name="ck_withdrawal_requests_status",
        ),
    )
    op.create_index("ix_withdrawal_requests_user_id", "withdrawal_requests", ["user_id"])

    op.create_table(
        "wallets",
        _id(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False, unique=True),
        sa.Column("balance", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("total_points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("tier", sa.String(length=16), nullable=False, server_default="bronze"),
        _created_at(),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.CheckConstraint("balance >= 0", name="ck_wallets_balance_non_negative"),
    )
    op.create_index("ix_wallets_user_id", "wallets", ["user_id"], unique=True)

    op.create_table(
        "wallet_transactions",
        _id(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=True),
        sa.Column("reference_id", sa.String(length=64), nullable=True),
        sa.Column("source_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("source_type", sa.String(length=32), nullable=True),
        sa.Column("balance_after", sa.Numeric(12, 2), nullable=True),
        _created_at(),
    )
    op.create_index("ix_wallet_transactions_user_id", "wallet_transactions", ["user_id"])
    op.create_index("ix_wallet_transactions_reference_id", "wallet_transactions", ["reference_id"])
    op.create_index("ix_wallet_transactions_source_id", "wallet_transactions", ["source_id"])

    op.create_table(
        "collections",
        _id(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("collector_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("material_type", sa.String(length=64), nullable=True),
        sa.Column("weight_kg", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        _created_at(),
    )
    op.create_index("ix_collections_user_id", "collections", ["user_id"])
    op.create_index("ix_collections_collector_id", "collections", ["collector_id"])

    op.create_table(
        "unified_collections",
        _id(),
        sa.Column("customer_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("collector_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("total_weight_kg", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("total_value", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        _created_at(),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=True),
    )
    op.create_index("ix_unified_collections_customer_id", "unified_collections", ["customer_id"])
    op.create_index("ix_unified_collections_collector_id", "unified_collections", ["collector_id"])

    op.create_table(
        "collection_photos",
        _id(),
        sa.Column("collection_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("photo_url", sa.Text(), nullable=False),
        sa.Column("photo_type", sa.String(length=32), nullable=True),
        _created_at(),
    )
    op.create_index("ix_collection_photos_collection_id", "collection_photos", ["collection_id"])

    op.create_table(
        "collection_materials",
        _id(),
        sa.Column("collection_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("material_name", sa.String(length=64), nullable=False),
        sa.Column("quantity_kg", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("unit_price", sa.Numeric(10, 2), nullable=False, server_default="0"),
        _created_at(),
    )
    op.create_index("ix_collection_materials_collection_id", "collection_materials", ["collection_id"])

    op.create_table(
        "wallet_update_queue",
        _id(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("collection_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("value", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        _created_at(),
    )
    op.create_index("ix_wallet_update_queue_user_id", "wallet_update_queue", ["user_id"])
    op.create_index("ix_wallet_update_queue_collection_id", "wallet_update_queue", ["collection_id"])

    op.create_table(
        "transactions",
        _id(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("source_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("type", sa.String(length=32), nullable=True),
        _created_at(),
    )
    op.create_index("ix_transactions_user_id", "transactions", ["user_id"])
    op.create_index("ix_transactions_source_id", "transactions", ["source_id"])

def downgrade() -> None:
    for table in (
        "transactions", "wallet_update_queue", "collection_materials", "collection_photos",
        "unified_collections", "collections", "wallet_transactions", "wallets", "withdrawal_requests",
    ):
        op.drop_table(table)
