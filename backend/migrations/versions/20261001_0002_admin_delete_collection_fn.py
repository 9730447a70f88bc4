"""Atomic cascade delete for a collection aggregate

Revision ID: 20261001_0002
Revises: 20261001_0001
Create Date: 2026-10-01 00:00:00.000000

"""
from alembic import op

# revision identifiers, used by Alembic.
revision = "20261001_0002"
down_revision = "20261001_0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create admin_delete_collection(_id uuid), the fast path of collection deletion."""
    op.execute("""
        CREATE OR REPLACE FUNCTION admin_delete_collection(_id uuid)
        RETURNS void
        LANGUAGE plpgsql
        SECURITY DEFINER
        SET search_path = public
        AS $$
        BEGIN
            DELETE FROM collection_photos WHERE collection_id = _id;
            DELETE FROM collection_materials WHERE collection_id = _id;
            DELETE FROM wallet_update_queue WHERE collection_id = _id;
            DELETE FROM wallet_transactions WHERE source_id = _id;
            DELETE FROM transactions WHERE source_id = _id;
            DELETE FROM unified_collections WHERE id = _id;
            DELETE FROM collections WHERE id = _id;
        END;
        $$
    """)


def downgrade() -> None:
    """Drop the cascade function; deletion falls back to per-table deletes."""
    op.execute("DROP FUNCTION IF EXISTS admin_delete_collection(uuid)")
