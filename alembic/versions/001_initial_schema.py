"""Initial schema: options store, records and record metadata

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Check if tables already exist and skip if so
    conn = op.get_bind()
    inspector = sa.inspect(conn)
    existing_tables = inspector.get_table_names()

    if "options" in existing_tables:
        # Tables already exist, skip migration
        return

    # Create options table (durable key-value store and ephemeral tokens)
    op.create_table(
        "options",
        sa.Column("name", sa.Text, primary_key=True),
        sa.Column("value", sa.JSON().with_variant(JSONB, "postgresql")),
        sa.Column("expires_at", sa.Integer),
        sa.Column("updated_at", sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index("idx_options_expires_at", "options", ["expires_at"])

    # Create records table
    op.create_table(
        "records",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("record_type", sa.Text, nullable=False),
        sa.Column("status", sa.Text, nullable=False, server_default="publish"),
        sa.Column("title", sa.Text, nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index("idx_records_type_status", "records", ["record_type", "status"])

    # Create record_meta table
    op.create_table(
        "record_meta",
        sa.Column("meta_pk", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("record_id", sa.Integer, sa.ForeignKey("records.id", ondelete="CASCADE"), nullable=False),
        sa.Column("meta_key", sa.Text, nullable=False),
        sa.Column("meta_value", sa.Text),
        sa.UniqueConstraint("record_id", "meta_key", name="uq_record_meta_key"),
    )


def downgrade() -> None:
    op.drop_table("record_meta")
    op.drop_index("idx_records_type_status", table_name="records")
    op.drop_table("records")
    op.drop_index("idx_options_expires_at", table_name="options")
    op.drop_table("options")
