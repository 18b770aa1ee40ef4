"""create sync_runs and sync_checkpoints tables

Revision ID: 0002_create_sync_state
Revises: 0001_create_pages
Create Date: 2026-10-12 10:30:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0002_create_sync_state"
down_revision = "0001_create_pages"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "sync_runs",
        sa.Column("run_id", sa.Uuid(), nullable=False),
        sa.Column("data_source_id", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("processed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("skipped", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("failed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error_message", sa.String(), nullable=True),
        sa.Column(
            "meta",
            sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql"),
            nullable=True,
        ),
        sa.Column("started_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.Column("ended_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("run_id"),
    )
    op.create_index("ix_sync_runs_data_source_id", "sync_runs", ["data_source_id"])

    op.create_table(
        "sync_checkpoints",
        sa.Column("data_source_id", sa.String(length=64), nullable=False),
        sa.Column("last_edited_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.PrimaryKeyConstraint("data_source_id"),
    )


def downgrade() -> None:
    op.drop_table("sync_checkpoints")
    op.drop_index("ix_sync_runs_data_source_id", table_name="sync_runs")
    op.drop_table("sync_runs")
