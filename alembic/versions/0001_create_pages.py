"""create pages table

Revision ID: 0001_create_pages
Revises:
Create Date: 2026-10-12 10:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_create_pages"
down_revision = None
branch_labels = None
depends_on = None

JSONB = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")


def upgrade() -> None:
    op.create_table(
        "pages",
        sa.Column("natural_id", sa.String(length=64), nullable=False, comment="Source document id"),
        sa.Column("data_source_id", sa.String(length=64), nullable=False, comment="Notion database id (tenant key)"),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=False),
        sa.Column("content", sa.Text(), nullable=False, server_default=""),
        sa.Column("publish_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("tags", JSONB, nullable=False, server_default=sa.text("'[]'")),
        sa.Column("authors", JSONB, nullable=False, server_default=sa.text("'[]'")),
        sa.Column("meta", JSONB, nullable=False, server_default=sa.text("'{}'")),
        sa.Column("synced_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.PrimaryKeyConstraint("natural_id"),
        sa.UniqueConstraint("data_source_id", "slug", name="uq_pages_data_source_slug"),
    )
    op.create_index("ix_pages_data_source_id", "pages", ["data_source_id"])
    op.create_index("ix_pages_publish_at", "pages", ["publish_at"])
    op.create_index("ix_pages_data_source_publish_at", "pages", ["data_source_id", "publish_at"])


def downgrade() -> None:
    op.drop_index("ix_pages_data_source_publish_at", table_name="pages")
    op.drop_index("ix_pages_publish_at", table_name="pages")
    op.drop_index("ix_pages_data_source_id", table_name="pages")
    op.drop_table("pages")
