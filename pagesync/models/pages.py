"""Canonical table for synced content - one row per source document."""

from datetime import datetime

from sqlalchemy import DateTime, Index, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from pagesync.models.base import Base, JSONType


class Page(Base):
    """A Notion page normalized for publishing.

    natural_id is the source document id and the only re-entry key across
    sync runs. Slugs are public URLs, so (data_source_id, slug) is unique.
    """

    __tablename__ = "pages"

    natural_id: Mapped[str] = mapped_column(String(64), primary_key=True, comment="Source document id")

    data_source_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True, comment="Notion database id (tenant key)")

    title: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")

    publish_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)

    # Last edit time reported by the source
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    tags: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    authors: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    meta: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)

    synced_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

    __table_args__ = (
        UniqueConstraint("data_source_id", "slug", name="uq_pages_data_source_slug"),
        Index("ix_pages_data_source_publish_at", "data_source_id", "publish_at"),
    )
