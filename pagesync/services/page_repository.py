"""Page repository - reads and idempotent writes against the pages table."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from pagesync.core.errors import RepositoryError
from pagesync.core.logging import get_logger
from pagesync.models.pages import Page
from pagesync.schemas.sync import ContentRecord

log = get_logger("page_repository")

# Columns rewritten when a page is synced again
UPDATE_COLUMNS = (
    "data_source_id",
    "title",
    "slug",
    "content",
    "publish_at",
    "updated_at",
    "tags",
    "authors",
    "meta",
)


class PageRepository:
    """Database access for synced pages. No business rules live here.

    Slug uniqueness per data source is decided by the page builder; the
    unique constraint is only the last line of defence and surfaces as a
    RepositoryError.
    """

    def __init__(self, db: Session):
        self.db = db

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------
    def get_by_natural_id(self, natural_id: str, data_source_id: str) -> Optional[ContentRecord]:
        stmt = select(Page).where(
            Page.natural_id == natural_id,
            Page.data_source_id == data_source_id,
        )
        row = self._scalar(stmt)
        return ContentRecord.model_validate(row) if row else None

    def get_by_slug(
        self,
        slug: str,
        data_source_id: str,
        exclude_natural_id: Optional[str] = None,
    ) -> Optional[ContentRecord]:
        """Find the page holding `slug`, ignoring the page being rebuilt."""
        stmt = select(Page).where(
            Page.slug == slug,
            Page.data_source_id == data_source_id,
        )
        if exclude_natural_id:
            stmt = stmt.where(Page.natural_id != exclude_natural_id)
        row = self._scalar(stmt)
        return ContentRecord.model_validate(row) if row else None

    def get_page(self, data_source_id: str, slug: str) -> Optional[Page]:
        stmt = select(Page).where(Page.data_source_id == data_source_id, Page.slug == slug)
        return self._scalar(stmt)

    def list_pages(
        self,
        data_source_id: str,
        published_only: bool = False,
        tag: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Page]:
        """Pages of a data source, newest publish date first."""
        stmt = self._filtered(select(Page), data_source_id, published_only)
        stmt = stmt.order_by(Page.publish_at.desc().nullslast(), Page.natural_id)

        if tag:
            return self._tagged(stmt, tag)[offset : offset + limit]

        return self._scalars(stmt.limit(limit).offset(offset))

    def count_pages(self, data_source_id: str, published_only: bool = False, tag: Optional[str] = None) -> int:
        if tag:
            return len(self._tagged(self._filtered(select(Page), data_source_id, published_only), tag))

        stmt = self._filtered(select(func.count()).select_from(Page), data_source_id, published_only)
        try:
            return self.db.execute(stmt).scalar() or 0
        except SQLAlchemyError as exc:
            raise RepositoryError(f"Count failed: {exc}", data_source_id=data_source_id) from exc

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------
    def upsert(self, record: ContentRecord) -> None:
        """Insert or update a page keyed by natural_id (idempotent write)."""
        values = record.model_dump()
        values["synced_at"] = datetime.now(timezone.utc)

        insert = self._insert_for_dialect()
        stmt = insert(Page).values(**values)
        set_ = {column: getattr(stmt.excluded, column) for column in UPDATE_COLUMNS}
        set_["synced_at"] = values["synced_at"]
        stmt = stmt.on_conflict_do_update(index_elements=[Page.natural_id], set_=set_)

        try:
            self.db.execute(stmt)
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise RepositoryError(
                f"Constraint violation writing {record.natural_id} (slug={record.slug}): {exc.orig}",
                document_id=record.natural_id,
                data_source_id=record.data_source_id,
            ) from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise RepositoryError(
                f"Upsert failed for {record.natural_id}: {exc}",
                document_id=record.natural_id,
                data_source_id=record.data_source_id,
            ) from exc

        log.debug(f"Upserted {record.natural_id} as '{record.slug}' in {record.data_source_id}")

    def delete_all(self, data_source_id: str) -> int:
        """Delete every page of a data source; returns the number removed."""
        try:
            result = self.db.execute(delete(Page).where(Page.data_source_id == data_source_id))
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise RepositoryError(f"Wipe failed: {exc}", data_source_id=data_source_id) from exc

        deleted = result.rowcount or 0
        log.info(f"Deleted {deleted} pages for data source {data_source_id}")
        return deleted

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------
    def _insert_for_dialect(self):
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            return postgresql.insert
        if dialect == "sqlite":
            return sqlite.insert
        raise RepositoryError(f"Upsert not supported on dialect '{dialect}'")

    @staticmethod
    def _filtered(stmt, data_source_id: str, published_only: bool):
        stmt = stmt.where(Page.data_source_id == data_source_id)
        if published_only:
            stmt = stmt.where(Page.publish_at.is_not(None), Page.publish_at <= datetime.now(timezone.utc))
        return stmt

    def _tagged(self, stmt, tag: str) -> List[Page]:
        # JSON containment differs per dialect; filter tags in Python
        return [row for row in self._scalars(stmt) if tag in (row.tags or [])]

    def _scalar(self, stmt) -> Optional[Page]:
        try:
            return self.db.execute(stmt).scalars().first()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise RepositoryError(f"Query failed: {exc}") from exc

    def _scalars(self, stmt) -> List[Page]:
        try:
            return list(self.db.execute(stmt).scalars().all())
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise RepositoryError(f"Query failed: {exc}") from exc
