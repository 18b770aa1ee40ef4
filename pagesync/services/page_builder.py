"""Page builder - turns one Notion document into a ContentRecord.

Steps, in order:
1. Publishing gate: publish_at is the policy's date only when the page is
   public and the date is set. Unpublished pages are still stored.
2. Metadata: title (required), tags, authors, custom meta.
3. Slug: stable across re-syncs, unique per data source, optionally written
   back to the source.
4. Content: raw markup from the source.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pagesync.core.dates import parse_datetime
from pagesync.core.errors import RepositoryError, SourceError, ValidationError
from pagesync.core.logging import get_logger
from pagesync.core.slugs import slugify
from pagesync.ingestion.base import BaseSource
from pagesync.ingestion.document import Document, PropertyKind
from pagesync.policy import Policy
from pagesync.schemas.sync import ContentRecord
from pagesync.services.page_repository import PageRepository

log = get_logger("page_builder")

# Numbered candidates tried (base-2 .. base-N) before falling back to the document id
MAX_SLUG_ATTEMPTS = 100


class PageBuilder:
    """Applies a policy to documents. Holds no per-run state."""

    def __init__(self, source: BaseSource, repository: PageRepository):
        self.source = source
        self.repository = repository

    async def build(self, doc: Document, policy: Policy) -> ContentRecord:
        """Build the record for `doc`.

        Raises ValidationError when the document can't be turned into a page
        and RepositoryError when the store can't be consulted.
        """
        try:
            return await self._build(doc, policy)
        except (ValidationError, RepositoryError):
            raise
        except Exception as exc:  # noqa: BLE001
            raise ValidationError(
                f"Cannot build page {doc.id}: {exc}",
                document_id=doc.id,
                data_source_id=policy.data_source_id,
            ) from exc

    async def _build(self, doc: Document, policy: Policy) -> ContentRecord:
        publish_at = self.publish_at(doc, policy)

        title = self.source.title(doc)
        if not title:
            raise ValidationError(
                f"Page {doc.id} has no title",
                document_id=doc.id,
                data_source_id=policy.data_source_id,
            )
        tags = self.source.property_values(doc, policy.tags_property)
        authors = self.source.property_values(doc, policy.authors_property)
        meta = self._metadata(doc, policy)

        slug = await self.resolve_slug(doc, policy, title)

        content = await self.source.fetch_content(doc.id)

        record = ContentRecord(
            natural_id=doc.id,
            data_source_id=policy.data_source_id,
            title=title,
            slug=slug,
            content=content,
            publish_at=publish_at,
            updated_at=doc.last_edited_at,
            tags=tags,
            authors=authors,
            meta=meta,
        )
        log.debug(f"Built {doc.id} -> '{slug}' (published={publish_at is not None})")
        return record

    # -------------------------------------------------------------------------
    # Publishing gate
    # -------------------------------------------------------------------------
    @staticmethod
    def publish_at(doc: Document, policy: Policy) -> Optional[datetime]:
        # Both rules always run so rule errors surface regardless of outcome
        public = bool(policy.is_public(doc))
        raw_date = policy.publish_date(doc)

        date = parse_datetime(raw_date)
        if raw_date is not None and raw_date != "" and date is None:
            raise ValidationError(
                f"Publish date {raw_date!r} of page {doc.id} is not a date",
                document_id=doc.id,
                data_source_id=policy.data_source_id,
            )
        return date if public and date is not None else None

    # -------------------------------------------------------------------------
    # Metadata
    # -------------------------------------------------------------------------
    @staticmethod
    def _metadata(doc: Document, policy: Policy) -> Dict[str, Any]:
        if policy.metadata_extractor is None:
            return {}
        meta = policy.metadata_extractor(doc)
        if meta is None:
            return {}
        if not isinstance(meta, dict):
            raise ValidationError(
                f"metadata_extractor returned {type(meta).__name__} for page {doc.id}, expected dict",
                document_id=doc.id,
                data_source_id=policy.data_source_id,
            )
        return meta

    # -------------------------------------------------------------------------
    # Slugs
    # -------------------------------------------------------------------------
    async def resolve_slug(self, doc: Document, policy: Policy, title: str) -> str:
        """Pick the slug for `doc`.

        An established slug only changes when the policy's override asks for
        a different one; title edits never move a published URL.
        """
        data_source_id = policy.data_source_id
        existing = self.repository.get_by_natural_id(doc.id, data_source_id)
        override = self._override(doc, policy)

        if existing is not None:
            if override and override != existing.slug:
                slug = self.ensure_unique_slug(override, doc.id, data_source_id)
                if slug != existing.slug:
                    log.info(f"Slug of {doc.id} changed '{existing.slug}' -> '{slug}'")
            else:
                slug = existing.slug
        else:
            base = override or slugify(title) or doc.short_id
            slug = self.ensure_unique_slug(base, doc.id, data_source_id)
            log.info(f"Slug '{slug}' assigned to new page {doc.id}")

        await self._write_back(doc, policy, slug)
        return slug

    def ensure_unique_slug(self, base: str, natural_id: str, data_source_id: str) -> str:
        """Return `base`, or the first free `base-N`, or `base-<id tail>`."""
        if self.repository.get_by_slug(base, data_source_id, exclude_natural_id=natural_id) is None:
            return base

        for n in range(2, MAX_SLUG_ATTEMPTS + 1):
            candidate = f"{base}-{n}"
            if self.repository.get_by_slug(candidate, data_source_id, exclude_natural_id=natural_id) is None:
                log.warning(f"Slug conflict on '{base}' resolved as '{candidate}'")
                return candidate

        fallback = f"{base}-{natural_id.replace('-', '')[-8:]}"
        log.warning(f"Slug '{base}' exhausted {MAX_SLUG_ATTEMPTS} candidates; using '{fallback}'")
        return fallback

    @staticmethod
    def _override(doc: Document, policy: Policy) -> Optional[str]:
        raw = policy.slug_override(doc)
        if not raw:
            return None
        slug = slugify(str(raw))
        if slug != raw:
            log.debug(f"Slug override {raw!r} of {doc.id} normalized to '{slug}'")
        return slug or None

    async def _write_back(self, doc: Document, policy: Policy, slug: str) -> None:
        """Mirror the slug into the source property, only when it differs.

        Writing an unchanged value would bump the page's edit time and feed
        webhook/incremental syncs back into this loop.
        """
        prop = policy.slug_sync_property
        if not prop:
            return

        existing = doc.properties.get(prop)
        if existing is not None and existing.kind != PropertyKind.RICH_TEXT:
            # A rich-text payload would be rejected, and the differing value would retry every sync
            log.warning(
                f"Slug write-back skipped for {doc.id}: '{prop}' is {existing.kind.value}, expected rich_text"
            )
            return

        current = self.source.extract_property(doc, prop, PropertyKind.RICH_TEXT).value.strip()
        if current == slug:
            return

        try:
            await self.source.update_property(doc.id, prop, slug)
        except SourceError as exc:
            # The stored slug is authoritative; the next sync retries the write
            log.warning(f"Slug write-back to '{prop}' failed for {doc.id}: {exc}")
            return
        log.info(f"Wrote slug '{slug}' back to '{prop}' of {doc.id}")
