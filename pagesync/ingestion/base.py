"""Abstract source interface for ingestion."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from pagesync.core.errors import SourceError
from pagesync.core.logging import get_logger
from pagesync.ingestion.document import (
    AUTO_DETECTED_KINDS,
    Document,
    MissingProperty,
    Property,
    PropertyKind,
)

log = get_logger("ingestion.base")


@dataclass
class SourcePage:
    """One page of a cursor-paginated query."""

    results: List[Document] = field(default_factory=list)
    has_more: bool = False
    next_cursor: Optional[str] = None


class BaseSource(ABC):
    """Abstract base class for content sources.

    Subclasses implement the transport (`_query_page`, `get_document`,
    `update_property`, `fetch_content`); pagination and property extraction
    live here so every source behaves the same.
    """

    name: str

    @abstractmethod
    async def _query_page(
        self,
        data_source_id: str,
        edited_after: Optional[datetime],
        cursor: Optional[str],
    ) -> SourcePage:
        """Fetch a single page of query results."""

    @abstractmethod
    async def get_document(self, document_id: str) -> Document:
        """Fetch one document by id."""

    @abstractmethod
    async def update_property(self, document_id: str, name: str, value: str) -> None:
        """Write a text value back to a document property."""

    @abstractmethod
    async def fetch_content(self, document_id: str) -> str:
        """Return the document body as source markup."""

    async def close(self) -> None:
        """Release transport resources."""

    async def query_data_source(
        self,
        data_source_id: str,
        edited_after: Optional[datetime] = None,
    ) -> List[Document]:
        """Return every document of a data source, following cursors to the end.

        Callers see either the complete result set or a SourceError; partial
        results of a failed loop are dropped.
        """
        documents: List[Document] = []
        cursor: Optional[str] = None
        requests = 0

        while True:
            try:
                page = await self._query_page(data_source_id, edited_after, cursor)
            except SourceError:
                raise
            except Exception as exc:  # noqa: BLE001
                raise SourceError(
                    f"Query of data source {data_source_id} failed after {requests} page(s): {exc}",
                    data_source_id=data_source_id,
                ) from exc

            requests += 1
            documents.extend(page.results)
            log.debug(f"Fetched {len(page.results)} documents (total={len(documents)}, has_more={page.has_more})")

            if not page.has_more or not page.next_cursor:
                break
            cursor = page.next_cursor

        log.info(f"Data source {data_source_id}: {len(documents)} documents in {requests} request(s)")
        return documents

    # -------------------------------------------------------------------------
    # Property extraction
    # -------------------------------------------------------------------------
    @staticmethod
    def extract_property(doc: Document, name: Optional[str], kind: PropertyKind) -> Property:
        """Typed property access.

        Title and unique-id are detected by kind; everything else is read
        from the property called `name`. Anything missing or of the wrong
        kind comes back as a MissingProperty.
        """
        if kind in AUTO_DETECTED_KINDS:
            for prop in doc.properties.values():
                if prop.kind == kind:
                    return prop
            return MissingProperty(expected=kind)

        prop = doc.properties.get(name) if name else None
        if prop is None or prop.kind != kind:
            return MissingProperty(expected=kind)
        return prop

    @staticmethod
    def property_values(doc: Document, name: Optional[str]) -> List[str]:
        """String values of a list-like property (multi_select, select, people, rich_text)."""
        if not name:
            return []
        prop = doc.properties.get(name)
        if prop is None:
            return []
        values = prop.as_strings()
        if not values and prop.kind in (PropertyKind.UNSUPPORTED, PropertyKind.CHECKBOX, PropertyKind.DATE):
            log.warning(f"Property '{name}' on {doc.id} has kind {prop.kind.value}; no values extracted")
        return values

    def title(self, doc: Document) -> str:
        return self.extract_property(doc, None, PropertyKind.TITLE).value.strip()

    def unique_id(self, doc: Document) -> Optional[str]:
        return self.extract_property(doc, None, PropertyKind.UNIQUE_ID).value
