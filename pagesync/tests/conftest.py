"""Shared fixtures: in-memory SQLite store and an in-memory Notion stand-in."""

import asyncio
import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")

from typing import Any, Dict, List, Optional  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from pagesync.core.dates import parse_datetime  # noqa: E402
from pagesync.core.errors import SourceError  # noqa: E402
from pagesync.ingestion.base import BaseSource, SourcePage  # noqa: E402
from pagesync.ingestion.document import Document  # noqa: E402
from pagesync.models import Base  # noqa: E402
from pagesync.policy import Policy  # noqa: E402
from pagesync.services.orchestrator import SyncOrchestrator  # noqa: E402
from pagesync.services.page_builder import PageBuilder  # noqa: E402
from pagesync.services.page_repository import PageRepository  # noqa: E402
from pagesync.services.sync_state import SyncStateStore  # noqa: E402

DATA_SOURCE = "db-blog"


def _page_id(n: int) -> str:
    return f"00000000-0000-0000-0000-{n:012d}"


def _make_page(
    n: int,
    title: Optional[str] = "Hello World",
    data_source_id: str = DATA_SOURCE,
    edited: str = "2025-01-01T00:00:00.000Z",
    published: Optional[bool] = None,
    publish_date: Optional[str] = None,
    slug: Optional[str] = None,
    tags: Optional[List[str]] = None,
    authors: Optional[List[str]] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Raw Notion page object, shaped like pages.retrieve / databases.query results."""
    properties: Dict[str, Any] = {}
    if title is not None:
        properties["Name"] = {"id": "title", "type": "title", "title": [{"plain_text": title}]}
    if published is not None:
        properties["Published"] = {"type": "checkbox", "checkbox": published}
    if publish_date is not None:
        properties["Publish Date"] = {"type": "date", "date": {"start": publish_date, "end": None}}
    if slug is not None:
        properties["Slug"] = {"type": "rich_text", "rich_text": [{"plain_text": slug}] if slug else []}
    if tags is not None:
        properties["Tags"] = {"type": "multi_select", "multi_select": [{"name": tag} for tag in tags]}
    if authors is not None:
        properties["Authors"] = {"type": "people", "people": [{"object": "user", "name": a} for a in authors]}
    properties.update(extra or {})

    return {
        "object": "page",
        "id": _page_id(n),
        "created_time": "2024-12-01T00:00:00.000Z",
        "last_edited_time": edited,
        "parent": {"type": "database_id", "database_id": data_source_id},
        "url": f"https://www.notion.so/{_page_id(n).replace('-', '')}",
        "properties": properties,
    }


class InMemorySource(BaseSource):
    """Serves raw pages with cursor pagination; records write-backs."""

    name = "memory"

    def __init__(self, pages: Optional[List[Dict[str, Any]]] = None, page_size: int = 2):
        self.pages: List[Dict[str, Any]] = list(pages or [])
        self.page_size = page_size
        self.content: Dict[str, str] = {}
        self.updates: List[tuple] = []
        self.query_requests = 0
        self.fail_query_at: Optional[int] = None
        self.fail_update = False
        self.closed = False

    def add(self, *pages: Dict[str, Any]) -> None:
        for page in pages:
            self.pages = [p for p in self.pages if p["id"] != page["id"]] + [page]

    async def _query_page(self, data_source_id, edited_after, cursor) -> SourcePage:
        # Yield like a network call would
        await asyncio.sleep(0)
        self.query_requests += 1
        if self.fail_query_at is not None and self.query_requests >= self.fail_query_at:
            raise SourceError("Notion is down", data_source_id=data_source_id)

        matching = [
            p for p in self.pages
            if p["parent"]["database_id"] == data_source_id
            and (edited_after is None or parse_datetime(p["last_edited_time"]) > edited_after)
        ]
        offset = int(cursor or 0)
        chunk = matching[offset : offset + self.page_size]
        has_more = offset + self.page_size < len(matching)
        return SourcePage(
            results=[Document.from_api_response(p) for p in chunk],
            has_more=has_more,
            next_cursor=str(offset + self.page_size) if has_more else None,
        )

    async def get_document(self, document_id: str) -> Document:
        for page in self.pages:
            if page["id"] == document_id:
                return Document.from_api_response(page)
        raise SourceError(f"Page {document_id} not found", document_id=document_id)

    async def update_property(self, document_id: str, name: str, value: str) -> None:
        if self.fail_update:
            raise SourceError("write-back rejected", document_id=document_id)
        self.updates.append((document_id, name, value))
        for page in self.pages:
            if page["id"] == document_id:
                page["properties"][name] = {"type": "rich_text", "rich_text": [{"plain_text": value}]}

    async def fetch_content(self, document_id: str) -> str:
        return self.content.get(document_id, f"Body of {document_id}")

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def repository(db):
    return PageRepository(db)


@pytest.fixture
def source():
    return InMemorySource()


@pytest.fixture
def policy():
    return Policy(data_source_id=DATA_SOURCE, alias="blog")


@pytest.fixture
def builder(source, repository):
    return PageBuilder(source, repository)


@pytest.fixture
def orchestrator(source, builder, repository, db):
    return SyncOrchestrator(source, builder, repository, state=SyncStateStore(db))


@pytest.fixture
def make_page():
    return _make_page


@pytest.fixture
def page_id():
    return _page_id
