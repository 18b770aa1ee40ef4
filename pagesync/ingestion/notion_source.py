"""Notion source implementation."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import httpx
from notion_client import AsyncClient
from notion_client.errors import APIErrorCode, APIResponseError, HTTPResponseError, RequestTimeoutError

from pagesync.core.config import settings
from pagesync.core.errors import SourceError, ValidationError
from pagesync.core.logging import get_logger
from pagesync.ingestion.base import BaseSource, SourcePage
from pagesync.ingestion.blocks import blocks_to_markdown
from pagesync.ingestion.document import Document

log = get_logger("ingestion.notion")

# Notion caps query and block listing at 100 results per request
PAGE_SIZE = 100

_TRANSPORT_ERRORS = (HTTPResponseError, RequestTimeoutError, httpx.HTTPError)


def _describe(exc: Exception) -> str:
    if isinstance(exc, APIResponseError) and (exc.code == APIErrorCode.Unauthorized or exc.status == 401):
        return (
            "Notion API authentication failed: invalid or expired token. "
            f"Check NOTION_TOKEN or the policy's notion_token. Original error: {exc}"
        )
    return str(exc)


class NotionSource(BaseSource):
    """Reads pages from Notion databases and writes slugs back."""

    name = "notion"

    def __init__(
        self,
        client: AsyncClient,
        renderer: Callable[[List[dict]], str] = blocks_to_markdown,
        page_size: int = PAGE_SIZE,
    ):
        self.client = client
        self.renderer = renderer
        self.page_size = page_size

    @classmethod
    def from_token(cls, token: str) -> "NotionSource":
        return cls(AsyncClient(auth=token, timeout_ms=settings.NOTION_TIMEOUT_SECONDS * 1000))

    async def _query_page(
        self,
        data_source_id: str,
        edited_after: Optional[datetime],
        cursor: Optional[str],
    ) -> SourcePage:
        params: Dict[str, Any] = {"database_id": data_source_id, "page_size": self.page_size}
        if edited_after is not None:
            params["filter"] = {
                "timestamp": "last_edited_time",
                "last_edited_time": {"after": edited_after.isoformat()},
            }
        if cursor:
            params["start_cursor"] = cursor

        try:
            response = await self.client.databases.query(**params)
        except _TRANSPORT_ERRORS as exc:
            raise SourceError(_describe(exc), data_source_id=data_source_id) from exc

        # Only full page objects carry properties; skip partial/database results
        documents = [
            Document.from_api_response(item)
            for item in response.get("results", [])
            if item.get("object", "page") == "page" and "properties" in item
        ]
        return SourcePage(
            results=documents,
            has_more=bool(response.get("has_more")),
            next_cursor=response.get("next_cursor"),
        )

    async def get_document(self, document_id: str) -> Document:
        log.debug(f"Fetching page {document_id}")
        try:
            response = await self.client.pages.retrieve(page_id=document_id)
        except _TRANSPORT_ERRORS as exc:
            raise SourceError(_describe(exc), document_id=document_id) from exc

        if "properties" not in response:
            raise SourceError(f"Page {document_id} is not a database page", document_id=document_id)
        try:
            return Document.from_api_response(response)
        except (KeyError, ValueError) as exc:
            raise ValidationError(f"Malformed page {document_id}: {exc}", document_id=document_id) from exc

    async def update_property(self, document_id: str, name: str, value: str) -> None:
        log.debug(f"Writing '{value}' to property '{name}' of {document_id}")
        try:
            await self.client.pages.update(
                page_id=document_id,
                properties={
                    name: {
                        "rich_text": [{"type": "text", "text": {"content": value}}],
                    }
                },
            )
        except _TRANSPORT_ERRORS as exc:
            raise SourceError(_describe(exc), document_id=document_id) from exc

    async def fetch_content(self, document_id: str) -> str:
        try:
            blocks = await self._fetch_blocks(document_id)
        except _TRANSPORT_ERRORS as exc:
            raise SourceError(_describe(exc), document_id=document_id) from exc
        return self.renderer(blocks)

    async def _fetch_blocks(self, block_id: str) -> List[dict]:
        """Recursively fetch blocks, attaching children under "children"."""
        blocks: List[dict] = []
        cursor: Optional[str] = None

        while True:
            params: Dict[str, Any] = {"block_id": block_id, "page_size": self.page_size}
            if cursor:
                params["start_cursor"] = cursor
            response = await self.client.blocks.children.list(**params)

            for block in response.get("results", []):
                if block.get("has_children") and block.get("type") not in ("child_page", "child_database"):
                    block["children"] = await self._fetch_blocks(block["id"])
                blocks.append(block)

            cursor = response.get("next_cursor")
            if not response.get("has_more") or not cursor:
                break

        return blocks

    async def close(self) -> None:
        await self.client.aclose()
