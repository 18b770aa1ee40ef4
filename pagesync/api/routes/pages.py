"""Page routes - read access to synced pages for renderers."""

import time
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from pagesync.api.deps import get_db, get_sync_service
from pagesync.core.errors import UnknownDataSourceError
from pagesync.schemas.api import PageListResponse, PageOut
from pagesync.services.page_repository import PageRepository
from pagesync.services.sync_service import SyncService

router = APIRouter(prefix="/pages", tags=["pages"])


def _data_source_id(key: str, service: SyncService) -> str:
    """Resolve an alias or id to the configured data source id."""
    policy = service.registry.get(key)
    if policy is None:
        raise UnknownDataSourceError(f"No data source matched '{key}'", data_source_id=key)
    return policy.data_source_id


@router.get("/{data_source}", response_model=PageListResponse)
def list_pages(
    data_source: str,
    tag: Optional[str] = Query(None, description="Only pages carrying this tag"),
    include_unpublished: bool = Query(False, description="Also return pages without a past publish date"),
    limit: int = Query(50, ge=1, le=500, description="Number of records to return (max 500)"),
    offset: int = Query(0, ge=0, description="Number of records to skip"),
    db: Session = Depends(get_db),
    service: SyncService = Depends(get_sync_service),
):
    """
    Pages of a data source (id or alias), newest publish date first.

    By default only published pages are returned: publish_at set and not in
    the future. Includes request metadata (request_id, latency_ms).
    """
    start = time.perf_counter()
    request_id = str(uuid.uuid4())
    data_source_id = _data_source_id(data_source, service)
    published_only = not include_unpublished

    repository = PageRepository(db)
    rows = repository.list_pages(
        data_source_id,
        published_only=published_only,
        tag=tag,
        limit=limit,
        offset=offset,
    )
    total_count = repository.count_pages(data_source_id, published_only=published_only, tag=tag)

    latency_ms = int((time.perf_counter() - start) * 1000)

    return PageListResponse(
        request_id=request_id,
        api_latency_ms=latency_ms,
        total_count=total_count,
        data=[PageOut.model_validate(row) for row in rows],
    )


@router.get("/{data_source}/count")
def count_pages(
    data_source: str,
    tag: Optional[str] = Query(None),
    include_unpublished: bool = Query(False),
    db: Session = Depends(get_db),
    service: SyncService = Depends(get_sync_service),
):
    data_source_id = _data_source_id(data_source, service)
    count = PageRepository(db).count_pages(data_source_id, published_only=not include_unpublished, tag=tag)
    return {"count": count, "data_source_id": data_source_id}


@router.get("/{data_source}/{slug}", response_model=PageOut)
def get_page(
    data_source: str,
    slug: str,
    db: Session = Depends(get_db),
    service: SyncService = Depends(get_sync_service),
):
    """A single page by slug, published or not."""
    data_source_id = _data_source_id(data_source, service)
    page = PageRepository(db).get_page(data_source_id, slug)
    if page is None:
        raise HTTPException(status_code=404, detail=f"Page '{slug}' not found in '{data_source}'")
    return PageOut.model_validate(page)
