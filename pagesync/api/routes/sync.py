"""Sync routes - scheduled poll and manual trigger."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, Response

from pagesync.api.deps import get_sync_service, require_sync_token
from pagesync.core.logging import get_logger
from pagesync.schemas.api import SyncResponse, SyncTriggerRequest
from pagesync.services.sync_service import SyncService

router = APIRouter(prefix="/sync", tags=["sync"], dependencies=[Depends(require_sync_token)])
log = get_logger("sync_routes")


async def _run(request: SyncTriggerRequest, response: Response, service: SyncService) -> SyncResponse:
    log.info(
        f"Sync triggered | data_source={request.data_source_id or 'all'} "
        f"since={request.since} full={request.full} wipe={request.wipe}"
    )
    summaries = await service.run(
        data_source=request.data_source_id,
        since=request.since,
        full=request.full,
        wipe=request.wipe,
    )
    if any(summary.status == "error" for summary in summaries):
        response.status_code = 500
    return SyncResponse(since=request.since, summaries=summaries)


@router.post("", response_model=SyncResponse)
async def trigger_sync(
    response: Response,
    request: Optional[SyncTriggerRequest] = Body(None),
    service: SyncService = Depends(get_sync_service),
):
    """
    Sync every configured data source, or the one named by dataSourceId.

    - since: only documents edited after this time (defaults to the checkpoint)
    - full: ignore since and the checkpoint
    - wipe: delete the data source's pages first

    Returns 500 when any data source ended with status=error.
    """
    return await _run(request or SyncTriggerRequest(), response, service)


@router.get("", response_model=SyncResponse)
async def poll_sync(
    response: Response,
    data_source_id: Optional[str] = Query(None, alias="dataSourceId"),
    since: Optional[datetime] = Query(None),
    full: bool = Query(False),
    wipe: bool = Query(False),
    service: SyncService = Depends(get_sync_service),
):
    """Same as POST, for cron services that can only issue GET requests."""
    request = SyncTriggerRequest(data_source_id=data_source_id, since=since, full=full, wipe=wipe)
    return await _run(request, response, service)
