"""Webhook route - sync a single page as soon as it changes."""

from fastapi import APIRouter, Depends

from pagesync.api.deps import get_sync_service, require_webhook_token
from pagesync.core.logging import get_logger
from pagesync.schemas.api import ErrorResponse, WebhookRequest, WebhookResponse
from pagesync.services.sync_service import SyncService

router = APIRouter(prefix="/sync", tags=["sync"])
log = get_logger("webhook_routes")


@router.post(
    "/webhook",
    response_model=WebhookResponse,
    dependencies=[Depends(require_webhook_token)],
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
)
async def page_webhook(payload: WebhookRequest, service: SyncService = Depends(get_sync_service)):
    """
    Sync one page through the same build and upsert path as a batch sync.

    Token via `Authorization: Bearer <WEBHOOK_SECRET>` or `?token=`.
    - 404: the page's data source is not configured
    - 422: the page can't be turned into a record (e.g. no title)
    - 502: Notion request failed
    """
    log.info(f"Webhook received for {payload.document_id}")
    record = await service.process_webhook(payload.document_id, payload.data_source_id)
    return WebhookResponse(message=f"Synced '{record.slug}'", record=record)
