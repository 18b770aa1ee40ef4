from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from pagesync.schemas.sync import ContentRecord, SyncSummary


class PageOut(ContentRecord):
    synced_at: Optional[datetime] = None


class PageListResponse(BaseModel):
    request_id: str
    api_latency_ms: int
    total_count: int
    data: list[PageOut]


class SyncTriggerRequest(BaseModel):
    data_source_id: Optional[str] = Field(None, alias="dataSourceId")
    since: Optional[datetime] = None
    full: bool = False
    wipe: bool = False

    class Config:
        populate_by_name = True


class SyncResponse(BaseModel):
    since: Optional[datetime] = None
    summaries: List[SyncSummary]


class WebhookRequest(BaseModel):
    document_id: str = Field(alias="documentId")
    data_source_id: Optional[str] = Field(None, alias="dataSourceId")

    class Config:
        populate_by_name = True


class WebhookResponse(BaseModel):
    message: str
    record: ContentRecord


class ErrorResponse(BaseModel):
    error: str
    message: str
    details: Optional[Dict[str, Any]] = None


class HealthResponse(BaseModel):
    database: str
    last_sync_status: str | None


class SyncRunOut(BaseModel):
    run_id: UUID
    data_source_id: str
    status: str
    processed: int
    skipped: int
    failed: int
    error_message: str | None = None
    started_at: datetime
    ended_at: datetime | None

    class Config:
        from_attributes = True


class CheckpointOut(BaseModel):
    data_source_id: str
    last_edited_at: datetime
    updated_at: datetime | None = None

    class Config:
        from_attributes = True
