"""Records produced by the sync engine"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

SyncStatus = Literal["ok", "partial", "error", "no-changes"]


class ContentRecord(BaseModel):
    """A document normalized for storage; one row of the pages table."""

    natural_id: str
    data_source_id: str
    title: str
    slug: str
    content: str = ""
    publish_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    tags: List[str] = Field(default_factory=list)
    authors: List[str] = Field(default_factory=list)
    meta: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        from_attributes = True


class SyncSummary(BaseModel):
    """Outcome of one sync invocation for one data source."""

    data_source_id: str
    alias: Optional[str] = None
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    status: SyncStatus = "ok"
    details: Optional[str] = None
    since: Optional[datetime] = None
    duration_ms: int = 0
