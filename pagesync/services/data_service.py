"""Data Service - read-only queries over sync runs and checkpoints."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from pagesync.core.logging import get_logger
from pagesync.models.checkpoints import SyncCheckpoint
from pagesync.models.pages import Page
from pagesync.models.runs import SyncRun
from pagesync.policy import Policy

log = get_logger("data_service")


class DataService:
    """Backs the stats and health endpoints - reads from DB only, no writes."""

    def __init__(self, db: Session):
        self.db = db

    # -------------------------------------------------------------------------
    # Sync Runs & Checkpoints
    # -------------------------------------------------------------------------
    def get_sync_runs(
        self,
        data_source_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 10,
    ) -> List[SyncRun]:
        """Recent sync runs, newest first."""
        stmt = select(SyncRun)

        if data_source_id:
            stmt = stmt.where(SyncRun.data_source_id == data_source_id)
        if status:
            stmt = stmt.where(SyncRun.status == status)

        stmt = stmt.order_by(SyncRun.started_at.desc()).limit(limit)
        return list(self.db.execute(stmt).scalars().all())

    def get_latest_sync_run(self, data_source_id: Optional[str] = None) -> Optional[SyncRun]:
        runs = self.get_sync_runs(data_source_id=data_source_id, limit=1)
        return runs[0] if runs else None

    def get_checkpoints(self) -> List[SyncCheckpoint]:
        stmt = select(SyncCheckpoint).order_by(SyncCheckpoint.data_source_id)
        return list(self.db.execute(stmt).scalars().all())

    # -------------------------------------------------------------------------
    # Aggregation
    # -------------------------------------------------------------------------
    def get_data_sources_summary(self, policies: Iterable[Policy]) -> List[Dict[str, Any]]:
        """Page counts, checkpoint and last run per configured data source."""
        summary = []
        for policy in policies:
            data_source_id = policy.data_source_id
            checkpoint = self.db.get(SyncCheckpoint, data_source_id)
            latest_run = self.get_latest_sync_run(data_source_id)
            page_count = self.db.execute(
                select(func.count()).select_from(Page).where(Page.data_source_id == data_source_id)
            ).scalar() or 0

            summary.append({
                "data_source_id": data_source_id,
                "alias": policy.alias,
                "pages": page_count,
                "last_checkpoint": checkpoint.last_edited_at if checkpoint else None,
                "last_run_status": latest_run.status if latest_run else None,
                "last_run_at": latest_run.started_at if latest_run else None,
            })

        return summary
