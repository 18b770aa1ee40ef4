"""Sync bookkeeping: run history and incremental checkpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pagesync.core.dates import ensure_utc, utcnow
from pagesync.core.errors import RepositoryError
from pagesync.core.logging import get_logger
from pagesync.models.checkpoints import SyncCheckpoint
from pagesync.models.runs import SyncRun
from pagesync.schemas.sync import SyncSummary

log = get_logger("sync_state")


class SyncStateStore:
    """Persists SyncRun rows and per-data-source checkpoints."""

    def __init__(self, db: Session):
        self.db = db

    # -------------------------------------------------------------------------
    # Runs
    # -------------------------------------------------------------------------
    def start_run(self, data_source_id: str, options: Optional[Dict[str, Any]] = None) -> SyncRun:
        run = SyncRun(data_source_id=data_source_id, status="running", meta=options or {})
        self._commit(run)
        return run

    def finish_run(self, run: SyncRun, summary: SyncSummary) -> None:
        run.status = summary.status
        run.processed = summary.processed
        run.skipped = summary.skipped
        run.failed = summary.failed
        run.error_message = summary.details if summary.status in ("error", "partial") else None
        run.ended_at = utcnow()
        self._commit(run)

    # -------------------------------------------------------------------------
    # Checkpoints
    # -------------------------------------------------------------------------
    def load_checkpoint(self, data_source_id: str) -> Optional[datetime]:
        """Newest edit time seen by the last clean sync, if any."""
        try:
            checkpoint = self.db.get(SyncCheckpoint, data_source_id)
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise RepositoryError(f"Cannot load checkpoint: {exc}", data_source_id=data_source_id) from exc
        return ensure_utc(checkpoint.last_edited_at) if checkpoint else None

    def advance_checkpoint(self, data_source_id: str, newest: datetime) -> None:
        """Move the checkpoint forward; never backwards."""
        try:
            checkpoint = self.db.get(SyncCheckpoint, data_source_id)
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise RepositoryError(f"Cannot load checkpoint: {exc}", data_source_id=data_source_id) from exc

        if not checkpoint:
            checkpoint = SyncCheckpoint(data_source_id=data_source_id, last_edited_at=newest)
        elif ensure_utc(checkpoint.last_edited_at) >= ensure_utc(newest):
            return
        else:
            checkpoint.last_edited_at = newest

        self._commit(checkpoint)
        log.info(f"Checkpoint for {data_source_id} advanced to {newest.isoformat()}")

    def clear_checkpoint(self, data_source_id: str) -> None:
        try:
            self.db.execute(delete(SyncCheckpoint).where(SyncCheckpoint.data_source_id == data_source_id))
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise RepositoryError(f"Cannot clear checkpoint: {exc}", data_source_id=data_source_id) from exc
        log.info(f"Checkpoint for {data_source_id} cleared")

    def _commit(self, row) -> None:
        try:
            self.db.add(row)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise RepositoryError(f"Cannot persist {type(row).__name__}: {exc}") from exc
