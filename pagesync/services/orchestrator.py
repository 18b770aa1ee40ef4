"""Sync orchestrator - one data source, query through upsert."""

from __future__ import annotations

import time
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional, Tuple

from pagesync.core.dates import ensure_utc, utcnow
from pagesync.core.errors import RepositoryError, SourceError, ValidationError
from pagesync.core.logging import get_logger
from pagesync.ingestion.base import BaseSource
from pagesync.ingestion.document import Document
from pagesync.models.runs import SyncRun
from pagesync.policy import Policy
from pagesync.schemas.sync import ContentRecord, SyncSummary
from pagesync.services.page_builder import PageBuilder
from pagesync.services.page_repository import PageRepository
from pagesync.services.sync_state import SyncStateStore

log = get_logger("orchestrator")

# Per-document messages kept in a summary's details
MAX_DETAIL_ISSUES = 5

# Notion truncates last_edited_time to the minute; incremental queries start
# this far before the checkpoint so same-minute edits are fetched again
CHECKPOINT_OVERLAP = timedelta(minutes=1)


class SyncPhase(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    PROCESSING = "processing"
    DONE = "done"
    FAILED = "failed"


class SyncOrchestrator:
    """Runs batch syncs and single-document syncs through the same path.

    Documents are processed one at a time; slug uniqueness is check-then-act
    and is only safe without concurrency inside a data source.
    """

    def __init__(
        self,
        source: BaseSource,
        builder: PageBuilder,
        repository: PageRepository,
        state: Optional[SyncStateStore] = None,
    ):
        self.source = source
        self.builder = builder
        self.repository = repository
        self.state = state
        self.phase = SyncPhase.IDLE
        self.progress: Tuple[int, int] = (0, 0)

    async def sync_data_source(
        self,
        policy: Policy,
        full: bool = False,
        since: Optional[datetime] = None,
        wipe: bool = False,
        deadline: Optional[datetime] = None,
    ) -> SyncSummary:
        """Sync every (or every changed) document of the policy's data source.

        Only a malformed policy raises; everything else is reported in the
        returned summary.
        """
        policy.validate()
        since = ensure_utc(since) if since else None
        data_source_id = policy.data_source_id
        summary = SyncSummary(data_source_id=data_source_id, alias=policy.alias)
        started = time.perf_counter()
        self.progress = (0, 0)

        run = self._start_run(
            data_source_id,
            {"full": full, "since": since.isoformat() if since else None, "wipe": wipe},
        )
        log.info(f"Sync started for '{policy.alias}' | full={full} since={since} wipe={wipe}")

        try:
            await self._sync(policy, summary, full, since, wipe, deadline)
        finally:
            summary.duration_ms = int((time.perf_counter() - started) * 1000)
            self.phase = SyncPhase.FAILED if summary.status == "error" else SyncPhase.DONE
            self._finish_run(run, summary)

        log.info(
            f"Sync finished for '{policy.alias}' | status={summary.status} "
            f"processed={summary.processed} skipped={summary.skipped} failed={summary.failed} "
            f"duration_ms={summary.duration_ms}"
        )
        return summary

    async def process_single_document(self, doc: Document, policy: Policy) -> ContentRecord:
        """Build and store one document. Errors reach the caller unchanged."""
        policy.validate()
        return await self.process_document(doc, policy)

    async def process_document(self, doc: Document, policy: Policy) -> ContentRecord:
        record = await self.builder.build(doc, policy)
        self.repository.upsert(record)
        return record

    # -------------------------------------------------------------------------
    # Batch loop
    # -------------------------------------------------------------------------
    async def _sync(
        self,
        policy: Policy,
        summary: SyncSummary,
        full: bool,
        since: Optional[datetime],
        wipe: bool,
        deadline: Optional[datetime],
    ) -> None:
        data_source_id = policy.data_source_id

        if wipe:
            try:
                self.repository.delete_all(data_source_id)
                if self.state is not None:
                    self.state.clear_checkpoint(data_source_id)
            except RepositoryError as exc:
                self._abort(summary, f"Wipe failed: {exc}")
                return

        cursor: Optional[datetime] = None
        if not full:
            cursor = since
            if cursor is None and self.state is not None:
                try:
                    checkpoint = self.state.load_checkpoint(data_source_id)
                except RepositoryError as exc:
                    self._abort(summary, str(exc))
                    return
                if checkpoint is not None:
                    cursor = checkpoint - CHECKPOINT_OVERLAP
        summary.since = cursor

        self.phase = SyncPhase.FETCHING
        try:
            documents = await self.source.query_data_source(data_source_id, cursor)
        except SourceError as exc:
            self._abort(summary, f"Query failed: {exc}")
            return

        if not documents:
            summary.status = "no-changes"
            log.info(f"No changed documents in '{policy.alias}'")
            return

        self.phase = SyncPhase.PROCESSING
        total = len(documents)
        issues: List[str] = []
        newest: Optional[datetime] = None
        oldest_failure: Optional[datetime] = None

        for index, doc in enumerate(documents, start=1):
            if deadline is not None and utcnow() >= ensure_utc(deadline):
                summary.status = "partial"
                issues.insert(0, f"deadline reached after {index - 1} of {total} documents")
                summary.details = "; ".join(issues[:MAX_DETAIL_ISSUES])
                log.warning(f"Sync of '{policy.alias}' stopped at deadline ({index - 1}/{total})")
                return

            self.progress = (index, total)
            edited = ensure_utc(doc.last_edited_at)
            try:
                await self.process_document(doc, policy)
            except ValidationError as exc:
                summary.skipped += 1
                if isinstance(exc.__cause__, SourceError):
                    # Notion failed mid-build; retry on the next run
                    oldest_failure = min(oldest_failure, edited) if oldest_failure else edited
                else:
                    # Invalid until edited again, so the checkpoint may pass it
                    newest = max(newest, edited) if newest else edited
                issues.append(f"{doc.id}: {exc}")
                log.warning(f"Skipped {doc.id} in {data_source_id}: {exc}")
                continue
            except Exception as exc:  # noqa: BLE001
                summary.failed += 1
                oldest_failure = min(oldest_failure, edited) if oldest_failure else edited
                issues.append(f"{doc.id}: {exc}")
                if isinstance(exc, RepositoryError):
                    log.error(f"Failed to store {doc.id} in {data_source_id}: {exc}")
                else:
                    log.error(f"Unexpected error on {doc.id} in {data_source_id}: {exc!r}")
                continue

            summary.processed += 1
            newest = max(newest, edited) if newest else edited

        if summary.skipped or summary.failed:
            summary.status = "partial"
            summary.details = "; ".join(issues[:MAX_DETAIL_ISSUES])
        else:
            summary.status = "ok"

        self._advance_checkpoint(summary, newest, oldest_failure)

    def _advance_checkpoint(
        self,
        summary: SyncSummary,
        newest: Optional[datetime],
        oldest_failure: Optional[datetime],
    ) -> None:
        """Move the checkpoint past everything that needs no retry.

        Failed documents are retried by the next incremental run, so the
        checkpoint stays below the oldest of them.
        """
        if self.state is None or newest is None:
            return
        if oldest_failure is not None:
            newest = min(newest, oldest_failure - CHECKPOINT_OVERLAP)

        try:
            self.state.advance_checkpoint(summary.data_source_id, newest)
        except RepositoryError as exc:
            note = f"checkpoint not advanced: {exc}"
            summary.details = f"{summary.details}; {note}" if summary.details else note
            log.error(f"Checkpoint for {summary.data_source_id} not advanced: {exc}")

    @staticmethod
    def _abort(summary: SyncSummary, message: str) -> None:
        summary.status = "error"
        summary.details = message
        log.error(f"Sync of '{summary.alias}' aborted: {message}")

    # -------------------------------------------------------------------------
    # Run bookkeeping (best effort)
    # -------------------------------------------------------------------------
    def _start_run(self, data_source_id: str, options: dict) -> Optional[SyncRun]:
        if self.state is None:
            return None
        try:
            return self.state.start_run(data_source_id, options)
        except RepositoryError as exc:
            log.warning(f"Could not record sync run for {data_source_id}: {exc}")
            return None

    def _finish_run(self, run: Optional[SyncRun], summary: SyncSummary) -> None:
        if self.state is None or run is None:
            return
        try:
            self.state.finish_run(run, summary)
        except RepositoryError as exc:
            log.warning(f"Could not finish sync run {run.run_id}: {exc}")
