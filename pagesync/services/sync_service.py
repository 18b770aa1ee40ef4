"""Sync service - wires policies, sources and sessions for each trigger.

Entry points (HTTP poll, webhook, CLI, scheduled task) all go through this
class so that syncs of one data source never overlap.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from pagesync.core.errors import ConfigError, UnknownDataSourceError, ValidationError
from pagesync.core.logging import get_logger, sync_context
from pagesync.ingestion.base import BaseSource
from pagesync.ingestion.notion_source import NotionSource
from pagesync.policy import Policy, PolicyRegistry, resolve_token
from pagesync.schemas.sync import ContentRecord, SyncSummary
from pagesync.services.orchestrator import SyncOrchestrator
from pagesync.services.page_builder import PageBuilder
from pagesync.services.page_repository import PageRepository
from pagesync.services.sync_state import SyncStateStore

log = get_logger("sync_service")

SourceFactory = Callable[[str], BaseSource]


class SyncService:
    """Runs syncs for configured data sources, one session per data source."""

    def __init__(
        self,
        registry: PolicyRegistry,
        session_factory: Callable[[], Session],
        source_factory: SourceFactory = NotionSource.from_token,
    ):
        self.registry = registry
        self.session_factory = session_factory
        self.source_factory = source_factory
        self._locks: Dict[str, asyncio.Lock] = {}

    def lock_for(self, data_source_id: str) -> asyncio.Lock:
        lock = self._locks.get(data_source_id)
        if lock is None:
            lock = self._locks[data_source_id] = asyncio.Lock()
        return lock

    async def run(
        self,
        data_source: Optional[str] = None,
        since: Optional[datetime] = None,
        full: bool = False,
        wipe: bool = False,
        deadline: Optional[datetime] = None,
    ) -> List[SyncSummary]:
        """Sync every configured data source, or the one matching `data_source`.

        Raises ConfigError when nothing matches; per-source failures are
        reported in the summaries.
        """
        policies = self.registry.select(data_source)
        summaries: List[SyncSummary] = []

        for policy in policies:
            try:
                summary = await self.sync_policy(policy, since=since, full=full, wipe=wipe, deadline=deadline)
            except ConfigError as exc:
                log.error(f"Sync of '{policy.alias}' not started: {exc}")
                summary = SyncSummary(
                    data_source_id=policy.data_source_id,
                    alias=policy.alias,
                    status="error",
                    details=str(exc),
                )
            summaries.append(summary)

        return summaries

    async def sync_policy(
        self,
        policy: Policy,
        since: Optional[datetime] = None,
        full: bool = False,
        wipe: bool = False,
        deadline: Optional[datetime] = None,
    ) -> SyncSummary:
        async with self._orchestrator(policy) as orchestrator:
            return await orchestrator.sync_data_source(
                policy, full=full, since=since, wipe=wipe, deadline=deadline
            )

    async def process_webhook(self, document_id: str, data_source_id: Optional[str] = None) -> ContentRecord:
        """Sync one document pushed by a webhook.

        The policy comes from `data_source_id` when given, otherwise from the
        document's parent database. Errors propagate to the caller.
        """
        policy = self._policy_hint(data_source_id)

        lookup = self.source_factory(resolve_token(policy) if policy else self._default_token())
        try:
            doc = await lookup.get_document(document_id)
        finally:
            await lookup.close()

        parent = doc.data_source_id
        if policy is None:
            if not parent:
                raise ValidationError(f"Page {document_id} has no parent data source", document_id=document_id)
            policy = self.registry.get(parent)
            if policy is None:
                raise UnknownDataSourceError(
                    f"Data source '{parent}' of page {document_id} is not configured",
                    document_id=document_id,
                    data_source_id=parent,
                )
        elif parent and not policy.matches(parent):
            raise ValidationError(
                f"Page {document_id} belongs to '{parent}', not '{policy.alias}'",
                document_id=document_id,
                data_source_id=policy.data_source_id,
            )

        log.info(f"Webhook sync of {document_id} in '{policy.alias}'")
        async with self._orchestrator(policy) as orchestrator:
            return await orchestrator.process_single_document(doc, policy)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------
    @asynccontextmanager
    async def _orchestrator(self, policy: Policy) -> AsyncIterator[SyncOrchestrator]:
        """Serialized orchestrator for one data source, with its own session and client."""
        token = resolve_token(policy)
        lock = self.lock_for(policy.data_source_id)
        if lock.locked():
            log.info(f"Waiting for running sync of '{policy.alias}'")

        async with lock:
            source = self.source_factory(token)
            db = self.session_factory()
            try:
                repository = PageRepository(db)
                with sync_context(policy.alias):
                    yield SyncOrchestrator(
                        source=source,
                        builder=PageBuilder(source, repository),
                        repository=repository,
                        state=SyncStateStore(db),
                    )
            finally:
                db.close()
                await source.close()

    def _policy_hint(self, data_source_id: Optional[str]) -> Optional[Policy]:
        if data_source_id:
            return self.registry.select(data_source_id)[0]
        if len(self.registry) == 1:
            return next(iter(self.registry))
        return None

    def _default_token(self) -> str:
        policies = list(self.registry)
        if not policies:
            raise ConfigError("No data sources configured")
        # Without a hint the lookup uses the first policy's token
        return resolve_token(policies[0])
