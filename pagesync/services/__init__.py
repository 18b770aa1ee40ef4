# Services package
from pagesync.services.orchestrator import SyncOrchestrator, SyncPhase
from pagesync.services.page_builder import PageBuilder
from pagesync.services.page_repository import PageRepository
from pagesync.services.sync_service import SyncService
from pagesync.services.sync_state import SyncStateStore

__all__ = [
    "SyncOrchestrator",
    "SyncPhase",
    "PageBuilder",
    "PageRepository",
    "SyncService",
    "SyncStateStore",
]
