from pagesync.models.base import Base
from pagesync.models.pages import Page
from pagesync.models.checkpoints import SyncCheckpoint
from pagesync.models.runs import SyncRun

__all__ = [
    "Base",
    "Page",
    "SyncCheckpoint",
    "SyncRun",
]
