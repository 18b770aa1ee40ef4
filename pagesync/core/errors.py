"""Error taxonomy for the sync engine.

- SourceError: the content source (Notion) failed; aborts a data source's sync.
- ValidationError: a single document can't be turned into a page; it is skipped.
- RepositoryError: the content store rejected a read or write; the document fails.
- ConfigError: a policy or setting is malformed; nothing runs.
"""

from __future__ import annotations

from typing import Optional


class SyncError(Exception):
    """Base class for all sync engine errors."""

    kind = "sync_error"

    def __init__(self, message: str, *, document_id: Optional[str] = None, data_source_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.document_id = document_id
        self.data_source_id = data_source_id

    def __str__(self) -> str:
        return self.message


class SourceError(SyncError):
    kind = "source_error"


class ValidationError(SyncError):
    kind = "validation_error"


class RepositoryError(SyncError):
    kind = "repository_error"


class ConfigError(SyncError):
    kind = "config_error"


class UnknownDataSourceError(ConfigError):
    """No configured policy matches the requested data source."""

    kind = "unknown_data_source"
