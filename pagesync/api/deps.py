"""API dependencies"""

import secrets
from typing import Generator, Optional

from fastapi import Depends, Query, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from pagesync.api.errors import UnauthorizedError
from pagesync.core.config import settings
from pagesync.core.db import SessionLocal
from pagesync.core.errors import ConfigError
from pagesync.core.logging import get_logger
from pagesync.services.sync_service import SyncService

log = get_logger("api.deps")

bearer = HTTPBearer(auto_error=False)


def get_db() -> Generator[Session, None, None]:
    """Database dependency"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_sync_service(request: Request) -> SyncService:
    service = getattr(request.app.state, "sync_service", None)
    if service is None:
        raise ConfigError("Sync service is not configured; check SYNC_POLICY_MODULE")
    return service


def _check_secret(provided: Optional[str], expected: Optional[str], setting: str) -> None:
    if not expected:
        log.warning(f"{setting} is not set; rejecting trigger")
        raise UnauthorizedError(f"{setting} is not configured")
    if not provided or not secrets.compare_digest(provided.encode(), expected.encode()):
        raise UnauthorizedError("Invalid or missing token")


def require_sync_token(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer)) -> None:
    """Bearer SYNC_SECRET, for the scheduled poll and manual triggers."""
    _check_secret(credentials.credentials if credentials else None, settings.SYNC_SECRET, "SYNC_SECRET")


def require_webhook_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    token: Optional[str] = Query(None, description="Webhook secret, for senders that can't set headers"),
) -> None:
    provided = credentials.credentials if credentials else token
    _check_secret(provided, settings.WEBHOOK_SECRET, "WEBHOOK_SECRET")
