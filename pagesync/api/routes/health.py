"""Health routes - System health and readiness checks."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pagesync.api.deps import get_db
from pagesync.schemas.api import HealthResponse
from pagesync.services.data_service import DataService

router = APIRouter(prefix="/health", tags=["health"])


@router.get("", response_model=HealthResponse)
def health(response: Response, db: Session = Depends(get_db)):
    """
    Health check endpoint for load balancer and Docker health checks.

    Checks database connectivity and last sync run status.
    Returns 503 if database is unreachable.
    """
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        response.status_code = 503
        return HealthResponse(database=f"down: {e}", last_sync_status=None)

    last_run = DataService(db).get_latest_sync_run()
    return HealthResponse(
        database="ok",
        last_sync_status=last_run.status if last_run else None,
    )


@router.get("/ready")
def readiness(response: Response, db: Session = Depends(get_db)):
    """
    Readiness check - verifies the service can serve traffic.

    Returns 200 if ready, 503 if database is unreachable.
    """
    try:
        db.execute(text("SELECT 1"))
        return {"status": "ready", "timestamp": datetime.now(timezone.utc).isoformat()}
    except SQLAlchemyError as e:
        response.status_code = 503
        return {"status": "not_ready", "error": str(e), "timestamp": datetime.now(timezone.utc).isoformat()}
