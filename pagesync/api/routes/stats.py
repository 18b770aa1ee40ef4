"""Stats routes - sync observability."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from pagesync.api.deps import get_db, get_sync_service
from pagesync.schemas.api import CheckpointOut, SyncRunOut
from pagesync.services.data_service import DataService
from pagesync.services.sync_service import SyncService

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("", response_model=list[SyncRunOut])
def get_sync_stats(
    data_source_id: Optional[str] = Query(None, alias="dataSourceId", description="Filter by data source"),
    status: Optional[str] = Query(None, description="Filter by status (running, ok, partial, error, no-changes)"),
    limit: int = Query(10, ge=1, le=50, description="Number of runs to return"),
    db: Session = Depends(get_db),
):
    """
    Recent sync runs with their counters and error details.

    Use this to monitor scheduled syncs and debug partial or failed runs.
    """
    service = DataService(db)
    runs = service.get_sync_runs(data_source_id=data_source_id, status=status, limit=limit)
    return [SyncRunOut.model_validate(run) for run in runs]


@router.get("/checkpoints", response_model=list[CheckpointOut])
def get_checkpoints(db: Session = Depends(get_db)):
    """Newest edit time seen by the last clean sync of each data source."""
    service = DataService(db)
    return [CheckpointOut.model_validate(cp) for cp in service.get_checkpoints()]


@router.get("/sources")
def get_sources_summary(
    db: Session = Depends(get_db),
    sync_service: SyncService = Depends(get_sync_service),
):
    """Per configured data source: page count, checkpoint and last run."""
    return DataService(db).get_data_sources_summary(sync_service.registry)
