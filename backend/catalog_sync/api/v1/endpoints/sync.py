from typing import List, Optional
import logging

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from catalog_sync.database import get_db
from catalog_sync.exceptions import SyncAlreadyRunningError
from catalog_sync.scheduler import SyncScheduler, sync_scheduler
from catalog_sync.schemas.sync import (
    InventorySnapshotEntry,
    InventorySyncResult,
    ManualSyncRequest,
    PaginatedSyncRuns,
    PriceSyncResult,
    ScheduleStatus,
    SyncRunResponse,
)
from catalog_sync.services.catalog_store import CatalogStore
from catalog_sync.utils.schedule_policy import INVENTORY_JOB, JOB_TYPES, PRICE_JOB

log = logging.getLogger(__name__)
router = APIRouter()


def get_sync_scheduler() -> SyncScheduler:
    return sync_scheduler


async def _run_manual(scheduler: SyncScheduler, job_type: str, request: Optional[ManualSyncRequest]):
    limit = request.limit if request else None
    log.info(f"Manual {job_type} sync requested (limit={limit})")
    try:
        return await scheduler.run_job(job_type, sync_type='manual', limit=limit)
    except SyncAlreadyRunningError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"A {job_type} sync is already running"
        )


@router.get("/schedule", response_model=ScheduleStatus)
async def get_schedule(scheduler: SyncScheduler = Depends(get_sync_scheduler)):
    """Timeline states and next fire times."""
    return scheduler.status()


@router.post("/inventory/run", response_model=InventorySyncResult)
async def run_inventory_sync(
    request: Optional[ManualSyncRequest] = Body(None),
    scheduler: SyncScheduler = Depends(get_sync_scheduler),
):
    """Trigger a manual inventory sync. Returns 409 while one is running."""
    return await _run_manual(scheduler, INVENTORY_JOB, request)


@router.post("/price/run", response_model=PriceSyncResult)
async def run_price_sync(
    request: Optional[ManualSyncRequest] = Body(None),
    scheduler: SyncScheduler = Depends(get_sync_scheduler),
):
    """Trigger a manual price sync. Returns 409 while one is running."""
    return await _run_manual(scheduler, PRICE_JOB, request)


@router.get("/runs", response_model=PaginatedSyncRuns)
async def get_sync_runs(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=200),
    job_type: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    db: Session = Depends(get_db),
):
    """Retrieve the durable history of sync runs, newest first."""
    if job_type and job_type not in JOB_TYPES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown job type: {job_type}")
    if status_filter == "all":
        status_filter = None

    store = CatalogStore(db)
    runs = store.list_sync_runs(job_type=job_type, status=status_filter, limit=limit, offset=skip)
    return PaginatedSyncRuns(
        data=[SyncRunResponse.model_validate(run) for run in runs],
        total=store.count_sync_runs(job_type=job_type, status=status_filter),
    )


@router.get("/inventory/snapshot", response_model=List[InventorySnapshotEntry])
async def get_inventory_snapshot(db: Session = Depends(get_db)):
    """Per-warehouse stock breakdown for every active catalog entry."""
    return CatalogStore(db).inventory_snapshot()
