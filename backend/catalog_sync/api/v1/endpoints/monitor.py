from typing import List

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import PlainTextResponse

from catalog_sync.schemas.monitor import ExecutionRecord, HealthSnapshot
from catalog_sync.services.scheduler_monitor import scheduler_monitor
from catalog_sync.utils.schedule_policy import JOB_TYPES

router = APIRouter()


@router.get("/health", response_model=HealthSnapshot)
async def get_scheduler_health():
    """Health snapshot of both sync timelines."""
    return scheduler_monitor.get_health()


@router.get("/report", response_class=PlainTextResponse)
async def get_scheduler_report():
    """Human-readable scheduler status report."""
    return scheduler_monitor.report()


@router.get("/history/{job_type}", response_model=List[ExecutionRecord])
async def get_execution_history(job_type: str, limit: int = Query(50, ge=1, le=100)):
    """In-memory execution history, oldest first. Lost on restart."""
    if job_type not in JOB_TYPES:
        raise HTTPException(status_code=404, detail=f"Unknown job type: {job_type}")
    return scheduler_monitor.get_history(job_type, limit)
