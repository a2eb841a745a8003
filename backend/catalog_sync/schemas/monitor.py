"""Health monitor schemas."""

from datetime import datetime
from typing import Optional, List, Dict
from pydantic import BaseModel, Field


class ExecutionRecord(BaseModel):
    """One completed job execution, kept in memory only."""
    timestamp: datetime
    status: str  # 'success', 'partial', 'failed'
    processed: int = 0
    updated: int = 0
    failed: int = 0
    price_changes: Optional[int] = None  # Price jobs only
    duration_ms: int = 0
    error: Optional[str] = None


class JobHealth(BaseModel):
    enabled: bool
    last_run: Optional[datetime] = None
    total_runs: int = 0
    success_rate: Optional[float] = None  # Percentage over the recent window
    avg_duration_ms: Optional[int] = None
    overdue: bool = False
    expected_interval_hours: float
    recent_runs: List[ExecutionRecord] = Field(default_factory=list)


class SystemHealth(BaseModel):
    generated_at: datetime
    uptime_seconds: int
    warnings: List[str] = Field(default_factory=list)


class HealthSnapshot(BaseModel):
    jobs: Dict[str, JobHealth]
    system: SystemHealth
