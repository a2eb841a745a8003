"""
In-process execution history and health checks for the sync jobs.

History is advisory: a bounded ring buffer per job type, lost on restart.
The durable audit trail is the sync_runs table.
"""

import logging
from collections import deque
from datetime import datetime, timedelta, timezone
from typing import Callable, Deque, Dict, List, Optional, Union
from zoneinfo import ZoneInfo

from catalog_sync.config import settings
from catalog_sync.schemas.monitor import ExecutionRecord, HealthSnapshot, JobHealth, SystemHealth
from catalog_sync.schemas.sync import InventorySyncResult, PriceSyncResult
from catalog_sync.utils.schedule_policy import INVENTORY_JOB, JOB_TYPES, PRICE_JOB, expected_interval, local_now

log = logging.getLogger(__name__)

RECENT_WINDOW = 10
RECENT_RUNS_SHOWN = 5
JOB_TITLES = {
    INVENTORY_JOB: "INVENTORY SYNC (supplier stock updates)",
    PRICE_JOB: "PRICE SYNC (supplier cost updates)",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime) -> datetime:
    """Naive datetimes are read as local service time."""
    return local_now(value) if value.tzinfo is None else value


def _format_duration(ms: Optional[int]) -> str:
    if not ms:
        return "N/A"
    if ms < 1000:
        return f"{ms}ms"
    if ms < 60000:
        return f"{ms / 1000:.1f}s"
    return f"{ms / 60000:.1f}m"


class SchedulerMonitor:
    """Tracks job executions and flags jobs that silently stopped running."""

    def __init__(self, max_records: Optional[int] = None, now: Optional[Callable[[], datetime]] = None):
        self.max_records = settings.monitor_max_records if max_records is None else max_records
        self.now = now or _utcnow
        self.started_at = self.now()
        self._history: Dict[str, Deque[ExecutionRecord]] = {
            job_type: deque(maxlen=self.max_records) for job_type in JOB_TYPES
        }

    def _history_for(self, job_type: str) -> Deque[ExecutionRecord]:
        if job_type not in self._history:
            raise ValueError(f"Unknown job type: {job_type}")
        return self._history[job_type]

    def record(
        self,
        job_type: str,
        result: Optional[Union[InventorySyncResult, PriceSyncResult]] = None,
        error: Optional[str] = None,
        duration_ms: int = 0,
        timestamp: Optional[datetime] = None,
    ) -> ExecutionRecord:
        """Append a completion record. A result with per-entry failures counts as partial."""
        history = self._history_for(job_type)

        processed = updated = failed = 0
        price_changes = None
        if isinstance(result, InventorySyncResult):
            processed, updated, failed = result.processed, result.updated, len(result.failures)
            duration_ms = duration_ms or result.duration_ms
        elif isinstance(result, PriceSyncResult):
            processed, updated, failed = result.processed, result.synced, len(result.errors)
            price_changes = len(result.price_changes)
            duration_ms = duration_ms or result.duration_ms

        if error:
            status = 'failed'
        elif failed:
            status = 'partial'
        else:
            status = 'success'

        record = ExecutionRecord(
            timestamp=_aware(timestamp) if timestamp else self.now(),
            status=status,
            processed=processed,
            updated=updated,
            failed=failed,
            price_changes=price_changes,
            duration_ms=duration_ms,
            error=error,
        )
        history.append(record)
        log.debug(f"Recorded {job_type} execution: {status}")
        return record

    def _enabled(self, job_type: str) -> bool:
        if job_type == INVENTORY_JOB:
            return settings.inventory_sync_enabled
        return settings.price_sync_enabled

    def _grace(self, job_type: str) -> float:
        if job_type == INVENTORY_JOB:
            return settings.inventory_overdue_grace
        return (24 + settings.price_overdue_grace_hours) / 24

    def is_overdue(self, job_type: str, now: Optional[datetime] = None) -> bool:
        """Never-run jobs are not overdue."""
        history = self._history_for(job_type)
        if not history:
            return False
        now = _aware(now) if now else self.now()
        allowed = expected_interval(job_type, now) * self._grace(job_type)
        return now - history[-1].timestamp > allowed

    def _job_health(self, job_type: str, now: datetime) -> JobHealth:
        history = list(self._history_for(job_type))
        recent = history[-RECENT_WINDOW:]

        success_rate = None
        avg_duration = None
        if recent:
            success_rate = sum(1 for r in recent if r.status == 'success') / len(recent) * 100
            avg_duration = round(sum(r.duration_ms for r in recent) / len(recent))

        return JobHealth(
            enabled=self._enabled(job_type),
            last_run=history[-1].timestamp if history else None,
            total_runs=len(history),
            success_rate=success_rate,
            avg_duration_ms=avg_duration,
            overdue=self.is_overdue(job_type, now),
            expected_interval_hours=expected_interval(job_type, now) / timedelta(hours=1),
            recent_runs=history[-RECENT_RUNS_SHOWN:],
        )

    def get_health(self, now: Optional[datetime] = None) -> HealthSnapshot:
        now = _aware(now) if now else self.now()
        jobs = {job_type: self._job_health(job_type, now) for job_type in JOB_TYPES}

        warnings = []
        for job_type, health in jobs.items():
            if health.overdue:
                warnings.append(f"{job_type.capitalize()} sync may be overdue")
            if health.recent_runs and health.recent_runs[-1].status == 'failed':
                warnings.append(f"Last {job_type} sync failed: {health.recent_runs[-1].error}")

        return HealthSnapshot(
            jobs=jobs,
            system=SystemHealth(
                generated_at=now,
                uptime_seconds=max(0, int((now - self.started_at).total_seconds())),
                warnings=warnings,
            ),
        )

    def get_history(self, job_type: str, limit: int = 50) -> List[ExecutionRecord]:
        history = list(self._history_for(job_type))
        return history[-limit:] if limit > 0 else []

    def report(self, now: Optional[datetime] = None) -> str:
        """Human-readable rendering of get_health()."""
        snapshot = self.get_health(now)
        tz = ZoneInfo(settings.timezone)
        rule = "=" * 61
        thin = "-" * 61

        def fmt_time(value: Optional[datetime]) -> str:
            return value.astimezone(tz).strftime("%Y-%m-%d %H:%M:%S %Z") if value else "Never"

        lines = [
            "CATALOG SYNC SCHEDULER STATUS REPORT",
            f"Generated: {snapshot.system.generated_at.isoformat()}",
            "",
        ]
        for job_type in JOB_TYPES:
            health = snapshot.jobs[job_type]
            rate = f"{health.success_rate:.1f}%" if health.success_rate is not None else "N/A"
            lines += [
                rule,
                "",
                JOB_TITLES[job_type],
                thin,
                f"Enabled:          {'ENABLED' if health.enabled else 'DISABLED'}",
                f"Last Run:         {fmt_time(health.last_run)}",
                f"Total Runs:       {health.total_runs}",
                f"Success Rate:     {rate}",
                f"Avg Duration:     {_format_duration(health.avg_duration_ms)}",
                f"Schedule:         {'OVERDUE' if health.overdue else 'ON SCHEDULE'}",
                "",
                "Recent Runs:",
            ]
            if not health.recent_runs:
                lines.append("  (No runs yet)")
            for run in health.recent_runs:
                if job_type == PRICE_JOB:
                    detail = f"synced: {run.updated}, changes: {run.price_changes or 0}"
                else:
                    detail = f"updated: {run.updated}/{run.processed}"
                lines.append(
                    f"  * {fmt_time(run.timestamp)} - {run.status.upper()} "
                    f"({detail}, duration: {_format_duration(run.duration_ms)})"
                )
            lines.append("")

        lines += [
            rule,
            "",
            "SYSTEM HEALTH",
            thin,
            f"Uptime:           {snapshot.system.uptime_seconds / 3600:.1f} hours",
            "",
            "Alerts:",
        ]
        if snapshot.system.warnings:
            lines += [f"  ! {warning}" for warning in snapshot.system.warnings]
        else:
            lines.append("  No warnings")
        lines += ["", rule]
        return "\n".join(lines) + "\n"

    def reset(self) -> None:
        for history in self._history.values():
            history.clear()


# Global monitor instance
scheduler_monitor = SchedulerMonitor()
