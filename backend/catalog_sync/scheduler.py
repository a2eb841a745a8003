"""APScheduler integration for the self-rescheduling sync timelines."""

import logging
import time
from datetime import datetime
from typing import Callable, Dict, Optional, Union

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from sqlalchemy.orm import Session

from catalog_sync.config import settings
from catalog_sync.connectors.base import BaseSupplierConnector
from catalog_sync.connectors.supplier_connector import get_supplier_connector
from catalog_sync.database import SessionLocal
from catalog_sync.exceptions import SyncAlreadyRunningError
from catalog_sync.schemas.sync import InventorySyncResult, PriceSyncResult, ScheduleStatus, TimelineStatus
from catalog_sync.services.catalog_store import CatalogStore
from catalog_sync.services.inventory_sync import InventorySyncService
from catalog_sync.services.price_sync import PriceSyncService
from catalog_sync.services.scheduler_monitor import SchedulerMonitor, scheduler_monitor
from catalog_sync.utils.schedule_policy import INVENTORY_JOB, JOB_TYPES, local_now, next_run

log = logging.getLogger(__name__)


class Timeline:
    """State of one job's timeline: idle or running, plus the armed fire time."""

    def __init__(self, job_type: str):
        self.job_type = job_type
        self.running = False  # Overlap guard
        self.next_fire: Optional[datetime] = None
        self.last_started_at: Optional[datetime] = None
        self.last_finished_at: Optional[datetime] = None

    @property
    def state(self) -> str:
        return 'running' if self.running else 'idle'


class SyncScheduler:
    """
    Runs the inventory and price timelines.

    Each timeline is a one-shot DateTrigger job. When a scheduled run settles,
    successfully or not, the next fire time is computed from the cadence
    rules and armed again. A trigger that finds its job already running is
    dropped, never queued.
    """

    def __init__(
        self,
        scheduler: Optional[AsyncIOScheduler] = None,
        session_factory: Callable[[], Session] = SessionLocal,
        connector_factory: Callable[[], BaseSupplierConnector] = get_supplier_connector,
        monitor: SchedulerMonitor = scheduler_monitor,
    ):
        self.scheduler = scheduler or AsyncIOScheduler(timezone=settings.timezone)
        self.session_factory = session_factory
        self.connector_factory = connector_factory
        self.monitor = monitor
        self.timelines: Dict[str, Timeline] = {job_type: Timeline(job_type) for job_type in JOB_TYPES}

    def _timeline(self, job_type: str) -> Timeline:
        if job_type not in self.timelines:
            raise ValueError(f"Unknown job type: {job_type}")
        return self.timelines[job_type]

    @staticmethod
    def job_id(job_type: str) -> str:
        return f"{job_type}_sync_job"

    def is_enabled(self, job_type: str) -> bool:
        if job_type == INVENTORY_JOB:
            return settings.inventory_sync_enabled
        return settings.price_sync_enabled

    def is_running(self, job_type: str) -> bool:
        return self._timeline(job_type).running

    def arm(self, job_type: str, now: Optional[datetime] = None) -> Optional[datetime]:
        """Compute and arm the next fire time. Disabled jobs are left unarmed."""
        timeline = self._timeline(job_type)
        job_id = self.job_id(job_type)

        if not self.is_enabled(job_type):
            if self.scheduler.get_job(job_id):
                self.scheduler.remove_job(job_id)
            timeline.next_fire = None
            log.info(f"{job_type.capitalize()} sync disabled, not scheduling")
            return None

        run_date = next_run(job_type, now)
        self.scheduler.add_job(
            self._scheduled_run,
            trigger=DateTrigger(run_date=run_date),
            args=[job_type],
            id=job_id,
            replace_existing=True,
            misfire_grace_time=None,
        )
        timeline.next_fire = run_date
        log.info(f"Next {job_type} sync scheduled for {run_date.isoformat()}")
        return run_date

    async def _scheduled_run(self, job_type: str) -> None:
        try:
            await self.run_job(job_type, sync_type='scheduled')
        except SyncAlreadyRunningError:
            log.warning(f"Scheduled {job_type} sync skipped: previous run still active")
        except Exception as e:
            # Already recorded in the monitor and sync_runs; wait for the next slot
            log.error(f"Scheduled {job_type} sync failed: {e}", exc_info=True)
        finally:
            self.arm(job_type)

    async def run_job(
        self,
        job_type: str,
        sync_type: str = 'manual',
        limit: Optional[int] = None,
    ) -> Union[InventorySyncResult, PriceSyncResult]:
        """
        Run one sync of `job_type` to completion.

        Raises SyncAlreadyRunningError when the same job type is in progress.
        Manual runs share the guard but never re-arm the timeline.
        """
        timeline = self._timeline(job_type)
        if timeline.running:
            raise SyncAlreadyRunningError(f"{job_type} sync is already running")

        timeline.running = True
        timeline.last_started_at = local_now()
        started = time.monotonic()
        db = self.session_factory()
        try:
            store = CatalogStore(db)
            connector = self.connector_factory()
            if job_type == INVENTORY_JOB:
                batch = limit if limit is not None else settings.inventory_sync_batch_size
                result = await InventorySyncService(connector, store).run(limit=batch, sync_type=sync_type)
            else:
                batch = limit if limit is not None else settings.price_sync_batch_size
                result = await PriceSyncService(connector, store).run(limit=batch, sync_type=sync_type)
            self.monitor.record(job_type, result)
            return result
        except Exception as e:
            self.monitor.record(
                job_type,
                error=str(e) or type(e).__name__,
                duration_ms=int((time.monotonic() - started) * 1000),
            )
            raise
        finally:
            timeline.running = False
            timeline.last_finished_at = local_now()
            db.close()

    def status(self) -> ScheduleStatus:
        return ScheduleStatus(
            scheduler_running=self.scheduler.running,
            timezone=settings.timezone,
            timelines=[
                TimelineStatus(
                    job_type=job_type,
                    enabled=self.is_enabled(job_type),
                    state=timeline.state,
                    next_run_time=timeline.next_fire,
                    last_started_at=timeline.last_started_at,
                    last_finished_at=timeline.last_finished_at,
                )
                for job_type, timeline in self.timelines.items()
            ],
        )

    def start(self) -> None:
        for job_type in JOB_TYPES:
            self.arm(job_type)
        if not self.scheduler.running:
            self.scheduler.start()
            log.info("APScheduler started successfully")

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            log.info("APScheduler shut down successfully")
        for timeline in self.timelines.values():
            timeline.next_fire = None


# Global scheduler instance
sync_scheduler = SyncScheduler()


def start_scheduler():
    """Arm enabled timelines and start APScheduler."""
    sync_scheduler.start()


def shutdown_scheduler():
    """Shutdown APScheduler gracefully."""
    sync_scheduler.shutdown()
