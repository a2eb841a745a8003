import asyncio
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock
from zoneinfo import ZoneInfo

import pytest
from apscheduler.triggers.date import DateTrigger

from catalog_sync.config import settings
from catalog_sync.connectors.base import WarehouseInventory
from catalog_sync.exceptions import SyncAlreadyRunningError
from catalog_sync.models import CatalogEntry, SyncRun
from catalog_sync.schemas.sync import InventorySyncResult
from catalog_sync.scheduler import SyncScheduler
from catalog_sync.services.scheduler_monitor import SchedulerMonitor
from catalog_sync.utils.schedule_policy import next_inventory_run

from conftest import TestingSessionLocal
from test_inventory_sync import FakeConnector

TZ = ZoneInfo("Africa/Johannesburg")


class BlockingConnector(FakeConnector):
    """Holds get_inventory open until released."""

    def __init__(self, inventory):
        super().__init__(inventory=inventory)
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def get_inventory(self, variant_id):
        self.entered.set()
        await self.release.wait()
        return await super().get_inventory(variant_id)


@pytest.fixture(autouse=True)
def jobs_enabled(monkeypatch):
    monkeypatch.setattr(settings, "timezone", "Africa/Johannesburg")
    monkeypatch.setattr(settings, "inventory_sync_enabled", True)
    monkeypatch.setattr(settings, "price_sync_enabled", True)


@pytest.fixture
def apscheduler():
    scheduler = MagicMock()
    scheduler.running = False
    scheduler.get_job.return_value = None
    return scheduler


@pytest.fixture
def monitor():
    return SchedulerMonitor()


def build(apscheduler, monitor, connector):
    return SyncScheduler(
        scheduler=apscheduler,
        session_factory=TestingSessionLocal,
        connector_factory=lambda: connector,
        monitor=monitor,
    )


def add_entry(db, name, variant_id):
    db.add(CatalogEntry(name=name, product_id=f"P-{variant_id}", variant_id=variant_id))
    db.commit()


class TestArming:
    def test_arm_adds_one_shot_date_job(self, apscheduler, monitor):
        scheduler = build(apscheduler, monitor, FakeConnector())
        now = datetime(2025, 6, 4, 10, 0, tzinfo=TZ)

        run_date = scheduler.arm("inventory", now)

        assert run_date == next_inventory_run(now)
        kwargs = apscheduler.add_job.call_args.kwargs
        assert isinstance(kwargs["trigger"], DateTrigger)
        assert kwargs["id"] == "inventory_sync_job"
        assert kwargs["args"] == ["inventory"]
        assert kwargs["replace_existing"] is True
        assert scheduler.timelines["inventory"].next_fire == run_date

    def test_disabled_job_is_not_armed(self, apscheduler, monitor, monkeypatch):
        monkeypatch.setattr(settings, "price_sync_enabled", False)
        apscheduler.get_job.return_value = object()
        scheduler = build(apscheduler, monitor, FakeConnector())

        assert scheduler.arm("price") is None

        apscheduler.add_job.assert_not_called()
        apscheduler.remove_job.assert_called_once_with("price_sync_job")

    def test_start_arms_enabled_timelines(self, apscheduler, monitor, monkeypatch):
        monkeypatch.setattr(settings, "inventory_sync_enabled", False)
        scheduler = build(apscheduler, monitor, FakeConnector())

        scheduler.start()

        ids = [c.kwargs["id"] for c in apscheduler.add_job.call_args_list]
        assert ids == ["price_sync_job"]
        apscheduler.start.assert_called_once()

    def test_status_reports_timelines(self, apscheduler, monitor):
        scheduler = build(apscheduler, monitor, FakeConnector())
        scheduler.arm("price")

        status = scheduler.status()

        timelines = {t.job_type: t for t in status.timelines}
        assert timelines["price"].state == "idle"
        assert timelines["price"].next_run_time is not None
        assert timelines["inventory"].next_run_time is None


class TestRunJob:
    @pytest.mark.asyncio
    async def test_manual_run_records_result_without_rearming(self, apscheduler, monitor, db_session):
        add_entry(db_session, "bear", "V1")
        connector = FakeConnector(inventory={"V1": [WarehouseInventory(warehouse_id="CN", supplier_inventory=30)]})
        scheduler = build(apscheduler, monitor, connector)

        result = await scheduler.run_job("inventory", sync_type="manual")

        assert isinstance(result, InventorySyncResult)
        assert result.updated == 1
        assert monitor.get_history("inventory")[-1].status == "success"
        assert db_session.query(SyncRun).one().trigger_type == "manual"
        apscheduler.add_job.assert_not_called()

    @pytest.mark.asyncio
    async def test_same_job_cannot_overlap(self, apscheduler, monitor, db_session):
        add_entry(db_session, "bear", "V1")
        connector = BlockingConnector(inventory={"V1": []})
        scheduler = build(apscheduler, monitor, connector)

        first = asyncio.create_task(scheduler.run_job("inventory"))
        await connector.entered.wait()
        assert scheduler.is_running("inventory")

        with pytest.raises(SyncAlreadyRunningError):
            await scheduler.run_job("inventory")

        connector.release.set()
        await first
        assert not scheduler.is_running("inventory")
        assert len(monitor.get_history("inventory")) == 1

    @pytest.mark.asyncio
    async def test_other_job_may_run_concurrently(self, apscheduler, monitor, db_session):
        add_entry(db_session, "bear", "V1")
        connector = BlockingConnector(inventory={"V1": []})
        scheduler = build(apscheduler, monitor, connector)

        first = asyncio.create_task(scheduler.run_job("inventory"))
        await connector.entered.wait()

        result = await scheduler.run_job("price")

        assert result.processed == 1
        connector.release.set()
        await first

    @pytest.mark.asyncio
    async def test_guard_is_cleared_after_failure(self, apscheduler, monitor):
        def broken_factory():
            raise RuntimeError("connector misconfigured")

        scheduler = SyncScheduler(
            scheduler=apscheduler,
            session_factory=TestingSessionLocal,
            connector_factory=broken_factory,
            monitor=monitor,
        )

        with pytest.raises(RuntimeError):
            await scheduler.run_job("price")

        assert not scheduler.is_running("price")
        record = monitor.get_history("price")[-1]
        assert record.status == "failed"
        assert record.error == "connector misconfigured"

    @pytest.mark.asyncio
    async def test_scheduled_run_rearms_after_failure(self, apscheduler, monitor):
        scheduler = build(apscheduler, monitor, FakeConnector())
        scheduler.run_job = AsyncMock(side_effect=RuntimeError("boom"))

        await scheduler._scheduled_run("price")

        scheduler.run_job.assert_awaited_once_with("price", sync_type="scheduled")
        assert apscheduler.add_job.call_args.kwargs["id"] == "price_sync_job"

    @pytest.mark.asyncio
    async def test_scheduled_run_skipped_when_busy_still_rearms(self, apscheduler, monitor):
        scheduler = build(apscheduler, monitor, FakeConnector())
        scheduler.timelines["inventory"].running = True

        await scheduler._scheduled_run("inventory")

        assert apscheduler.add_job.call_args.kwargs["id"] == "inventory_sync_job"
        assert monitor.get_history("inventory") == []
