"""SQLAlchemy-backed catalog store used by the sync engines."""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from catalog_sync.connectors.base import WarehouseInventory
from catalog_sync.models.catalog_entry import CatalogEntry
from catalog_sync.models.site_config import SiteConfig
from catalog_sync.models.sync_run import SyncRun
from catalog_sync.models.warehouse_stock import WarehouseStockRecord

log = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CatalogStore:
    """
    Row-level reads and writes against the catalog tables.

    Mutating methods commit by default so a failure on one entry never rolls
    back the entries written before it. Pass `commit=False` to group writes.
    """

    def __init__(self, db: Session, now: Optional[Callable[[], datetime]] = None):
        self.db = db
        self.now = now or _utcnow

    # Catalog entries

    def list_active_entries(self, limit: Optional[int] = None, require_product_id: bool = False) -> List[CatalogEntry]:
        """Active entries, least recently updated first."""
        query = self.db.query(CatalogEntry).filter(CatalogEntry.is_active == True)
        if require_product_id:
            query = query.filter(CatalogEntry.product_id.isnot(None), CatalogEntry.product_id != "")
        query = query.order_by(CatalogEntry.updated_at.asc(), CatalogEntry.id.asc())
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def set_variant_id(self, entry: CatalogEntry, variant_id: str, commit: bool = True) -> None:
        entry.variant_id = variant_id
        entry.updated_at = self.now()
        if commit:
            self.db.commit()

    def update_stock(self, entry: CatalogEntry, stock_quantity: int, commit: bool = True) -> None:
        entry.stock_quantity = stock_quantity
        entry.is_active = True
        entry.updated_at = self.now()
        if commit:
            self.db.commit()

    def replace_warehouse_stock(self, entry: CatalogEntry, inventory: List[WarehouseInventory], commit: bool = True) -> None:
        """Delete the entry's warehouse rows and insert the given set."""
        self.db.query(WarehouseStockRecord).filter(
            WarehouseStockRecord.catalog_entry_id == entry.id
        ).delete(synchronize_session=False)

        now = self.now()
        for warehouse in inventory:
            self.db.add(WarehouseStockRecord(
                catalog_entry_id=entry.id,
                product_id=entry.product_id,
                variant_id=entry.variant_id,
                warehouse_id=warehouse.warehouse_id,
                warehouse_name=warehouse.warehouse_name,
                country_code=warehouse.country_code,
                total_inventory=warehouse.total_inventory,
                supplier_inventory=warehouse.supplier_inventory,
                factory_inventory=warehouse.factory_inventory,
                updated_at=now,
            ))
        if commit:
            self.db.commit()

    def update_pricing(self, entry: CatalogEntry, cost_price: float, retail_price: float, commit: bool = True) -> None:
        entry.cost_price = cost_price
        entry.retail_price = retail_price
        entry.updated_at = self.now()
        if commit:
            self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    def inventory_snapshot(self) -> List[Dict[str, Any]]:
        """Per-entry warehouse breakdown for every active entry."""
        entries = (
            self.db.query(CatalogEntry)
            .filter(CatalogEntry.is_active == True)
            .order_by(CatalogEntry.id.asc())
            .all()
        )
        snapshot = []
        for entry in entries:
            warehouses = sorted(entry.warehouse_stock, key=lambda w: w.warehouse_id or "")
            snapshot.append({
                "entry_id": entry.id,
                "name": entry.name,
                "product_id": entry.product_id,
                "variant_id": entry.variant_id,
                "stock_quantity": entry.stock_quantity,
                "warehouses": [
                    {
                        "warehouse_id": w.warehouse_id,
                        "warehouse_name": w.warehouse_name,
                        "country_code": w.country_code,
                        "total_inventory": w.total_inventory,
                        "supplier_inventory": w.supplier_inventory,
                        "factory_inventory": w.factory_inventory,
                        "updated_at": w.updated_at,
                    }
                    for w in warehouses
                ],
            })
        return snapshot

    # Sync runs

    def open_sync_run(self, job_type: str, trigger_type: str) -> SyncRun:
        sync_run = SyncRun(
            job_type=job_type,
            trigger_type=trigger_type,
            start_time=self.now(),
            status='running',
        )
        self.db.add(sync_run)
        self.db.commit()
        log.info(f"Opened {job_type} sync run #{sync_run.id} ({trigger_type})")
        return sync_run

    def close_sync_run(
        self,
        sync_run: SyncRun,
        processed: int,
        updated: int,
        failed: int,
        error_message: Optional[str] = None,
    ) -> SyncRun:
        sync_run.end_time = self.now()
        sync_run.status = 'failed' if error_message else 'completed'
        sync_run.entries_processed = processed
        sync_run.entries_updated = updated
        sync_run.entries_failed = failed
        sync_run.error_message = error_message
        self.db.commit()
        log.info(f"Closed {sync_run.job_type} sync run #{sync_run.id}: {sync_run.status}")
        return sync_run

    def _sync_run_query(self, job_type: Optional[str] = None, status: Optional[str] = None):
        query = self.db.query(SyncRun)
        if job_type:
            query = query.filter(SyncRun.job_type == job_type)
        if status:
            query = query.filter(SyncRun.status == status)
        return query

    def list_sync_runs(
        self,
        job_type: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[SyncRun]:
        query = self._sync_run_query(job_type, status)
        return query.order_by(SyncRun.start_time.desc(), SyncRun.id.desc()).offset(offset).limit(limit).all()

    def count_sync_runs(self, job_type: Optional[str] = None, status: Optional[str] = None) -> int:
        return self._sync_run_query(job_type, status).count()

    # Site config

    def get_config_value(self, key: str) -> Optional[str]:
        row = self.db.query(SiteConfig).filter(SiteConfig.key == key).first()
        return row.value if row else None

    def set_config_value(self, key: str, value: str, commit: bool = True) -> None:
        row = self.db.query(SiteConfig).filter(SiteConfig.key == key).first()
        if row is None:
            row = SiteConfig(key=key, value=value)
            self.db.add(row)
        else:
            row.value = value
        row.updated_at = self.now()
        if commit:
            self.db.commit()
