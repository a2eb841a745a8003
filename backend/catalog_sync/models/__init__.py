"""Database models."""

from catalog_sync.models.catalog_entry import CatalogEntry
from catalog_sync.models.warehouse_stock import WarehouseStockRecord
from catalog_sync.models.sync_run import SyncRun
from catalog_sync.models.site_config import SiteConfig

__all__ = [
    "CatalogEntry",
    "WarehouseStockRecord",
    "SyncRun",
    "SiteConfig",
]
