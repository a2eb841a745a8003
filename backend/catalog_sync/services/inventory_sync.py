"""
Inventory synchronization.

Refreshes stock for active catalog entries, oldest first. Only stock held in
the supplier's own warehouses counts as available; factory stock needs lead
time and is ignored. Small aggregates are stored as zero so the storefront
shows the entry as out of stock instead of overselling.
"""

import logging
import time
from typing import Optional

import httpx

from catalog_sync.config import settings
from catalog_sync.connectors.base import BaseSupplierConnector
from catalog_sync.exceptions import MissingVariantError, SupplierError
from catalog_sync.models.catalog_entry import CatalogEntry
from catalog_sync.schemas.sync import EntryFailure, InventorySyncResult, UpdatedEntry
from catalog_sync.services.catalog_store import CatalogStore

log = logging.getLogger(__name__)

# Failures that only affect the entry being processed
ENTRY_ERRORS = (SupplierError, httpx.HTTPError, MissingVariantError, ValueError, KeyError, TypeError)


def apply_stock_floor(supplier_stock: int, floor: int) -> int:
    """Aggregates at or below the floor are reported as zero."""
    return 0 if supplier_stock <= floor else supplier_stock


class InventorySyncService:
    """Pulls per-warehouse stock for each entry and writes it back to the store."""

    def __init__(
        self,
        connector: BaseSupplierConnector,
        store: CatalogStore,
        stock_floor: Optional[int] = None,
    ):
        self.connector = connector
        self.store = store
        self.stock_floor = settings.stock_floor_threshold if stock_floor is None else stock_floor

    async def run(self, limit: Optional[int] = None, sync_type: str = 'scheduled') -> InventorySyncResult:
        started = time.monotonic()
        log.info(f"Starting {sync_type} inventory sync (limit={limit})")

        sync_run = self.store.open_sync_run('inventory', sync_type)
        result = InventorySyncResult(sync_run_id=sync_run.id)

        try:
            entries = self.store.list_active_entries(limit=limit)
            log.info(f"Inventory sync #{sync_run.id}: {len(entries)} entries to process")

            for entry in entries:
                result.processed += 1
                entry_id, product_id, variant_id = entry.id, entry.product_id, entry.variant_id
                try:
                    await self._sync_entry(entry, result)
                except ENTRY_ERRORS as e:
                    self.store.rollback()
                    log.error(f"Inventory sync failed for entry {entry_id} (product {product_id}): {e}")
                    result.failures.append(EntryFailure(
                        entry_id=entry_id,
                        product_id=product_id,
                        variant_id=variant_id,
                        reason=str(e),
                    ))
        except Exception as e:
            log.error(f"Inventory sync #{sync_run.id} aborted: {e}", exc_info=True)
            self.store.rollback()
            result.duration_ms = int((time.monotonic() - started) * 1000)
            self.store.close_sync_run(
                sync_run,
                processed=result.processed,
                updated=result.updated,
                failed=len(result.failures),
                error_message=str(e) or type(e).__name__,
            )
            raise

        result.duration_ms = int((time.monotonic() - started) * 1000)
        self.store.close_sync_run(
            sync_run,
            processed=result.processed,
            updated=result.updated,
            failed=len(result.failures),
        )
        log.info(
            f"Inventory sync #{sync_run.id} completed: {result.updated}/{result.processed} updated, "
            f"{len(result.failures)} failed in {result.duration_ms}ms"
        )
        return result

    async def _resolve_variant(self, entry: CatalogEntry) -> Optional[str]:
        """Take the first supplier variant and persist it. Lookup failures are not fatal here."""
        try:
            details = await self.connector.get_product_details(entry.product_id)
        except ENTRY_ERRORS as e:
            log.warning(f"Failed to fetch details for product {entry.product_id}: {e}")
            return None

        if not details.variants:
            return None
        variant_id = details.variants[0].vid
        self.store.set_variant_id(entry, variant_id)
        log.info(f"Resolved variant {variant_id} for entry {entry.id}")
        return variant_id

    async def _sync_entry(self, entry: CatalogEntry, result: InventorySyncResult) -> None:
        variant_id = entry.variant_id
        if not variant_id and entry.product_id:
            variant_id = await self._resolve_variant(entry)
        if not variant_id:
            raise MissingVariantError("Missing variant")

        inventory = await self.connector.get_inventory(variant_id)
        supplier_stock = sum(w.supplier_inventory for w in inventory)
        stock_quantity = apply_stock_floor(supplier_stock, self.stock_floor)

        self.store.update_stock(entry, stock_quantity, commit=False)
        self.store.replace_warehouse_stock(entry, inventory)

        result.updated += 1
        result.updated_entries.append(UpdatedEntry(
            entry_id=entry.id,
            product_id=entry.product_id,
            variant_id=variant_id,
            supplier_stock=supplier_stock,
            stock_quantity=stock_quantity,
            warehouses=len(inventory),
        ))
        log.debug(f"Entry {entry.id}: supplier stock {supplier_stock} -> stored {stock_quantity}")
