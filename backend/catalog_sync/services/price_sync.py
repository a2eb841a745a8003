"""
Price synchronization.

Compares the supplier's current cost with the stored cost for each active
entry and recomputes the retail price whenever it moved. Stock is never
touched here.
"""

import logging
import time
from typing import Optional

import httpx

from catalog_sync.config import settings
from catalog_sync.connectors.base import BaseSupplierConnector
from catalog_sync.exceptions import SupplierError
from catalog_sync.models.catalog_entry import CatalogEntry
from catalog_sync.schemas.sync import PriceChange, PriceError, PriceSyncResult
from catalog_sync.services.catalog_store import CatalogStore
from catalog_sync.services.pricing_config import PricingConfig, calculate_retail_price, load_pricing_config

log = logging.getLogger(__name__)

ENTRY_ERRORS = (SupplierError, httpx.HTTPError, ValueError, KeyError, TypeError)


class InvalidSupplierPrice(ValueError):
    pass


def percent_change(old_cost: float, new_cost: float) -> float:
    """Magnitude of the change relative to the old cost; 0 when there is no old cost."""
    if old_cost <= 0:
        return 0.0
    return abs(new_cost - old_cost) / old_cost * 100


class PriceSyncService:
    """Re-prices active entries from the supplier's current cost."""

    def __init__(
        self,
        connector: BaseSupplierConnector,
        store: CatalogStore,
        report_threshold: Optional[float] = None,
    ):
        self.connector = connector
        self.store = store
        self.report_threshold = settings.price_change_report_threshold if report_threshold is None else report_threshold

    async def run(self, limit: Optional[int] = 50, sync_type: str = 'scheduled') -> PriceSyncResult:
        started = time.monotonic()
        log.info(f"Starting {sync_type} price sync (limit={limit})")

        sync_run = self.store.open_sync_run('price', sync_type)
        result = PriceSyncResult(sync_run_id=sync_run.id)

        try:
            entries = self.store.list_active_entries(limit=limit, require_product_id=True)
            pricing = load_pricing_config(self.store)
            log.info(
                f"Price sync #{sync_run.id}: {len(entries)} entries, "
                f"rate={pricing.currency_rate}, markup={pricing.markup}"
            )

            for entry in entries:
                result.processed += 1
                entry_id, name, product_id = entry.id, entry.name, entry.product_id
                try:
                    await self._sync_entry(entry, pricing, result)
                except ENTRY_ERRORS as e:
                    self.store.rollback()
                    log.error(f"Price sync failed for entry {entry_id} (product {product_id}): {e}")
                    result.errors.append(PriceError(
                        entry_id=entry_id,
                        name=name,
                        product_id=product_id,
                        error=str(e),
                    ))
        except Exception as e:
            log.error(f"Price sync #{sync_run.id} aborted: {e}", exc_info=True)
            self.store.rollback()
            result.duration_ms = int((time.monotonic() - started) * 1000)
            self.store.close_sync_run(
                sync_run,
                processed=result.processed,
                updated=result.synced,
                failed=len(result.errors),
                error_message=str(e) or type(e).__name__,
            )
            raise

        result.duration_ms = int((time.monotonic() - started) * 1000)
        self.store.close_sync_run(
            sync_run,
            processed=result.processed,
            updated=result.synced,
            failed=len(result.errors),
        )

        if result.price_changes:
            log.info(
                f"Price sync #{sync_run.id} completed: {result.synced} re-priced, "
                f"{len(result.price_changes)} significant changes in {result.duration_ms}ms"
            )
            for change in result.price_changes[:5]:
                direction = "up" if change.increased else "down"
                log.info(f"  {change.name}: {change.old_cost} -> {change.new_cost} ({direction} {change.change_percent}%)")
        else:
            log.info(f"Price sync #{sync_run.id} completed: {result.synced} re-priced, no significant changes in {result.duration_ms}ms")
        if result.errors:
            log.warning(f"Price sync #{sync_run.id}: {len(result.errors)} errors")
        return result

    async def _sync_entry(self, entry: CatalogEntry, pricing: PricingConfig, result: PriceSyncResult) -> None:
        details = await self.connector.get_product_details(entry.product_id)
        new_cost = round(float(details.sell_price or 0), 4)
        if new_cost <= 0:
            raise InvalidSupplierPrice("Invalid supplier price")

        old_cost = float(entry.cost_price or 0)
        if new_cost == old_cost:
            return

        change = percent_change(old_cost, new_cost)
        old_price = entry.retail_price
        new_price = calculate_retail_price(new_cost, pricing.currency_rate, pricing.markup)
        self.store.update_pricing(entry, new_cost, new_price)
        result.synced += 1

        if change > self.report_threshold:
            result.price_changes.append(PriceChange(
                entry_id=entry.id,
                name=entry.name,
                old_cost=old_cost,
                new_cost=new_cost,
                old_price=old_price,
                new_price=new_price,
                change_percent=round(change, 1),
                increased=new_cost > old_cost,
            ))
