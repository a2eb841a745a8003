"""Operator-tunable pricing parameters and the retail price formula."""

import logging
from typing import Optional

from pydantic import BaseModel

from catalog_sync.config import settings
from catalog_sync.services.catalog_store import CatalogStore

log = logging.getLogger(__name__)

CURRENCY_RATE_KEY = "currency_rate"
PRICE_MARKUP_KEY = "price_markup"


class PricingConfig(BaseModel):
    currency_rate: float
    markup: float


def calculate_retail_price(cost_price: float, currency_rate: float, markup: float) -> float:
    """Supplier cost -> local currency (rounded to cents) -> marked-up retail (rounded to cents)."""
    local_cost = round(cost_price * currency_rate, 2)
    return round(local_cost * markup, 2)


def _read_positive(store: CatalogStore, key: str, fallback: float) -> float:
    raw = store.get_config_value(key)
    if raw is None:
        return fallback
    try:
        value = float(raw)
    except ValueError:
        log.warning(f"site_config '{key}' is not a number ({raw!r}), using default {fallback}")
        return fallback
    if value <= 0:
        log.warning(f"site_config '{key}' must be positive (got {value}), using default {fallback}")
        return fallback
    return value


def load_pricing_config(store: CatalogStore) -> PricingConfig:
    """Read pricing parameters from site_config, falling back to settings."""
    return PricingConfig(
        currency_rate=_read_positive(store, CURRENCY_RATE_KEY, settings.currency_rate),
        markup=_read_positive(store, PRICE_MARKUP_KEY, settings.price_markup),
    )


def save_pricing_config(
    store: CatalogStore,
    currency_rate: Optional[float] = None,
    markup: Optional[float] = None,
) -> PricingConfig:
    """Persist whichever parameters are given and return the effective config."""
    if currency_rate is not None:
        store.set_config_value(CURRENCY_RATE_KEY, str(currency_rate), commit=False)
    if markup is not None:
        store.set_config_value(PRICE_MARKUP_KEY, str(markup), commit=False)
    store.db.commit()
    config = load_pricing_config(store)
    log.info(f"Pricing config updated: rate={config.currency_rate}, markup={config.markup}")
    return config
