import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from catalog_sync.database import get_db
from catalog_sync.schemas.pricing import PricingResponse, PricingUpdate
from catalog_sync.services.catalog_store import CatalogStore
from catalog_sync.services.pricing_config import load_pricing_config, save_pricing_config

log = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=PricingResponse)
async def get_pricing(db: Session = Depends(get_db)):
    """Effective currency rate and markup used by the next price sync."""
    config = load_pricing_config(CatalogStore(db))
    return PricingResponse(currency_rate=config.currency_rate, markup=config.markup)


@router.put("", response_model=PricingResponse)
async def update_pricing(update: PricingUpdate, db: Session = Depends(get_db)):
    """Retune pricing. Takes effect on the next price sync."""
    config = save_pricing_config(CatalogStore(db), currency_rate=update.currency_rate, markup=update.markup)
    return PricingResponse(currency_rate=config.currency_rate, markup=config.markup)
