from typing import Optional
import logging

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query

from catalog_sync.connectors.supplier_connector import SupplierConnector, get_supplier_connector
from catalog_sync.exceptions import RateLimitError, SupplierError
from catalog_sync.schemas.supplier import SupplierProductPage, TokenStatusResponse

log = logging.getLogger(__name__)
router = APIRouter()


@router.get("/status", response_model=TokenStatusResponse)
async def get_supplier_status(connector: SupplierConnector = Depends(get_supplier_connector)):
    """Token lifecycle state. The token itself is never returned."""
    return connector.token_status()


@router.get("/products", response_model=SupplierProductPage)
async def search_supplier_products(
    keyword: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=200),
    connector: SupplierConnector = Depends(get_supplier_connector),
):
    """Search the supplier catalog. Results are cached for a few minutes."""
    try:
        return await connector.search_products(keyword=keyword, page=page, page_size=page_size)
    except RateLimitError as e:
        log.warning(f"Supplier product search rate limited: {e}")
        raise HTTPException(status_code=429, detail="Supplier rate limit reached, try again later")
    except (SupplierError, httpx.HTTPError) as e:
        log.error(f"Supplier product search failed: {e}")
        raise HTTPException(status_code=502, detail=f"Supplier request failed: {e}")
