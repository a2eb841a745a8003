import logging
from functools import lru_cache
from typing import Dict, Any, List, Optional

import httpx

from catalog_sync.config import settings
from catalog_sync.connectors.base import BaseSupplierConnector, ProductDetail, ProductVariant, WarehouseInventory
from catalog_sync.connectors.gateway import SupplierGateway
from catalog_sync.connectors.state import GatewayState
from catalog_sync.connectors.token_manager import TokenManager
from catalog_sync.exceptions import SupplierError

log = logging.getLogger(__name__)


def _to_int(value: Any) -> int:
    """Supplier quantities arrive as ints, numeric strings or null."""
    if value in (None, ""):
        return 0
    return int(float(value))


def _to_price(value: Any) -> Optional[float]:
    """
    Supplier prices can be numbers, numeric strings or ranges like '1.20 -- 3.40'.
    Ranges resolve to their lower bound.
    """
    if value in (None, ""):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).split("--")[0].split("-")[0].strip()
    return float(text)


def _first(raw: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return None


def _records(data: Any, what: str) -> List[Dict[str, Any]]:
    """Expect a list of objects from the supplier, or nothing at all."""
    if data is None:
        return []
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        raise SupplierError(None, data, message=f"Unexpected {what} payload from supplier: {type(data).__name__}")
    return data


class SupplierConnector(BaseSupplierConnector):
    """
    Typed access to the supplier's product and stock endpoints.

    All HTTP goes through the SupplierGateway, so every method here spends
    throttled quota. Supplier field names are normalized into pydantic models.
    """

    def __init__(self, gateway: SupplierGateway, token_manager: TokenManager):
        self.gateway = gateway
        self.token_manager = token_manager

    async def get_product_details(self, product_id: str) -> ProductDetail:
        data = await self.gateway.call("GET", "/product/query", query={"pid": product_id})
        if not isinstance(data, dict):
            raise SupplierError(None, data, message=f"Product {product_id} not found at supplier")

        variants = [
            ProductVariant(
                vid=str(v["vid"]),
                sku=v.get("variantSku"),
                name=_first(v, "variantNameEn", "variantName"),
                sell_price=_to_price(v.get("variantSellPrice")),
            )
            for v in _records(data.get("variants"), f"variant list for product {product_id}")
            if v.get("vid")
        ]
        return ProductDetail(
            product_id=str(data.get("pid") or product_id),
            name=_first(data, "productNameEn", "productName"),
            sell_price=_to_price(data.get("sellPrice")),
            image_url=data.get("productImage"),
            variants=variants,
        )

    async def get_inventory(self, variant_id: str) -> List[WarehouseInventory]:
        data = await self.gateway.call("GET", "/product/stock/queryByVid", query={"vid": variant_id})
        inventory = []
        for raw in _records(data, f"stock list for variant {variant_id}"):
            warehouse_id = _first(raw, "areaId", "warehouseId")
            inventory.append(WarehouseInventory(
                warehouse_id=str(warehouse_id) if warehouse_id is not None else None,
                warehouse_name=_first(raw, "areaEn", "warehouseName"),
                country_code=raw.get("countryCode"),
                total_inventory=_to_int(_first(raw, "totalInventoryNum", "totalInventory", "storageNum")),
                supplier_inventory=_to_int(_first(raw, "cjInventoryNum", "cjInventory")),
                factory_inventory=_to_int(_first(raw, "factoryInventoryNum", "factoryInventory")),
            ))
        log.debug(f"Variant {variant_id}: stock in {len(inventory)} warehouse(s)")
        return inventory

    async def search_products(self, keyword: Optional[str] = None, page: int = 1, page_size: int = 20) -> Dict[str, Any]:
        query: Dict[str, Any] = {"pageNum": page, "pageSize": page_size}
        if keyword:
            query["productNameEn"] = keyword
        data = await self.gateway.call("GET", "/product/list", query=query, use_cache=True)
        data = data or {}
        return {
            "page": data.get("pageNum", page),
            "page_size": data.get("pageSize", page_size),
            "total": data.get("total", 0),
            "products": [
                {
                    "product_id": p.get("pid"),
                    "name": _first(p, "productNameEn", "productName"),
                    "sell_price": _to_price(p.get("sellPrice")),
                    "image_url": p.get("productImage"),
                }
                for p in data.get("list") or []
            ],
        }

    async def validate_connection(self) -> bool:
        try:
            await self.token_manager.get_access_token()
            return True
        except (SupplierError, httpx.HTTPError) as e:
            log.error(f"Supplier connection validation failed: {e}")
            return False

    def token_status(self) -> Dict[str, Any]:
        return self.token_manager.status()

    async def close(self) -> None:
        await self.gateway.close()


def build_supplier_connector(state: Optional[GatewayState] = None) -> SupplierConnector:
    """Wire state, token manager and gateway around one shared HTTP client."""
    state = state or GatewayState()
    client = httpx.AsyncClient(
        base_url=settings.supplier_base_url.rstrip("/"),
        timeout=settings.supplier_http_timeout,
        headers={"Content-Type": "application/json"},
    )
    token_manager = TokenManager(
        state,
        client,
        email=settings.supplier_email,
        api_key=settings.supplier_api_key,
        access_token=settings.supplier_access_token,
        access_token_expires_at=settings.supplier_access_token_expires_at,
    )
    gateway = SupplierGateway(state, token_manager, client)
    log.info(f"Supplier connector initialized with base URL: {settings.supplier_base_url}")
    return SupplierConnector(gateway, token_manager)


@lru_cache()
def get_supplier_connector() -> SupplierConnector:
    """Process-wide connector, so every job shares one GatewayState."""
    return build_supplier_connector()
