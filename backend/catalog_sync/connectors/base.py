from abc import ABC, abstractmethod
from typing import Dict, Any, List, Optional

from pydantic import BaseModel, Field


class ProductVariant(BaseModel):
    """A sellable configuration of a supplier product."""
    vid: str = Field(..., description="External variant id")
    sku: Optional[str] = Field(None, description="Supplier SKU of the variant")
    name: Optional[str] = Field(None, description="Variant display name")
    sell_price: Optional[float] = Field(None, description="Variant cost in supplier currency")


class ProductDetail(BaseModel):
    """Normalized product detail as returned by the supplier."""
    product_id: str = Field(..., description="External product id")
    name: Optional[str] = Field(None, description="Product name")
    sell_price: Optional[float] = Field(None, description="Product cost in supplier currency")
    image_url: Optional[str] = Field(None, description="Primary product image")
    variants: List[ProductVariant] = Field([], description="Sellable variants, supplier order preserved")


class WarehouseInventory(BaseModel):
    """Stock of one variant in one supplier warehouse."""
    warehouse_id: Optional[str] = Field(None, description="Supplier warehouse/area id")
    warehouse_name: Optional[str] = Field(None, description="Human readable warehouse name")
    country_code: Optional[str] = Field(None, description="ISO country code of the warehouse")
    total_inventory: int = Field(0, description="Total quantity across stock types")
    supplier_inventory: int = Field(0, description="Quantity ready to ship from the supplier's own stock")
    factory_inventory: int = Field(0, description="Quantity that needs production lead time")


class BaseSupplierConnector(ABC):
    """Abstract Base Class for supplier connectors."""

    @abstractmethod
    async def get_product_details(self, product_id: str) -> ProductDetail:
        """Fetches product details including variants."""
        pass

    @abstractmethod
    async def get_inventory(self, variant_id: str) -> List[WarehouseInventory]:
        """Fetches per-warehouse stock for a variant."""
        pass

    @abstractmethod
    async def search_products(self, keyword: Optional[str] = None, page: int = 1, page_size: int = 20) -> Dict[str, Any]:
        """Searches the supplier catalog."""
        pass

    @abstractmethod
    async def validate_connection(self) -> bool:
        """Validates the connection to the supplier."""
        pass
