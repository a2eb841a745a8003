from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel


class TokenStatusResponse(BaseModel):
    has_access_token: bool
    access_expires_at: Optional[datetime] = None
    access_seconds_remaining: Optional[int] = None
    has_refresh_token: bool
    refresh_expires_at: Optional[datetime] = None
    last_refreshed_at: Optional[datetime] = None


class SupplierProduct(BaseModel):
    product_id: Optional[str] = None
    name: Optional[str] = None
    sell_price: Optional[float] = None
    image_url: Optional[str] = None


class SupplierProductPage(BaseModel):
    page: int
    page_size: int
    total: int
    products: List[SupplierProduct]
