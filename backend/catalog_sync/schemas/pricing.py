from typing import Optional
from pydantic import BaseModel, Field


class PricingResponse(BaseModel):
    currency_rate: float
    markup: float


class PricingUpdate(BaseModel):
    """Pricing update - omitted fields keep their current value."""
    currency_rate: Optional[float] = Field(None, gt=0, description="Supplier currency -> local currency rate")
    markup: Optional[float] = Field(None, gt=0, description="Multiplier applied to the converted cost")
