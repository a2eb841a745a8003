from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field


class EntryFailure(BaseModel):
    entry_id: int
    product_id: Optional[str] = None
    variant_id: Optional[str] = None
    reason: str


class UpdatedEntry(BaseModel):
    entry_id: int
    product_id: Optional[str] = None
    variant_id: Optional[str] = None
    supplier_stock: int  # Supplier-ready quantity before the floor is applied
    stock_quantity: int  # Value stored on the entry
    warehouses: int


class InventorySyncResult(BaseModel):
    processed: int = 0
    updated: int = 0
    failures: List[EntryFailure] = Field(default_factory=list)
    updated_entries: List[UpdatedEntry] = Field(default_factory=list)
    sync_run_id: Optional[int] = None
    duration_ms: int = 0


class PriceChange(BaseModel):
    entry_id: int
    name: str
    old_cost: float
    new_cost: float
    old_price: Optional[float] = None
    new_price: float
    change_percent: float  # Magnitude, rounded to one decimal
    increased: bool


class PriceError(BaseModel):
    entry_id: int
    name: Optional[str] = None
    product_id: Optional[str] = None
    error: str


class PriceSyncResult(BaseModel):
    synced: int = 0
    processed: int = 0
    price_changes: List[PriceChange] = Field(default_factory=list)
    errors: List[PriceError] = Field(default_factory=list)
    sync_run_id: Optional[int] = None
    duration_ms: int = 0


class ManualSyncRequest(BaseModel):
    limit: Optional[int] = Field(None, ge=1, le=1000, description="Maximum number of entries to process")


class SyncRunResponse(BaseModel):
    id: int
    job_type: str
    trigger_type: str
    start_time: datetime
    end_time: Optional[datetime] = None
    status: str
    entries_processed: int = 0
    entries_updated: int = 0
    entries_failed: int = 0
    error_message: Optional[str] = None

    class Config:
        from_attributes = True


class PaginatedSyncRuns(BaseModel):
    data: List[SyncRunResponse]
    total: int


class TimelineStatus(BaseModel):
    job_type: str
    enabled: bool
    state: str  # 'idle', 'running'
    next_run_time: Optional[datetime] = None
    last_started_at: Optional[datetime] = None
    last_finished_at: Optional[datetime] = None


class ScheduleStatus(BaseModel):
    scheduler_running: bool
    timezone: str
    timelines: List[TimelineStatus]


class WarehouseStockResponse(BaseModel):
    warehouse_id: Optional[str] = None
    warehouse_name: Optional[str] = None
    country_code: Optional[str] = None
    total_inventory: int
    supplier_inventory: int
    factory_inventory: int
    updated_at: Optional[datetime] = None


class InventorySnapshotEntry(BaseModel):
    entry_id: int
    name: str
    product_id: Optional[str] = None
    variant_id: Optional[str] = None
    stock_quantity: int
    warehouses: List[WarehouseStockResponse]
