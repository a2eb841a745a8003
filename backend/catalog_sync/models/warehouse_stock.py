"""Per-warehouse stock rows for catalog entries."""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from catalog_sync.database import Base


class WarehouseStockRecord(Base):
    """Stock for one (catalog entry, warehouse) pair. Replaced wholesale on every inventory pass."""

    __tablename__ = "warehouse_stock"

    id = Column(Integer, primary_key=True, index=True)
    catalog_entry_id = Column(Integer, ForeignKey("catalog_entries.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(100), nullable=True)
    variant_id = Column(String(100), nullable=True)

    # Warehouse
    warehouse_id = Column(String(100), nullable=True)
    warehouse_name = Column(String(255), nullable=True)
    country_code = Column(String(10), nullable=True)

    # Quantities
    total_inventory = Column(Integer, default=0, nullable=False)
    supplier_inventory = Column(Integer, default=0, nullable=False)  # Ready to ship
    factory_inventory = Column(Integer, default=0, nullable=False)  # Needs production lead time

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    catalog_entry = relationship("CatalogEntry", back_populates="warehouse_stock")

    def __repr__(self):
        return f"<WarehouseStockRecord(entry={self.catalog_entry_id}, warehouse='{self.warehouse_id}', ready={self.supplier_inventory})>"
