"""Catalog entry model for locally cached supplier products."""

from sqlalchemy import Column, Integer, String, Numeric, Boolean, DateTime, Text, Index
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from catalog_sync.database import Base


class CatalogEntry(Base):
    """A locally stored product/offer synchronized against the supplier."""

    __tablename__ = "catalog_entries"

    id = Column(Integer, primary_key=True, index=True)

    # Supplier identity
    product_id = Column(String(100), nullable=True, index=True)  # External product id (pid)
    variant_id = Column(String(100), nullable=True)  # External variant id (vid), resolved lazily

    # Descriptive fields
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    image_url = Column(String(500), nullable=True)

    # Pricing: cost in supplier currency, retail in local currency
    cost_price = Column(Numeric(12, 4, asdecimal=False), nullable=True)
    retail_price = Column(Numeric(12, 2, asdecimal=False), nullable=True)

    # Availability
    is_active = Column(Boolean, default=True, nullable=False)
    stock_quantity = Column(Integer, default=0, nullable=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    warehouse_stock = relationship(
        "WarehouseStockRecord", back_populates="catalog_entry", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index('idx_catalog_entries_active_updated', 'is_active', 'updated_at'),
    )

    def __repr__(self):
        return f"<CatalogEntry(id={self.id}, product_id='{self.product_id}', stock={self.stock_quantity})>"
