"""Key/value configuration rows operators can change without a deploy."""

from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from catalog_sync.database import Base


class SiteConfig(Base):
    """Runtime-tunable setting, e.g. currency_rate or price_markup."""

    __tablename__ = "site_config"

    key = Column(String(100), primary_key=True)
    value = Column(String(255), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<SiteConfig(key='{self.key}', value='{self.value}')>"
