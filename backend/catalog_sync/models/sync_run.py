"""Sync run model for tracking synchronization executions."""

from sqlalchemy import Column, Integer, String, DateTime, Text, Index
from sqlalchemy.sql import func
from catalog_sync.database import Base


class SyncRun(Base):
    """Durable audit row for every inventory or price sync invocation."""

    __tablename__ = "sync_runs"

    id = Column(Integer, primary_key=True, index=True)

    # Execution details
    job_type = Column(String(50), nullable=False, index=True)  # 'inventory', 'price'
    trigger_type = Column(String(50), nullable=False, default='scheduled')  # 'scheduled', 'manual'
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=True)
    status = Column(String(50), nullable=False)  # 'running', 'completed', 'failed'

    # Statistics
    entries_processed = Column(Integer, default=0, nullable=False)
    entries_updated = Column(Integer, default=0, nullable=False)
    entries_failed = Column(Integer, default=0, nullable=False)

    # Error information
    error_message = Column(Text, nullable=True)

    # Timestamp
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index('idx_sync_runs_job_start', 'job_type', 'start_time'),
    )

    def __repr__(self):
        return f"<SyncRun(id={self.id}, job='{self.job_type}', trigger='{self.trigger_type}', status='{self.status}', updated={self.entries_updated})>"
