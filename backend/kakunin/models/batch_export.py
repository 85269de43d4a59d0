"""Batch export ledger models.

One BatchExportRun row per job execution and one BatchExportItem per exported
document. A run is written twice: created in-flight, then finalized.
"""

import enum
import uuid

from sqlalchemy import Column, Text, String, Integer, Date, Uuid, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import relationship

from .base import Base, UTCDateTime, utcnow, as_utc


class BatchExportStatus(str, enum.Enum):
    SUCCESS = "success"
    FAILED = "failed"


class BatchExportRun(Base):
    """Ledger row for one execution of the daily export.

    Attributes:
        executed_at: When the run started (UTC)
        export_date: JST calendar day that was exported
        csv_object_key: Object key of the CSV in the exports bucket
        document_count: Number of exported documents (== number of items)
        status: success or failed
        error_message: Failure message captured verbatim
    """
    __tablename__ = "batch_export_run"
    __table_args__ = (
        Index("ix_batch_export_run_executed_at", "executed_at"),
        CheckConstraint("status IN ('success', 'failed')", name="ck_batch_export_run_status"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    executed_at = Column(UTCDateTime, nullable=False, default=utcnow)
    export_date = Column(Date, nullable=False)
    csv_object_key = Column(Text, nullable=True)
    document_count = Column(Integer, nullable=False, default=0)
    status = Column(String(16), nullable=False, default=BatchExportStatus.SUCCESS.value)
    error_message = Column(Text, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    items = relationship("BatchExportItem", back_populates="run")

    def to_dict(self):
        return {
            "id": str(self.id),
            "executed_at": as_utc(self.executed_at).isoformat(),
            "export_date": self.export_date.isoformat(),
            "csv_object_key": self.csv_object_key,
            "document_count": self.document_count,
            "status": self.status,
            "error_message": self.error_message,
        }

    def __repr__(self):
        return f"<BatchExportRun(id={self.id}, date={self.export_date}, status={self.status})>"


class BatchExportItem(Base):
    __tablename__ = "batch_export_item"
    __table_args__ = (
        Index("ix_batch_export_item_run", "batch_export_id"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    batch_export_id = Column(Uuid, ForeignKey("batch_export_run.id", ondelete="RESTRICT"), nullable=False)
    document_id = Column(Uuid, ForeignKey("document.id", ondelete="RESTRICT"), nullable=False)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    run = relationship("BatchExportRun", back_populates="items")
