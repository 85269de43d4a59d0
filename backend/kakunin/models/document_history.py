"""DocumentHistory model - append-only operation log per document.

Entries are ordered by creation time and are never updated or deleted.
"""

import enum
import uuid

from sqlalchemy import Column, String, Uuid, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import relationship

from .base import Base, PortableJSONB, UTCDateTime, utcnow, as_utc


class HistoryAction(str, enum.Enum):
    """Actions recorded in the document history."""
    UPLOADED = "uploaded"
    OCR_STARTED = "ocr_started"
    OCR_EXTRACTED = "ocr_extracted"
    OCR_FAILED = "ocr_failed"
    MODIFIED = "modified"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    REVIEWED = "reviewed"
    REVIEW_REJECTED = "review_rejected"

    @property
    def label(self) -> str:
        return HISTORY_ACTION_LABELS[self]


HISTORY_ACTION_LABELS = {
    HistoryAction.UPLOADED: "アップロード",
    HistoryAction.OCR_STARTED: "OCR開始",
    HistoryAction.OCR_EXTRACTED: "OCR抽出",
    HistoryAction.OCR_FAILED: "OCR失敗",
    HistoryAction.MODIFIED: "修正",
    HistoryAction.CONFIRMED: "確認済み",
    HistoryAction.REJECTED: "差戻し",
    HistoryAction.REVIEWED: "再審査済み",
    HistoryAction.REVIEW_REJECTED: "再審査差戻し",
}


class DocumentHistory(Base):
    __tablename__ = "document_history"
    __table_args__ = (
        Index("ix_document_history_document_created", "document_id", "created_at"),
        CheckConstraint(
            "action IN ({})".format(", ".join(f"'{a.value}'" for a in HistoryAction)),
            name="ck_document_history_action",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    document_id = Column(Uuid, ForeignKey("document.id", ondelete="RESTRICT"), nullable=False)
    operator_id = Column(Uuid, ForeignKey("user.id", ondelete="SET NULL"), nullable=True)
    action = Column(String(32), nullable=False)
    changes = Column(PortableJSONB, nullable=False, default=dict)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    document = relationship("Document", back_populates="history")

    def to_dict(self):
        return {
            "id": str(self.id),
            "document_id": str(self.document_id),
            "operator_id": str(self.operator_id) if self.operator_id else None,
            "action": self.action,
            "action_label": HistoryAction(self.action).label,
            "changes": self.changes or {},
            "created_at": as_utc(self.created_at).isoformat(),
        }
