"""Document SQLAlchemy model

Document represents one uploaded identity-document photograph.
Tracks the private object key of the image, its owner and its review status.
"""

import enum
import uuid

from sqlalchemy import Column, Text, String, Uuid, ForeignKey, CheckConstraint, Index
from sqlalchemy.orm import relationship

from ..domain.documents.document_status import DocumentStatus
from .base import Base, UTCDateTime, utcnow, as_utc


class DocumentType(str, enum.Enum):
    """Supported identity document layouts."""
    MYNUMBER_CARD = "mynumber_card"
    DRIVERS_LICENSE = "drivers_license"

    @property
    def label(self) -> str:
        return DOCUMENT_TYPE_LABELS[self]


DOCUMENT_TYPE_LABELS = {
    DocumentType.MYNUMBER_CARD: "マイナンバーカード",
    DocumentType.DRIVERS_LICENSE: "運転免許証",
}


def _in_list(values) -> str:
    return ", ".join(f"'{v.value}'" for v in values)


class Document(Base):
    """Document model representing an uploaded identity document image.

    ``image_object_key`` is a path inside the private documents bucket, never a
    URL. Clients only ever see short-lived presigned URLs minted from it.
    Documents are never hard-deleted.
    """
    __tablename__ = "document"
    __table_args__ = (
        Index("ix_document_owner_id", "owner_id"),
        Index("ix_document_status_updated_at", "status", "updated_at"),
        CheckConstraint(
            f"document_type IN ({_in_list(DocumentType)})",
            name="ck_document_type",
        ),
        CheckConstraint(
            f"status IN ({_in_list(DocumentStatus)})",
            name="ck_document_status",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id = Column(Uuid, ForeignKey("user.id", ondelete="RESTRICT"), nullable=False)
    document_type = Column(String(32), nullable=False)
    status = Column(String(32), nullable=False, default=DocumentStatus.UPLOADED.value)
    image_object_key = Column(Text, nullable=False)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow)

    # Relationships
    owner = relationship("User", back_populates="documents")
    extracted_data = relationship(
        "ExtractedData",
        back_populates="document",
        uselist=False,
    )
    history = relationship(
        "DocumentHistory",
        back_populates="document",
        order_by="DocumentHistory.created_at",
    )

    @property
    def status_enum(self) -> DocumentStatus:
        return DocumentStatus(self.status)

    @property
    def type_label(self) -> str:
        return DocumentType(self.document_type).label

    def to_dict(self):
        """Convert document to dictionary representation"""
        return {
            "id": str(self.id),
            "owner_id": str(self.owner_id),
            "document_type": self.document_type,
            "document_type_label": self.type_label,
            "status": self.status,
            "image_object_key": self.image_object_key,
            "created_at": as_utc(self.created_at).isoformat() if self.created_at else None,
            "updated_at": as_utc(self.updated_at).isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Document(id={self.id}, type={self.document_type}, status={self.status})>"
