"""ExtractedData model - the reviewable fields of one document.

Exactly one row exists per document. It is created empty at upload time and
overwritten (never appended) by every OCR attempt or manual edit.
"""

import uuid

from sqlalchemy import Column, Text, Date, Uuid, ForeignKey

from sqlalchemy.orm import relationship

from .base import Base, UTCDateTime, utcnow, as_utc


class ExtractedData(Base):
    __tablename__ = "extracted_data"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    document_id = Column(
        Uuid,
        ForeignKey("document.id", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
    )
    name = Column(Text, nullable=False, default="")
    birth_date = Column(Date, nullable=True)
    address = Column(Text, nullable=False, default="")
    ocr_executed_at = Column(UTCDateTime, nullable=True)
    ocr_error_message = Column(Text, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow)

    document = relationship("Document", back_populates="extracted_data")

    def fields(self) -> dict:
        """Reviewable fields as plain JSON values."""
        return {
            "name": self.name or "",
            "birth_date": self.birth_date.isoformat() if self.birth_date else None,
            "address": self.address or "",
        }

    def to_dict(self):
        return {
            **self.fields(),
            "ocr_executed_at": as_utc(self.ocr_executed_at).isoformat() if self.ocr_executed_at else None,
            "ocr_error_message": self.ocr_error_message,
        }
