"""SQLAlchemy models for the Kakunin backend."""

from .base import Base, PortableJSONB, UTCDateTime
from .user import User
from .document import Document, DocumentType, DOCUMENT_TYPE_LABELS
from .extracted_data import ExtractedData
from .document_history import DocumentHistory, HistoryAction, HISTORY_ACTION_LABELS
from .batch_export import BatchExportRun, BatchExportItem, BatchExportStatus

__all__ = [
    "Base",
    "PortableJSONB",
    "UTCDateTime",
    "User",
    "Document",
    "DocumentType",
    "DOCUMENT_TYPE_LABELS",
    "ExtractedData",
    "DocumentHistory",
    "HistoryAction",
    "HISTORY_ACTION_LABELS",
    "BatchExportRun",
    "BatchExportItem",
    "BatchExportStatus",
]
