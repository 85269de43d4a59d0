"""Daily batch export of confirmed documents.

One run exports every document that is `confirmed` and whose `updated_at`
falls inside a JST calendar day. The run writes a single CSV object named
after that day (overwriting any earlier one) and records a ledger row plus
one item per exported document. The ledger, not the CSV, says whether a
day's export can be trusted.

Only counts and object keys are logged; CSV content is personal data.
"""

import csv
import io
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy.orm import Session, selectinload

from ..domain.documents.document_status import DocumentStatus
from ..domain.documents.ports.object_storage_port import ObjectStoragePort
from ..models.base import as_utc, utcnow
from ..models.batch_export import BatchExportItem, BatchExportRun, BatchExportStatus
from ..models.document import Document, DocumentType
from ..models.document_history import DocumentHistory, HistoryAction
from ..observability.metrics import batch_export_documents_total, batch_export_runs_total
from ..storage import get_export_storage

logger = logging.getLogger(__name__)

JST = timezone(timedelta(hours=9), "JST")

CSV_HEADER = (
    "案件ID",
    "書類種別",
    "氏名",
    "生年月日",
    "住所",
    "画像オブジェクトキー",
    "確認者ID",
    "確認日時",
    "OCR実行日時",
)

CSV_CONTENT_TYPE = "text/csv; charset=utf-8"


@dataclass(frozen=True)
class DayWindow:
    """A JST calendar day as a half-open UTC interval [start, end)."""
    export_date: date
    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= as_utc(moment) < self.end


@dataclass
class BatchExportResult:
    batch_export_id: UUID
    success: bool
    document_count: int
    csv_path: Optional[str] = None
    error: Optional[str] = None

    def to_response(self) -> dict:
        if self.success:
            return {
                "success": True,
                "batch_export_id": str(self.batch_export_id),
                "document_count": self.document_count,
                "csv_path": self.csv_path,
            }
        return {
            "success": False,
            "batch_export_id": str(self.batch_export_id),
            "error": self.error,
        }


def jst_day_window(now: Optional[datetime] = None, target_date: Optional[date] = None) -> DayWindow:
    """Return the JST day containing now (or target_date) in UTC.

    Examples:
        >>> w = jst_day_window(target_date=date(2025, 3, 1))
        >>> w.start.isoformat(), w.end.isoformat()
        ('2025-02-28T15:00:00+00:00', '2025-03-01T15:00:00+00:00')
    """
    if target_date is None:
        now = as_utc(now) if now is not None else utcnow()
        target_date = now.astimezone(JST).date()

    start_jst = datetime.combine(target_date, time.min, tzinfo=JST)
    end_jst = start_jst + timedelta(days=1)
    return DayWindow(
        export_date=target_date,
        start=start_jst.astimezone(timezone.utc),
        end=end_jst.astimezone(timezone.utc),
    )


def previous_jst_day(now: Optional[datetime] = None) -> date:
    """The JST day before the one containing now.

    The day the scheduled run exports: it fires just after JST midnight.

    Examples:
        >>> previous_jst_day(datetime(2025, 3, 1, 15, 5, tzinfo=timezone.utc))
        datetime.date(2025, 3, 1)
    """
    return jst_day_window(now).export_date - timedelta(days=1)


def csv_object_key(export_date: date) -> str:
    return f"{export_date.isoformat()}.csv"


def render_csv(rows: Iterable[Sequence[str]]) -> str:
    """Render header and rows with every field quoted and quotes doubled.

    None renders as an empty quoted string. Rows are joined by "\\n" with no
    trailing newline.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for row in rows:
        writer.writerow(["" if value is None else str(value) for value in row])
    return buffer.getvalue().rstrip("\n")


def latest_confirmation(history: Iterable[DocumentHistory]) -> Optional[DocumentHistory]:
    """Most recent `confirmed` entry, or None."""
    confirmations = [h for h in history if h.action == HistoryAction.CONFIRMED.value]
    if not confirmations:
        return None
    return max(confirmations, key=lambda h: as_utc(h.created_at))


def _iso(value: Optional[datetime]) -> str:
    return as_utc(value).isoformat() if value else ""


def build_row(document: Document) -> List[str]:
    data = document.extracted_data
    confirmation = latest_confirmation(document.history)
    return [
        str(document.id),
        DocumentType(document.document_type).label,
        data.name if data else "",
        data.birth_date.isoformat() if data and data.birth_date else "",
        data.address if data else "",
        document.image_object_key,
        str(confirmation.operator_id) if confirmation and confirmation.operator_id else "",
        _iso(confirmation.created_at) if confirmation else "",
        _iso(data.ocr_executed_at) if data else "",
    ]


def select_confirmed_documents(db: Session, window: DayWindow) -> List[Document]:
    return (
        db.query(Document)
        .options(selectinload(Document.extracted_data), selectinload(Document.history))
        .filter(
            Document.status == DocumentStatus.CONFIRMED.value,
            Document.updated_at >= window.start,
            Document.updated_at < window.end,
        )
        .order_by(Document.updated_at, Document.id)
        .all()
    )


def _open_run(db: Session, window: DayWindow, executed_at: datetime) -> BatchExportRun:
    run = BatchExportRun(
        executed_at=executed_at,
        export_date=window.export_date,
        document_count=0,
        status=BatchExportStatus.SUCCESS.value,
    )
    db.add(run)
    db.commit()
    db.refresh(run)
    return run


def _fail_run(db: Session, run_id: UUID, message: str) -> None:
    db.rollback()
    run = db.get(BatchExportRun, run_id)
    run.status = BatchExportStatus.FAILED.value
    run.error_message = message
    db.commit()


async def run_batch_export(
    db: Session,
    storage: Optional[ObjectStoragePort] = None,
    now: Optional[datetime] = None,
    target_date: Optional[date] = None,
) -> BatchExportResult:
    """Export one JST day's confirmed documents.

    Never raises for export failures: they are recorded on the run row and
    returned as an unsuccessful result.

    Args:
        db: Database session (committed by this function)
        storage: Batch export bucket adapter; built from settings when None
        now: Execution time, defaults to the current time
        target_date: JST day to export, defaults to the day containing now
    """
    executed_at = as_utc(now) if now is not None else utcnow()
    window = jst_day_window(executed_at, target_date)
    run = _open_run(db, window, executed_at)
    run_id = run.id
    key = csv_object_key(window.export_date)

    try:
        if storage is None:
            storage = get_export_storage()

        documents = select_confirmed_documents(db, window)
        logger.info(
            f"Batch export selected {len(documents)} documents for {window.export_date}",
            extra={"batch_export_id": run_id},
        )

        content = render_csv(build_row(document) for document in documents)
        await storage.put_object(key, content.encode("utf-8"), CSV_CONTENT_TYPE)

        for document in documents:
            db.add(BatchExportItem(batch_export_id=run_id, document_id=document.id))

        run.document_count = len(documents)
        run.csv_object_key = key
        run.status = BatchExportStatus.SUCCESS.value
        db.commit()

    except Exception as e:
        message = str(e) or type(e).__name__
        logger.error(
            f"Batch export failed: {type(e).__name__}",
            extra={"batch_export_id": run_id},
            exc_info=True,
        )
        _fail_run(db, run_id, message)
        batch_export_runs_total.labels(status=BatchExportStatus.FAILED.value).inc()
        return BatchExportResult(batch_export_id=run_id, success=False, document_count=0, error=message)

    batch_export_runs_total.labels(status=BatchExportStatus.SUCCESS.value).inc()
    batch_export_documents_total.inc(len(documents))
    logger.info(
        f"Batch export completed: {len(documents)} documents -> {key}",
        extra={"batch_export_id": run_id},
    )
    return BatchExportResult(
        batch_export_id=run_id,
        success=True,
        document_count=len(documents),
        csv_path=key,
    )


def list_runs(db: Session, limit: int = 50) -> List[BatchExportRun]:
    return (
        db.query(BatchExportRun)
        .order_by(BatchExportRun.executed_at.desc())
        .limit(limit)
        .all()
    )


def run_items(db: Session, run_id: UUID) -> List[Tuple[UUID]]:
    return (
        db.query(BatchExportItem.document_id)
        .filter(BatchExportItem.batch_export_id == run_id)
        .all()
    )
