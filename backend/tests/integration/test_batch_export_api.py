"""Integration tests for the daily batch export (service and ADMIN endpoints)."""

import csv
import io
from datetime import date, datetime, timezone

import pytest

from kakunin.batch_export import service as batch_export_service
from kakunin.batch_export.service import CSV_HEADER, previous_jst_day, run_batch_export, run_items
from kakunin.domain.documents.ports.object_storage_port import StorageError
from kakunin.models import BatchExportItem, BatchExportRun


pytestmark = pytest.mark.integration


EXPORT_URL = "/api/v1/batch-exports"


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def read_csv(storage, key):
    return list(csv.reader(io.StringIO(storage.objects[key].decode("utf-8"))))


class TestJstDayBoundary:
    """A document confirmed at 23:59:58 JST belongs to that day, 00:00:01 JST to the next."""

    async def test_day_boundary(self, db_session, operator_user, make_document, export_storage):
        late = make_document(operator_user, status="confirmed", updated_at=utc(2025, 3, 1, 14, 59, 58))
        early = make_document(operator_user, status="confirmed", updated_at=utc(2025, 3, 1, 15, 0, 1))

        first = await run_batch_export(db_session, storage=export_storage, now=utc(2025, 3, 1, 14, 59, 59))
        second = await run_batch_export(db_session, storage=export_storage, now=utc(2025, 3, 2, 14, 59, 0))

        assert first.success and second.success
        assert first.csv_path == "2025-03-01.csv"
        assert second.csv_path == "2025-03-02.csv"
        assert [row[0] for row in read_csv(export_storage, "2025-03-01.csv")[1:]] == [str(late.id)]
        assert [row[0] for row in read_csv(export_storage, "2025-03-02.csv")[1:]] == [str(early.id)]

    async def test_scheduled_run_exports_last_minute_confirmation(
        self, db_session, operator_user, make_document, export_storage
    ):
        scheduled_at = utc(2025, 3, 1, 15, 5, 0)  # 00:05 JST on 2025-03-02
        late = make_document(operator_user, status="confirmed", updated_at=utc(2025, 3, 1, 14, 59, 58))

        result = await run_batch_export(
            db_session,
            storage=export_storage,
            now=scheduled_at,
            target_date=previous_jst_day(scheduled_at),
        )

        assert result.success is True
        assert result.csv_path == "2025-03-01.csv"
        assert [row[0] for row in read_csv(export_storage, "2025-03-01.csv")[1:]] == [str(late.id)]


class TestRunBatchExport:

    async def test_exports_confirmed_documents_of_the_day(
        self, db_session, operator_user, reviewer_user, make_document, export_storage
    ):
        confirmed = make_document(
            operator_user,
            status="confirmed",
            document_type="drivers_license",
            updated_at=utc(2025, 3, 1, 3, 0, 0),
            name="山田太郎",
            birth_date=date(1980, 4, 1),
            address="東京都千代田区1-2-3",
            ocr_executed_at=utc(2025, 3, 1, 2, 0, 0),
            confirmed_at=utc(2025, 3, 1, 3, 0, 0),
            confirmed_by=reviewer_user,
        )
        make_document(operator_user, status="ocr_completed", updated_at=utc(2025, 3, 1, 3, 0, 0))
        make_document(operator_user, status="reviewed", updated_at=utc(2025, 3, 1, 3, 0, 0))
        make_document(operator_user, status="confirmed", updated_at=utc(2025, 2, 27, 3, 0, 0))

        result = await run_batch_export(db_session, storage=export_storage, target_date=date(2025, 3, 1))

        assert result.success is True
        assert result.document_count == 1
        assert export_storage.content_types["2025-03-01.csv"] == "text/csv; charset=utf-8"

        rows = read_csv(export_storage, "2025-03-01.csv")
        assert rows[0] == list(CSV_HEADER)
        assert rows[1] == [
            str(confirmed.id),
            "運転免許証",
            "山田太郎",
            "1980-04-01",
            "東京都千代田区1-2-3",
            confirmed.image_object_key,
            str(reviewer_user.id),
            "2025-03-01T03:00:00+00:00",
            "2025-03-01T02:00:00+00:00",
        ]

        run = db_session.get(BatchExportRun, result.batch_export_id)
        assert run.status == "success"
        assert run.document_count == 1
        assert run.export_date == date(2025, 3, 1)
        assert run.csv_object_key == "2025-03-01.csv"
        assert [row[0] for row in run_items(db_session, run.id)] == [confirmed.id]

    async def test_empty_day_still_writes_header(self, db_session, export_storage):
        result = await run_batch_export(db_session, storage=export_storage, target_date=date(2025, 3, 1))

        assert result.success is True
        assert result.document_count == 0
        assert read_csv(export_storage, "2025-03-01.csv") == [list(CSV_HEADER)]

    async def test_rerun_overwrites_csv_and_adds_ledger_row(
        self, db_session, operator_user, make_document, export_storage
    ):
        make_document(operator_user, status="confirmed", updated_at=utc(2025, 3, 1, 1, 0, 0))
        first = await run_batch_export(db_session, storage=export_storage, target_date=date(2025, 3, 1))

        make_document(operator_user, status="confirmed", updated_at=utc(2025, 3, 1, 2, 0, 0))
        second = await run_batch_export(db_session, storage=export_storage, target_date=date(2025, 3, 1))

        assert (first.document_count, second.document_count) == (1, 2)
        assert len(read_csv(export_storage, "2025-03-01.csv")) == 3
        assert db_session.query(BatchExportRun).count() == 2
        assert db_session.query(BatchExportItem).count() == 3

    async def test_upload_failure_marks_run_failed(
        self, db_session, operator_user, make_document, export_storage
    ):
        make_document(operator_user, status="confirmed", updated_at=utc(2025, 3, 1, 1, 0, 0))
        export_storage.fail_writes = True

        result = await run_batch_export(db_session, storage=export_storage, target_date=date(2025, 3, 1))

        assert result.success is False
        assert result.error == "Failed to write object: simulated outage"
        run = db_session.get(BatchExportRun, result.batch_export_id)
        assert run.status == "failed"
        assert run.error_message == "Failed to write object: simulated outage"
        assert run.document_count == 0
        assert db_session.query(BatchExportItem).count() == 0

    async def test_unavailable_storage_marks_run_failed(self, db_session, monkeypatch):
        def unavailable():
            raise StorageError("Storage configuration error: missing credentials")

        monkeypatch.setattr(batch_export_service, "get_export_storage", unavailable)

        result = await run_batch_export(db_session, target_date=date(2025, 3, 1))

        assert result.success is False
        run = db_session.get(BatchExportRun, result.batch_export_id)
        assert run.status == "failed"
        assert run.error_message == "Storage configuration error: missing credentials"


class TestBatchExportEndpoints:

    def test_requires_admin(self, client, reviewer_user, auth_headers):
        response = client.post(f"{EXPORT_URL}/run", headers=auth_headers(reviewer_user))

        assert response.status_code == 403

    def test_manual_run(self, client, operator_user, admin_user, auth_headers, make_document, export_storage):
        document = make_document(operator_user, status="confirmed", updated_at=utc(2025, 3, 1, 1, 0, 0))

        response = client.post(
            f"{EXPORT_URL}/run",
            params={"target_date": "2025-03-01"},
            headers=auth_headers(admin_user),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["document_count"] == 1
        assert body["csv_path"] == "2025-03-01.csv"
        assert read_csv(export_storage, "2025-03-01.csv")[1][0] == str(document.id)

    def test_failed_run_answers_500(self, client, admin_user, auth_headers, export_storage):
        export_storage.fail_writes = True

        response = client.post(
            f"{EXPORT_URL}/run",
            params={"target_date": "2025-03-01"},
            headers=auth_headers(admin_user),
        )

        assert response.status_code == 500
        assert response.json()["success"] is False
        assert response.json()["error"] == "Failed to write object: simulated outage"

    def test_list_runs_newest_first(self, client, db_session, admin_user, auth_headers):
        db_session.add(BatchExportRun(executed_at=utc(2025, 3, 1, 14, 59), export_date=date(2025, 3, 1)))
        db_session.add(BatchExportRun(
            executed_at=utc(2025, 3, 2, 14, 59),
            export_date=date(2025, 3, 2),
            status="failed",
            error_message="boom",
        ))
        db_session.commit()

        response = client.get(EXPORT_URL, headers=auth_headers(admin_user))

        assert response.status_code == 200
        items = response.json()["items"]
        assert [item["export_date"] for item in items] == ["2025-03-02", "2025-03-01"]
        assert items[0]["status"] == "failed"
        assert items[0]["error_message"] == "boom"
