"""Integration tests for document upload, listing, manual edit and review."""

from types import SimpleNamespace
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm.attributes import set_committed_value

from kakunin.audit.service import list_history
from kakunin.config import get_settings
from kakunin.documents import router as documents_router
from kakunin.documents.service import record_review
from kakunin.domain.documents.document_status import StateTransitionError
from kakunin.domain.documents.ports.object_storage_port import StorageError
from kakunin.models import Document, ExtractedData, HistoryAction


pytestmark = pytest.mark.integration


DOCUMENTS_URL = "/api/v1/documents"

JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF" + b"\x00" * 64


def upload(client, headers, document_type="mynumber_card", content=JPEG_BYTES, mime="image/jpeg", params=None):
    return client.post(
        DOCUMENTS_URL,
        data={"document_type": document_type},
        files={"file": ("card.JPG", content, mime)},
        headers=headers,
        params=params or {},
    )


class TestUpload:

    def test_upload_creates_document(self, client, db_session, operator_user, auth_headers, document_storage):
        response = upload(client, auth_headers(operator_user))

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "uploaded"
        assert body["document_type"] == "mynumber_card"
        assert body["document_type_label"] == "マイナンバーカード"
        assert body["owner_id"] == str(operator_user.id)
        assert body["image_object_key"].startswith(f"{operator_user.id}/")
        assert body["image_object_key"].endswith(".jpg")
        assert document_storage.objects[body["image_object_key"]] == JPEG_BYTES

        data = db_session.query(ExtractedData).filter(ExtractedData.document_id == UUID(body["id"])).one()
        assert (data.name, data.birth_date, data.address) == ("", None, "")
        history = list_history(db_session, data.document_id)
        assert [entry.action for entry in history] == ["uploaded"]
        assert history[0].operator_id == operator_user.id

    def test_drivers_license_label(self, client, operator_user, auth_headers):
        response = upload(client, auth_headers(operator_user), document_type="drivers_license")

        assert response.json()["document_type_label"] == "運転免許証"

    def test_non_image_rejected(self, client, db_session, operator_user, auth_headers):
        response = upload(client, auth_headers(operator_user), content=b"%PDF-1.4", mime="application/pdf")

        assert response.status_code == 400
        assert response.json()["detail"] == "画像ファイルを選択してください"
        assert db_session.query(Document).count() == 0

    def test_oversize_image_rejected(self, client, operator_user, auth_headers, monkeypatch):
        monkeypatch.setattr(get_settings(), "MAX_IMAGE_BYTES", 16)

        response = upload(client, auth_headers(operator_user))

        assert response.status_code == 400
        assert response.json()["detail"] == "ファイルサイズは5MB以下にしてください"

    def test_unknown_document_type(self, client, operator_user, auth_headers):
        response = upload(client, auth_headers(operator_user), document_type="passport")

        assert response.status_code == 422

    def test_storage_failure(self, client, db_session, operator_user, auth_headers, document_storage):
        document_storage.fail_writes = True

        response = upload(client, auth_headers(operator_user))

        assert response.status_code == 500
        assert db_session.query(Document).count() == 0

    def test_escaped_storage_error_answers_503(self, client, db_session, operator_user, auth_headers):
        from kakunin.main import app
        from kakunin.storage import document_storage_dependency

        def unavailable():
            raise StorageError("Failed to verify bucket: AccessDenied")

        app.dependency_overrides[document_storage_dependency] = unavailable

        response = upload(client, auth_headers(operator_user))

        assert response.status_code == 503
        assert response.json()["error"] == "storage_unavailable"
        assert "AccessDenied" not in response.text
        assert db_session.query(Document).count() == 0

    def test_requires_authentication(self, client):
        response = upload(client, headers={})

        assert response.status_code == 401

    def test_run_ocr_enqueues_task(self, client, operator_user, auth_headers, monkeypatch):
        from kakunin.workers import ocr_worker

        queued = []
        monkeypatch.setattr(ocr_worker, "run_ocr_task", SimpleNamespace(delay=lambda **kwargs: queued.append(kwargs)))

        response = upload(client, auth_headers(operator_user), params={"run_ocr": "true"})

        assert response.status_code == 201
        assert queued == [{"document_id": response.json()["id"], "user_id": str(operator_user.id)}]


class TestListAndDetail:

    def test_list_own_documents_with_preview(
        self, client, operator_user, other_operator, auth_headers, make_document
    ):
        mine = make_document(operator_user)
        make_document(other_operator)

        response = client.get(DOCUMENTS_URL, headers=auth_headers(operator_user))

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        item = body["items"][0]
        assert item["id"] == str(mine.id)
        assert item["preview_url"].endswith("expires=3600")

    def test_list_filter(self, client, operator_user, auth_headers, make_document):
        make_document(operator_user, status="uploaded")
        make_document(operator_user, status="ocr_completed")
        make_document(operator_user, status="confirmed")
        make_document(operator_user, status="rejected")

        def statuses(filter_name):
            response = client.get(DOCUMENTS_URL, params={"filter": filter_name}, headers=auth_headers(operator_user))
            return sorted(item["status"] for item in response.json()["items"])

        assert statuses("all") == ["confirmed", "ocr_completed", "rejected", "uploaded"]
        assert statuses("pending") == ["ocr_completed", "uploaded"]
        assert statuses("confirmed") == ["confirmed"]
        assert statuses("rejected") == ["rejected"]

    def test_unknown_filter(self, client, operator_user, auth_headers):
        response = client.get(DOCUMENTS_URL, params={"filter": "everything"}, headers=auth_headers(operator_user))

        assert response.status_code == 422

    def test_detail(self, client, operator_user, auth_headers, make_document):
        document = make_document(operator_user, status="ocr_completed", name="山田太郎")

        response = client.get(f"{DOCUMENTS_URL}/{document.id}", headers=auth_headers(operator_user))

        assert response.status_code == 200
        body = response.json()
        assert body["editable"] is True
        assert body["extracted_data"]["name"] == "山田太郎"
        assert body["preview_url"] is not None

    def test_detail_of_other_owner_is_not_found(self, client, operator_user, other_operator, auth_headers, make_document):
        document = make_document(other_operator)

        response = client.get(f"{DOCUMENTS_URL}/{document.id}", headers=auth_headers(operator_user))

        assert response.status_code == 404

    def test_status_endpoint(self, client, operator_user, auth_headers, make_document):
        document = make_document(operator_user, status="ocr_processing")

        response = client.get(f"{DOCUMENTS_URL}/{document.id}/status", headers=auth_headers(operator_user))

        assert response.status_code == 200
        assert response.json()["status"] == "ocr_processing"

    def test_dashboard_stats(self, client, operator_user, other_operator, auth_headers, make_document):
        for status in ["uploaded", "ocr_processing", "ocr_completed", "confirmed", "confirmed",
                       "reviewed", "rejected", "review_rejected"]:
            make_document(operator_user, status=status)
        make_document(other_operator, status="confirmed")

        response = client.get(f"{DOCUMENTS_URL}/stats", headers=auth_headers(operator_user))

        assert response.json() == {
            "total": 8,
            "uploaded": 3,
            "review_pending": 2,
            "reviewed": 1,
            "rejected": 1,
            "review_rejected": 1,
        }


class TestManualEdit:

    def test_edit_overwrites_fields_and_logs_old_and_new(
        self, client, db_session, operator_user, auth_headers, make_document
    ):
        document = make_document(operator_user, name="山田太朗")

        response = client.patch(
            f"{DOCUMENTS_URL}/{document.id}/data",
            json={"name": " 山田太郎 ", "birth_date": "1980-04-01", "address": "東京都千代田区1-2-3"},
            headers=auth_headers(operator_user),
        )

        assert response.status_code == 200
        assert response.json()["name"] == "山田太郎"
        assert response.json()["birth_date"] == "1980-04-01"

        entry = list_history(db_session, document.id)[0]
        assert entry.action == "modified"
        assert entry.changes["old"]["name"] == "山田太朗"
        assert entry.changes["new"] == {
            "name": "山田太郎",
            "birth_date": "1980-04-01",
            "address": "東京都千代田区1-2-3",
        }

    def test_empty_birth_date_clears_value(self, client, operator_user, auth_headers, make_document):
        document = make_document(operator_user, status="ocr_completed")

        response = client.patch(
            f"{DOCUMENTS_URL}/{document.id}/data",
            json={"name": "山田太郎", "birth_date": "", "address": ""},
            headers=auth_headers(operator_user),
        )

        assert response.status_code == 200
        assert response.json()["birth_date"] is None

    @pytest.mark.parametrize("status", ["ocr_processing", "confirmed", "reviewed"])
    def test_edit_refused_outside_editable_states(self, client, operator_user, auth_headers, make_document, status):
        document = make_document(operator_user, status=status)

        response = client.patch(
            f"{DOCUMENTS_URL}/{document.id}/data",
            json={"name": "x", "birth_date": None, "address": "y"},
            headers=auth_headers(operator_user),
        )

        assert response.status_code == 409


class TestReviewFlow:

    def test_confirm_uploaded_document(self, client, db_session, operator_user, auth_headers, make_document):
        document = make_document(operator_user)

        response = client.post(f"{DOCUMENTS_URL}/{document.id}/confirm", headers=auth_headers(operator_user))

        assert response.status_code == 200
        assert response.json()["status"] == "confirmed"
        entry = list_history(db_session, document.id)[0]
        assert (entry.action, entry.operator_id) == ("confirmed", operator_user.id)

    def test_confirm_twice_conflicts(self, client, operator_user, auth_headers, make_document):
        document = make_document(operator_user, status="confirmed")

        response = client.post(f"{DOCUMENTS_URL}/{document.id}/confirm", headers=auth_headers(operator_user))

        assert response.status_code == 409

    def test_processing_cannot_be_confirmed(self, client, operator_user, auth_headers, make_document):
        document = make_document(operator_user, status="ocr_processing")

        response = client.post(f"{DOCUMENTS_URL}/{document.id}/confirm", headers=auth_headers(operator_user))

        assert response.status_code == 409

    def test_confirm_does_not_overwrite_concurrent_ocr_start(
        self, client, db_session, operator_user, auth_headers, make_document, monkeypatch
    ):
        # Stored status is ocr_processing; the route sees the stale uploaded it loaded earlier
        document = make_document(operator_user, status="ocr_processing")
        load = documents_router.get_owned_document

        def load_stale(db, document_id, user):
            loaded = load(db, document_id, user)
            set_committed_value(loaded, "status", "uploaded")
            return loaded

        monkeypatch.setattr(documents_router, "get_owned_document", load_stale)

        response = client.post(f"{DOCUMENTS_URL}/{document.id}/confirm", headers=auth_headers(operator_user))

        assert response.status_code == 409
        db_session.expire_all()
        assert db_session.get(Document, document.id).status == "ocr_processing"
        assert [entry.action for entry in list_history(db_session, document.id)] == []

    def test_stale_transition_raises(self, db_session, operator_user, make_document):
        document = make_document(operator_user, status="ocr_processing")
        set_committed_value(document, "status", "ocr_completed")

        with pytest.raises(StateTransitionError):
            record_review(db_session, document, HistoryAction.REJECTED, operator_user)

        assert document.status == "ocr_processing"

    def test_reject_then_reconfirm(self, client, operator_user, auth_headers, make_document):
        document = make_document(operator_user, status="ocr_completed")
        headers = auth_headers(operator_user)

        assert client.post(f"{DOCUMENTS_URL}/{document.id}/reject", headers=headers).json()["status"] == "rejected"
        assert client.post(f"{DOCUMENTS_URL}/{document.id}/confirm", headers=headers).json()["status"] == "confirmed"

    def test_operator_cannot_review(self, client, operator_user, auth_headers, make_document):
        document = make_document(operator_user, status="confirmed")

        response = client.post(f"{DOCUMENTS_URL}/{document.id}/review", headers=auth_headers(operator_user))

        assert response.status_code == 403

    def test_reviewer_approves_any_owners_document(
        self, client, db_session, operator_user, reviewer_user, auth_headers, make_document
    ):
        document = make_document(operator_user, status="confirmed")

        response = client.post(f"{DOCUMENTS_URL}/{document.id}/review", headers=auth_headers(reviewer_user))

        assert response.status_code == 200
        assert response.json()["status"] == "reviewed"
        entry = list_history(db_session, document.id)[0]
        assert (entry.action, entry.operator_id) == ("reviewed", reviewer_user.id)

    def test_review_reject_reopens_confirmation(
        self, client, operator_user, reviewer_user, auth_headers, make_document
    ):
        document = make_document(operator_user, status="confirmed")

        response = client.post(f"{DOCUMENTS_URL}/{document.id}/review-reject", headers=auth_headers(reviewer_user))
        assert response.json()["status"] == "review_rejected"

        response = client.post(f"{DOCUMENTS_URL}/{document.id}/confirm", headers=auth_headers(operator_user))
        assert response.json()["status"] == "confirmed"

    def test_review_requires_confirmed(self, client, operator_user, reviewer_user, auth_headers, make_document):
        document = make_document(operator_user, status="ocr_completed")

        response = client.post(f"{DOCUMENTS_URL}/{document.id}/review", headers=auth_headers(reviewer_user))

        assert response.status_code == 409

    def test_review_unknown_document(self, client, reviewer_user, auth_headers):
        response = client.post(f"{DOCUMENTS_URL}/{uuid4()}/review", headers=auth_headers(reviewer_user))

        assert response.status_code == 404

    def test_history_endpoint_is_newest_first(self, client, operator_user, auth_headers, make_document):
        document = make_document(operator_user)
        headers = auth_headers(operator_user)
        client.patch(
            f"{DOCUMENTS_URL}/{document.id}/data",
            json={"name": "山田太郎", "birth_date": None, "address": ""},
            headers=headers,
        )
        client.post(f"{DOCUMENTS_URL}/{document.id}/confirm", headers=headers)

        response = client.get(f"{DOCUMENTS_URL}/{document.id}/history", headers=headers)

        items = response.json()["items"]
        assert [item["action"] for item in items] == ["confirmed", "modified"]
        assert items[0]["action_label"] == "確認済み"
