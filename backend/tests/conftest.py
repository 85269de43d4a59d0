"""Pytest fixtures shared by unit and integration tests.

Provides reusable test fixtures for:
- In-memory SQLite database session (tables created and dropped per test)
- Test users with different roles (ADMIN, REVIEWER, OPERATOR)
- In-memory object storage and text detection fakes
- A TestClient with every external collaborator overridden

Usage:
    def test_upload(client, operator_user, auth_headers):
        response = client.post("/api/v1/documents", headers=auth_headers(operator_user), ...)
        assert response.status_code == 201
"""

import os
import sys
from pathlib import Path

# Set environment variables BEFORE any imports to ensure they take effect
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("JWT_SECRET", "test-jwt-secret-key-256-bits-minimum-length-required-for-security")
os.environ.setdefault("LOG_JSON", "false")
os.environ.setdefault("ENV", "test")

backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from datetime import datetime
from typing import BinaryIO, Callable, Dict, Generator, List, Optional
from io import BytesIO
from uuid import UUID

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from kakunin.auth.jwt import create_access_token
from kakunin.database import get_db as database_get_db
from kakunin.domain.documents.ports.object_storage_port import (
    ObjectStoragePort,
    StorageError,
    StoredFile,
)
from kakunin.domain.ocr.ports import TextDetectionPort
from kakunin.models import (
    Base,
    Document,
    DocumentHistory,
    ExtractedData,
    User,
)
from kakunin.models.base import utcnow


# Single shared in-memory connection so the app and the test see the same data
test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


class FakeStorage(ObjectStoragePort):
    """In-memory ObjectStoragePort.

    Attributes:
        objects: storage_key -> bytes
        content_types: storage_key -> content type
        fail_writes: When set, store_file/put_object raise StorageError
    """

    def __init__(self, bucket_name: str = "test-bucket"):
        self.bucket_name = bucket_name
        self.objects: Dict[str, bytes] = {}
        self.content_types: Dict[str, str] = {}
        self.presigned: List[tuple] = []
        self.fail_writes = False
        self._counter = 0

    async def store_file(self, file: BinaryIO, owner_id: UUID, filename: str, mime_type: str) -> StoredFile:
        if self.fail_writes:
            raise StorageError("Failed to upload file: simulated outage")
        content = file.read()
        if not content:
            raise ValueError("Cannot store empty file")
        self._counter += 1
        ext = Path(filename).suffix.lower()
        key = f"{owner_id}/{1700000000000 + self._counter}{ext}"
        self.objects[key] = content
        self.content_types[key] = mime_type
        return StoredFile(storage_key=key, size_bytes=len(content), mime_type=mime_type)

    async def put_object(self, storage_key: str, body: bytes, content_type: str) -> str:
        if self.fail_writes:
            raise StorageError("Failed to write object: simulated outage")
        self.objects[storage_key] = body
        self.content_types[storage_key] = content_type
        return storage_key

    async def retrieve_file(self, storage_key: str) -> BinaryIO:
        if storage_key not in self.objects:
            raise FileNotFoundError(f"File not found: {storage_key}")
        return BytesIO(self.objects[storage_key])

    async def file_exists(self, storage_key: str) -> bool:
        return storage_key in self.objects

    async def generate_presigned_url(self, storage_key: str, expires_in_seconds: int = 3600) -> str:
        if storage_key not in self.objects:
            raise FileNotFoundError(f"File not found: {storage_key}")
        self.presigned.append((storage_key, expires_in_seconds))
        return f"https://storage.test/{self.bucket_name}/{storage_key}?expires={expires_in_seconds}"

    async def verify_bucket_exists(self) -> bool:
        return True


class FakeTextDetector(TextDetectionPort):
    """Returns a fixed text or raises a fixed error."""

    def __init__(self, text: str = "", error: Optional[Exception] = None):
        self.text = text
        self.error = error
        self.calls: List[str] = []

    def detect_document_text(self, image_base64: str) -> str:
        self.calls.append(image_base64)
        if self.error is not None:
            raise self.error
        return self.text


def fake_image_fetcher(url: str, chunk_bytes: int, max_bytes: int, timeout_seconds: float) -> str:
    """Stand-in for the presigned URL download."""
    return "aW1hZ2U="


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Create a fresh database session for each test.

    Creates all tables before the test and drops them after.
    """
    Base.metadata.create_all(bind=test_engine)

    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=test_engine)


def _create_user(db_session: Session, email: str, name: str, role: str) -> User:
    user = User(email=email, name=name, role=role, status="ACTIVE")
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture(scope="function")
def operator_user(db_session: Session) -> User:
    """Create an OPERATOR user for testing."""
    return _create_user(db_session, "operator@test.com", "Operator User", "OPERATOR")


@pytest.fixture(scope="function")
def other_operator(db_session: Session) -> User:
    """A second OPERATOR who owns nothing of operator_user's."""
    return _create_user(db_session, "other@test.com", "Other Operator", "OPERATOR")


@pytest.fixture(scope="function")
def reviewer_user(db_session: Session) -> User:
    """Create a REVIEWER user for testing."""
    return _create_user(db_session, "reviewer@test.com", "Reviewer User", "REVIEWER")


@pytest.fixture(scope="function")
def admin_user(db_session: Session) -> User:
    """Create an ADMIN user for testing."""
    return _create_user(db_session, "admin@test.com", "Admin User", "ADMIN")


@pytest.fixture
def auth_headers() -> Callable[[User], Dict[str, str]]:
    """Build an Authorization header for a user."""

    def _headers(user: User) -> Dict[str, str]:
        token = create_access_token(user_id=user.id, role=user.role, email=user.email)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def document_storage() -> FakeStorage:
    return FakeStorage("documents")


@pytest.fixture
def export_storage() -> FakeStorage:
    return FakeStorage("batch-exports")


@pytest.fixture
def text_detector() -> FakeTextDetector:
    """Detector returning no text; tests set .text or .error as needed."""
    return FakeTextDetector()


@pytest.fixture(scope="function")
def client(
    db_session: Session,
    document_storage: FakeStorage,
    export_storage: FakeStorage,
    text_detector: FakeTextDetector,
) -> Generator[TestClient, None, None]:
    """Create an unauthenticated test client.

    Database, storage, text detection and image download are all overridden.
    """
    from kakunin.main import app
    from kakunin.batch_export.router import optional_export_storage
    from kakunin.ocr.dependencies import get_image_fetcher, get_ocr_storage, get_text_detector
    from kakunin.storage import document_storage_dependency

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[database_get_db] = override_get_db
    app.dependency_overrides[document_storage_dependency] = lambda: document_storage
    app.dependency_overrides[get_ocr_storage] = lambda: document_storage
    app.dependency_overrides[get_text_detector] = lambda: text_detector
    app.dependency_overrides[get_image_fetcher] = lambda: fake_image_fetcher
    app.dependency_overrides[optional_export_storage] = lambda: export_storage

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def make_document(db_session: Session, document_storage: FakeStorage):
    """Factory inserting a document with its data row and optional history.

    Usage:
        doc = make_document(owner, status="confirmed", updated_at=..., name="山田太郎")
    """

    def _make(
        owner: User,
        status: str = "uploaded",
        document_type: str = "mynumber_card",
        updated_at: Optional[datetime] = None,
        name: str = "",
        birth_date=None,
        address: str = "",
        ocr_executed_at: Optional[datetime] = None,
        confirmed_at: Optional[datetime] = None,
        confirmed_by: Optional[User] = None,
    ) -> Document:
        key = f"{owner.id}/{len(document_storage.objects) + 1}.jpg"
        document_storage.objects[key] = b"\xff\xd8\xff\xe0image"
        moment = updated_at or utcnow()
        document = Document(
            owner_id=owner.id,
            document_type=document_type,
            status=status,
            image_object_key=key,
            created_at=moment,
            updated_at=moment,
        )
        db_session.add(document)
        db_session.flush()
        db_session.add(ExtractedData(
            document_id=document.id,
            name=name,
            birth_date=birth_date,
            address=address,
            ocr_executed_at=ocr_executed_at,
        ))
        if confirmed_at is not None:
            db_session.add(DocumentHistory(
                document_id=document.id,
                operator_id=(confirmed_by or owner).id,
                action="confirmed",
                changes={},
                created_at=confirmed_at,
            ))
        db_session.commit()
        db_session.refresh(document)
        return document

    return _make


@pytest.fixture
def image_fetcher() -> Callable[..., str]:
    return fake_image_fetcher


@pytest.fixture
def worker_session(monkeypatch):
    """Point the Celery tasks at the test database."""
    from kakunin.workers import batch_export_worker, ocr_worker

    monkeypatch.setattr(ocr_worker, "SessionLocal", TestingSessionLocal)
    monkeypatch.setattr(batch_export_worker, "SessionLocal", TestingSessionLocal)
