import os
import tempfile

_DB_DIR = tempfile.mkdtemp(prefix="nda-tests-")

os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_FORMAT"] = "text"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
os.environ["CELERY_BROKER_URL"] = "memory://"
os.environ["CELERY_RESULT_BACKEND"] = "cache+memory://"
os.environ["EMAIL_PROVIDER"] = "stub"
os.environ["ADMIN_API_KEYS"] = "test-admin-key"
os.environ["ADMIN_NOTIFICATION_EMAIL"] = "admin@example.com"
os.environ["SITE_URL"] = "https://ideas.example.com"

import uuid  # noqa: E402
from datetime import timedelta  # noqa: E402
from unittest.mock import MagicMock, patch  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.db import Base, SessionLocal, engine  # noqa: E402
from app.models.nda import Idea, NdaRequest, NdaStatus  # noqa: E402
from app.services.common import utcnow  # noqa: E402

Base.metadata.create_all(engine)



@pytest.fixture(autouse=True)
def _clean_tables():
    yield
    with engine.begin() as conn:
        conn.execute(NdaRequest.__table__.delete())
        conn.execute(Idea.__table__.delete())


@pytest.fixture()
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture()
def idea(db_session):
    idea = Idea(title="Solar Roof Tiles", is_active=True)
    db_session.add(idea)
    db_session.commit()
    db_session.refresh(idea)
    return idea


@pytest.fixture()
def requester_id():
    return uuid.uuid4()


@pytest.fixture()
def make_request(db_session, idea, requester_id):
    """Insert an NDA request directly in the given status."""

    def _make(status=NdaStatus.requested, **fields):
        values = {
            "idea_id": idea.id,
            "requester_id": fields.pop("requester_id", requester_id),
            "contact_email": "investor@example.com",
            "status": status,
        }
        if status == NdaStatus.verified:
            values["signed_document_path"] = "signed/test/abc/signed.pdf"
            values["signed_at"] = utcnow() - timedelta(minutes=5)
            values["access_expires_at"] = utcnow() + timedelta(days=7)
        elif status == NdaStatus.signed:
            values["signed_document_path"] = "signed/test/abc/signed.pdf"
            values["signed_at"] = utcnow() - timedelta(minutes=5)
        values.update(fields)
        nda = NdaRequest(**values)
        db_session.add(nda)
        db_session.commit()
        db_session.refresh(nda)
        return nda

    return _make


@pytest.fixture()
def mock_storage():
    storage = MagicMock()
    storage.generate_storage_key.return_value = "signed/test/abc123/signed.pdf"
    storage.generate_template_url.return_value = "https://s3.example.com/template"
    storage.generate_download_url.return_value = "https://s3.example.com/signed"
    with patch("app.services.nda_documents.storage", storage):
        yield storage


@pytest.fixture()
def client():
    from app.main import app

    return TestClient(app)


@pytest.fixture()
def admin_headers():
    return {"X-Api-Key": "test-admin-key"}
