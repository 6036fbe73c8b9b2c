"""
Shared pytest fixtures — in-memory SQLite, local blob store, fake OCR
engine and FastAPI TestClient.
"""
import io

import pytest
from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from expense_tracker import models  # noqa: F401  — register models
from expense_tracker.config import settings
from expense_tracker.database import Base, get_db, get_session_factory
from expense_tracker.dependencies import get_blob_store, get_extractor
from expense_tracker.main import app
from expense_tracker.services.storage import LocalBlobStore

# StaticPool ensures all connections share the same in-memory database
_ENGINE = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
_Session = sessionmaker(autocommit=False, autoflush=False, bind=_ENGINE)

PUBLIC_URL = "http://testserver/uploads"

STARBUCKS_TEXT = (
    "Starbucks\n"
    "123 Main Street\n"
    "Seattle, WA 98101\n"
    "\n"
    "Grande Latte        4.85\n"
    "Blueberry Muffin    2.95\n"
    "Total: $45.99\n"
    "12/25/2024\n"
)


class FakeExtractor:
    """Stands in for Tesseract: returns ``text`` or raises ``error``."""

    def __init__(self, text: str = STARBUCKS_TEXT, error: Exception | None = None):
        self.text = text
        self.error = error
        self.calls = 0

    def extract(self, content: bytes) -> str:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.text


class BrokenBlobStore(LocalBlobStore):
    """Stores fine, but every delete fails."""

    def delete(self, blob_id, resource_kind):
        raise OSError("storage unavailable")


def make_image(fmt: str = "JPEG", size: tuple[int, int] = (40, 60)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, "white").save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture(autouse=True)
def _reset_tables():
    Base.metadata.create_all(bind=_ENGINE)
    yield
    Base.metadata.drop_all(bind=_ENGINE)


@pytest.fixture()
def session_factory():
    return _Session


@pytest.fixture()
def db():
    session = _Session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def store(tmp_path):
    return LocalBlobStore(tmp_path / "uploads", PUBLIC_URL)


@pytest.fixture()
def extractor():
    return FakeExtractor()


@pytest.fixture()
def client(store, extractor, monkeypatch):
    monkeypatch.setattr(settings, "RECOVER_PENDING_ON_STARTUP", False)

    def _override_db():
        session = _Session()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_db
    app.dependency_overrides[get_session_factory] = lambda: _Session
    app.dependency_overrides[get_blob_store] = lambda: store
    app.dependency_overrides[get_extractor] = lambda: extractor
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
