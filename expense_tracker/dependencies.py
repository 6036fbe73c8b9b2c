"""
FastAPI dependencies: the requesting user and the collaborators built from
settings. Tests override these on the app.
"""
from functools import lru_cache
from typing import Optional

from fastapi import Header, HTTPException

from expense_tracker.config import settings
from expense_tracker.pipeline.extractor import TesseractExtractor
from expense_tracker.services.receipts import UploadPolicy
from expense_tracker.services.storage import BlobStore, LocalBlobStore


def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    """The authenticated user, as resolved by the upstream auth gateway."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Authentication required")
    return x_user_id.strip()


@lru_cache
def get_blob_store() -> BlobStore:
    return LocalBlobStore(settings.UPLOAD_DIR, settings.PUBLIC_UPLOAD_URL)


@lru_cache
def get_extractor() -> TesseractExtractor:
    return TesseractExtractor(
        language=settings.OCR_LANGUAGE,
        timeout=settings.OCR_TIMEOUT_SECONDS,
        tesseract_cmd=settings.TESSERACT_CMD,
    )


@lru_cache
def get_upload_policy() -> UploadPolicy:
    return UploadPolicy.from_settings(settings)


def get_default_currency() -> str:
    return settings.DEFAULT_CURRENCY
