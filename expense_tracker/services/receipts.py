"""
Receipt lifecycle: upload validation, storage, OCR scheduling, lookup and
cascading delete.
"""
from __future__ import annotations

import io
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Optional

from PIL import Image
from sqlalchemy.orm import Session

from expense_tracker.errors import Forbidden, InvalidInput, NotFound, UploadFailure
from expense_tracker.models.receipt import OcrStatus, ReceiptModel
from expense_tracker.repositories import expenses as expenses_repo
from expense_tracker.repositories import receipts as receipts_repo
from expense_tracker.schemas import ReceiptPage, ReceiptResponse
from expense_tracker.services import page_count, page_window, require_valid_id
from expense_tracker.services.storage import (
    RESOURCE_IMAGE,
    BlobStore,
    ImageTransform,
    resource_kind_for,
)

logger = logging.getLogger(__name__)

FILE_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
    "application/pdf": ".pdf",
}


@dataclass(frozen=True)
class UploadPolicy:
    allowed_mime_types: tuple[str, ...] = tuple(FILE_EXTENSIONS)
    max_bytes: int = 10 * 1024 * 1024
    image_transform: Optional[ImageTransform] = field(default=None)

    @classmethod
    def from_settings(cls, settings) -> "UploadPolicy":
        return cls(
            allowed_mime_types=tuple(settings.ALLOWED_MIME_TYPES),
            max_bytes=settings.MAX_UPLOAD_BYTES,
            image_transform=ImageTransform(
                max_width=settings.IMAGE_MAX_WIDTH,
                max_height=settings.IMAGE_MAX_HEIGHT,
                quality=settings.IMAGE_QUALITY,
            ),
        )


OcrScheduler = Callable[[ReceiptModel, bytes], None]


def _is_decodable_image(content: bytes) -> bool:
    try:
        with Image.open(io.BytesIO(content)) as image:
            image.verify()
    except (OSError, SyntaxError, ValueError):
        return False
    return True


def validate_upload(
    content: Optional[bytes], mime_type: Optional[str], policy: UploadPolicy
) -> None:
    if content is None:
        raise InvalidInput("No file provided")
    if mime_type not in policy.allowed_mime_types:
        raise InvalidInput(
            "Invalid file type. Only JPEG, PNG, WebP, GIF images and PDF files are allowed"
        )
    if len(content) > policy.max_bytes:
        limit_mb = policy.max_bytes // (1024 * 1024)
        raise InvalidInput(f"File size too large. Maximum size is {limit_mb}MB")
    if not content:
        raise InvalidInput("Uploaded file is empty")
    if mime_type.startswith("image/") and not _is_decodable_image(content):
        raise InvalidInput("Uploaded file is not a valid image")


def upload_receipt(
    db: Session,
    store: BlobStore,
    *,
    owner_id: str,
    file_name: Optional[str],
    mime_type: Optional[str],
    content: Optional[bytes],
    policy: UploadPolicy,
    schedule_ocr: Optional[OcrScheduler] = None,
) -> ReceiptModel:
    """Store the file, persist a pending receipt and hand it to OCR.

    OCR is only scheduled here; its outcome never reaches the caller.
    """
    validate_upload(content, mime_type, policy)

    resource_kind = resource_kind_for(mime_type)
    key = (
        f"receipt_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"
        f"{FILE_EXTENSIONS.get(mime_type, '')}"
    )
    try:
        blob = store.store(
            content,
            folder=f"receipts/{owner_id}",
            key=key,
            resource_kind=resource_kind,
            transform=policy.image_transform if resource_kind == RESOURCE_IMAGE else None,
        )
    except Exception as exc:
        logger.error("Blob upload failed for user %s: %s", owner_id, exc, exc_info=True)
        raise UploadFailure("Failed to upload receipt to storage") from exc

    receipt = receipts_repo.create(
        db,
        user_id=owner_id,
        file_url=blob.url,
        file_name=file_name or key,
        file_size=len(content),
        mime_type=mime_type,
        ocr_status=OcrStatus.PENDING.value,
    )
    logger.info("Stored receipt %s (%s, %d bytes)", receipt.id, mime_type, len(content))

    if schedule_ocr is not None:
        try:
            schedule_ocr(receipt, content)
        except Exception:
            logger.exception("Could not schedule OCR for receipt %s; it stays pending", receipt.id)
    return receipt


def get_receipt(db: Session, receipt_id: str, owner_id: str) -> ReceiptModel:
    require_valid_id(receipt_id, "receipt")
    receipt = receipts_repo.get(db, receipt_id)
    if receipt is None:
        raise NotFound("Receipt not found")
    if receipt.user_id != owner_id:
        raise Forbidden("Access denied")
    return receipt


def list_receipts(db: Session, owner_id: str, *, page: int = 1, limit: int = 10) -> ReceiptPage:
    size, offset = page_window(page, limit)
    rows = receipts_repo.list_for_user(db, owner_id, limit=size, offset=offset)
    total = receipts_repo.count_for_user(db, owner_id)
    return ReceiptPage(
        items=[ReceiptResponse.model_validate(r) for r in rows],
        page=page,
        limit=size,
        total=total,
        pages=page_count(total, size),
    )


def remove_receipt_blob(store: BlobStore, receipt: ReceiptModel) -> bool:
    """Best-effort removal of the stored file. Returns False on failure."""
    try:
        blob_id = store.blob_id_from_url(receipt.file_url)
        store.delete(blob_id, resource_kind_for(receipt.mime_type))
    except Exception as exc:
        logger.warning("Could not delete blob for receipt %s: %s", receipt.id, exc)
        return False
    return True


def delete_receipt(
    db: Session, store: BlobStore, receipt_id: str, owner_id: str
) -> ReceiptResponse:
    """Delete a receipt with its blob and linked expense.

    The blob and the expense are cleaned up best-effort and independently;
    the receipt row goes last and its failure fails the whole call.
    """
    receipt = get_receipt(db, receipt_id, owner_id)
    deleted = ReceiptResponse.model_validate(receipt)

    remove_receipt_blob(store, receipt)

    try:
        expense = expenses_repo.get_by_receipt(db, receipt_id)
        if expense is not None:
            expenses_repo.delete(db, expense)
            logger.info("Deleted expense %s linked to receipt %s", expense.id, receipt_id)
    except Exception as exc:
        db.rollback()
        logger.warning("Could not delete expense for receipt %s: %s", receipt_id, exc, exc_info=True)

    receipts_repo.delete(db, receipt)
    logger.info("Deleted receipt %s", receipt_id)
    return deleted
