"""
Receipt API endpoints.

POST   /api/receipts        — upload a receipt file (OCR runs in the background)
GET    /api/receipts        — list the caller's receipts
GET    /api/receipts/{id}   — get one receipt, including OCR status
DELETE /api/receipts/{id}   — delete receipt, stored file and linked expense
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Query, UploadFile
from sqlalchemy.orm import Session

from expense_tracker.database import get_db, get_session_factory
from expense_tracker.dependencies import (
    get_blob_store,
    get_current_user_id,
    get_default_currency,
    get_extractor,
    get_upload_policy,
)
from expense_tracker.models.receipt import ReceiptModel
from expense_tracker.pipeline import run_ocr_pipeline
from expense_tracker.schemas import ReceiptPage, ReceiptResponse
from expense_tracker.services import receipts as receipt_service
from expense_tracker.services.receipts import UploadPolicy
from expense_tracker.services.storage import BlobStore

logger = logging.getLogger(__name__)
router = APIRouter()


# ── POST /api/receipts ───────────────────────────────────────────────────
@router.post("/receipts", response_model=ReceiptResponse, status_code=201)
def upload_receipt(
    background_tasks: BackgroundTasks,
    receipt: Optional[UploadFile] = File(None),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
    policy: UploadPolicy = Depends(get_upload_policy),
    session_factory=Depends(get_session_factory),
    extractor=Depends(get_extractor),
    default_currency: str = Depends(get_default_currency),
):
    content = receipt.file.read() if receipt is not None else None
    logger.info(
        "Upload: user=%s  file=%s  type=%s",
        user_id,
        receipt.filename if receipt else None,
        receipt.content_type if receipt else None,
    )

    def schedule_ocr(record: ReceiptModel, data: bytes) -> None:
        background_tasks.add_task(
            run_ocr_pipeline,
            record.id,
            data,
            session_factory=session_factory,
            extractor=extractor,
            default_currency=default_currency,
        )

    return receipt_service.upload_receipt(
        db,
        store,
        owner_id=user_id,
        file_name=receipt.filename if receipt else None,
        mime_type=receipt.content_type if receipt else None,
        content=content,
        policy=policy,
        schedule_ocr=schedule_ocr,
    )


# ── GET /api/receipts ────────────────────────────────────────────────────
@router.get("/receipts", response_model=ReceiptPage)
def list_receipts(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return receipt_service.list_receipts(db, user_id, page=page, limit=limit)


# ── GET /api/receipts/{receipt_id} ───────────────────────────────────────
@router.get("/receipts/{receipt_id}", response_model=ReceiptResponse)
def get_receipt(
    receipt_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return receipt_service.get_receipt(db, receipt_id, user_id)


# ── DELETE /api/receipts/{receipt_id} ────────────────────────────────────
@router.delete("/receipts/{receipt_id}", response_model=ReceiptResponse)
def delete_receipt(
    receipt_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
):
    return receipt_service.delete_receipt(db, store, receipt_id, user_id)
