"""
Receipt persistence.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.orm import Session

from expense_tracker.models.receipt import OcrStatus, ReceiptModel


def create(db: Session, **fields: Any) -> ReceiptModel:
    receipt = ReceiptModel(id=str(uuid.uuid4()), **fields)
    db.add(receipt)
    db.commit()
    db.refresh(receipt)
    return receipt


def get(db: Session, receipt_id: str) -> Optional[ReceiptModel]:
    return db.query(ReceiptModel).filter(ReceiptModel.id == receipt_id).first()


def list_for_user(db: Session, user_id: str, *, limit: int, offset: int) -> list[ReceiptModel]:
    return (
        db.query(ReceiptModel)
        .filter(ReceiptModel.user_id == user_id)
        .order_by(ReceiptModel.uploaded_at.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def count_for_user(db: Session, user_id: str) -> int:
    return db.query(ReceiptModel).filter(ReceiptModel.user_id == user_id).count()


def list_pending_before(db: Session, cutoff: datetime) -> list[ReceiptModel]:
    return (
        db.query(ReceiptModel)
        .filter(
            ReceiptModel.ocr_status == OcrStatus.PENDING.value,
            ReceiptModel.uploaded_at < cutoff,
        )
        .order_by(ReceiptModel.uploaded_at)
        .all()
    )


def transition_status(
    db: Session,
    receipt_id: str,
    expected: OcrStatus,
    target: OcrStatus,
    **values: Any,
) -> bool:
    """Compare-and-set the OCR status.

    Only a receipt currently in ``expected`` moves to ``target``. Returns
    False when the row is missing or already elsewhere in the state machine.
    """
    updated = (
        db.query(ReceiptModel)
        .filter(ReceiptModel.id == receipt_id, ReceiptModel.ocr_status == expected.value)
        .update({"ocr_status": target.value, **values}, synchronize_session=False)
    )
    db.commit()
    return updated == 1


def delete(db: Session, receipt: ReceiptModel) -> None:
    db.delete(receipt)
    db.commit()
