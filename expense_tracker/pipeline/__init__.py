"""
Receipt OCR pipeline.

Runs detached from the upload request: pending -> processing, extract text,
parse fields, classify, -> done (or failed), then create an expense when a
positive amount was found. Nothing here raises to the caller; the outcome is
visible only through the receipt's ``ocr_status`` and its linked expense.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.orm import Session

from expense_tracker.errors import Conflict
from expense_tracker.models.receipt import OcrStatus
from expense_tracker.pipeline.classifier import classify
from expense_tracker.pipeline.parser import parse_receipt_text
from expense_tracker.repositories import receipts as receipts_repo
from expense_tracker.schemas import ExpenseCreate, ParsedFields
from expense_tracker.services.expenses import create_expense
from expense_tracker.services.storage import BlobStore

logger = logging.getLogger(__name__)

NON_IMAGE_RESULT = "OCR not supported for non-image files"
UNKNOWN_MERCHANT = "Unknown Merchant"

SessionFactory = Callable[[], Session]


def _finish(db: Session, receipt_id: str, status: OcrStatus, text: Optional[str]) -> bool:
    return receipts_repo.transition_status(
        db,
        receipt_id,
        OcrStatus.PROCESSING,
        status,
        ocr_result=text,
        processed_at=datetime.utcnow(),
    )


def _create_expense_from_ocr(
    db: Session,
    receipt_id: str,
    owner_id: str,
    text: str,
    parsed: ParsedFields,
    category: Optional[str],
    default_currency: str,
) -> Optional[str]:
    if parsed.amount is None or parsed.amount <= 0:
        logger.info("No amount on receipt %s; manual entry required", receipt_id)
        return None

    try:
        data = ExpenseCreate(
            receipt_id=receipt_id,
            amount=parsed.amount,
            date=parsed.date or date.today(),
            merchant=parsed.merchant or UNKNOWN_MERCHANT,
            category=category,
        )
        expense = create_expense(
            db,
            owner_id,
            data,
            default_currency=default_currency,
            ocr_text=text,
            parsed_data=parsed,
        )
    except Conflict:
        logger.info("Receipt %s already has an expense; leaving it untouched", receipt_id)
        return None
    except Exception:
        db.rollback()
        logger.exception("Could not create expense for receipt %s", receipt_id)
        return None
    return expense.id


def _run(
    db: Session,
    receipt_id: str,
    content: bytes,
    extractor,
    default_currency: str,
) -> Optional[OcrStatus]:
    # Compare-and-set: a second concurrent run for the same receipt stops here
    if not receipts_repo.transition_status(db, receipt_id, OcrStatus.PENDING, OcrStatus.PROCESSING):
        logger.warning("Receipt %s is not pending; skipping OCR run", receipt_id)
        return None
    logger.info("Pipeline start: receipt %s", receipt_id)

    try:
        receipt = receipts_repo.get(db, receipt_id)
        owner_id = receipt.user_id

        if not receipt.mime_type.startswith("image/"):
            _finish(db, receipt_id, OcrStatus.DONE, NON_IMAGE_RESULT)
            logger.info("Receipt %s is %s; OCR skipped", receipt_id, receipt.mime_type)
            return OcrStatus.DONE

        logger.info("Pipeline: extract text")
        text = extractor.extract(content)

        logger.info("Pipeline: parse fields and classify")
        parsed = parse_receipt_text(text)
        category = classify(text)
        logger.info(
            "Parsed receipt %s: amount=%s date=%s merchant=%r category=%s",
            receipt_id, parsed.amount, parsed.date, parsed.merchant, category,
        )

        if not _finish(db, receipt_id, OcrStatus.DONE, text):
            logger.warning("Receipt %s left processing during OCR; not creating expense", receipt_id)
            return None
    except Exception as exc:
        db.rollback()
        logger.error("OCR failed for receipt %s: %s", receipt_id, exc, exc_info=True)
        _finish(db, receipt_id, OcrStatus.FAILED, None)
        return OcrStatus.FAILED

    # done is terminal: from here on failures are logged and the receipt keeps its text
    expense_id = _create_expense_from_ocr(
        db, receipt_id, owner_id, text, parsed, category, default_currency
    )
    if expense_id:
        logger.info("Pipeline done: receipt %s -> expense %s", receipt_id, expense_id)
    return OcrStatus.DONE


def run_ocr_pipeline(
    receipt_id: str,
    content: bytes,
    *,
    session_factory: SessionFactory,
    extractor,
    default_currency: str = "USD",
) -> Optional[OcrStatus]:
    """Process one receipt in its own session.

    Returns the terminal status reached, or ``None`` when this run did not
    own the receipt (it was not pending) or crashed outside the state machine.
    """
    db = session_factory()
    try:
        return _run(db, receipt_id, content, extractor, default_currency)
    except Exception:
        logger.exception("OCR pipeline crashed for receipt %s", receipt_id)
        return None
    finally:
        db.close()


def recover_pending_receipts(
    session_factory: SessionFactory,
    store: BlobStore,
    extractor,
    *,
    older_than: timedelta,
    default_currency: str = "USD",
) -> int:
    """Give receipts stuck in ``pending`` one fresh pipeline run.

    A receipt is stuck when the process died between upload and OCR. Returns
    the number of receipts handed to the pipeline.
    """
    cutoff = datetime.utcnow() - older_than
    db = session_factory()
    try:
        stale = [(r.id, r.file_url) for r in receipts_repo.list_pending_before(db, cutoff)]
    finally:
        db.close()

    if stale:
        logger.info("Recovering %d pending receipts", len(stale))
    recovered = 0
    for receipt_id, file_url in stale:
        try:
            content = store.read(store.blob_id_from_url(file_url))
        except Exception as exc:
            logger.warning("Cannot read file for pending receipt %s: %s", receipt_id, exc)
            continue
        run_ocr_pipeline(
            receipt_id,
            content,
            session_factory=session_factory,
            extractor=extractor,
            default_currency=default_currency,
        )
        recovered += 1
    return recovered
