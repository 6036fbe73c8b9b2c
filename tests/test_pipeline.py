"""
Unit tests for the OCR pipeline — parser, classifier, extractor and orchestrator.
"""
from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest
import pytesseract

from conftest import STARBUCKS_TEXT, FakeExtractor, make_image
from expense_tracker.errors import ExtractionError
from expense_tracker.models import ExpenseModel, OcrStatus
from expense_tracker.pipeline import (
    NON_IMAGE_RESULT,
    UNKNOWN_MERCHANT,
    recover_pending_receipts,
    run_ocr_pipeline,
)
from expense_tracker.pipeline.classifier import classify
from expense_tracker.pipeline.extractor import TesseractExtractor
from expense_tracker.pipeline.parser import (
    extract_amount,
    extract_date,
    extract_merchant,
    normalize_amount,
    parse_receipt_text,
)
from expense_tracker.repositories import expenses as expenses_repo
from expense_tracker.repositories import receipts as receipts_repo
from expense_tracker.schemas import ParsedFields


# =====================================================================
# Amount
# =====================================================================
class TestAmount:
    def test_total_with_dollar(self):
        assert extract_amount("Coffee\ntotal: $12.50\n") == Decimal("12.50")

    def test_amount_with_comma_decimal(self):
        assert extract_amount("AMOUNT: 12,50") == Decimal("12.50")

    def test_total_beats_later_families(self):
        text = "Item $99.99\nTotal: 10.00\n5.55"
        assert extract_amount(text) == Decimal("10.00")

    def test_subtotal_is_not_total(self):
        text = "Subtotal: 7.80\nTax: 0.85\nTotal: 8.65"
        assert extract_amount(text) == Decimal("8.65")

    def test_total_run_into_number(self):
        text = "SUBTOTAL11.00\nTAX1.50\nTOTAL12.50\n"
        assert extract_amount(text) == Decimal("12.50")

    def test_amount_run_into_number(self):
        assert extract_amount("Ref 3.14\nAMOUNT$7.25") == Decimal("7.25")

    def test_totals_word_is_not_total(self):
        assert extract_amount("Totals 3.00\nPaid $5.00") == Decimal("5.00")

    def test_dollar_before_bare(self):
        assert extract_amount("Ref 3.14\nPaid $20.00") == Decimal("20.00")

    def test_bare_number(self):
        assert extract_amount("Latte 4.85") == Decimal("4.85")

    def test_thousands_separator(self):
        assert extract_amount("TOTAL $1,234.56") == Decimal("1234.56")

    def test_zero_total_falls_through(self):
        assert extract_amount("Total: 0.00\nCash $20.00") == Decimal("20.00")

    def test_nothing_positive(self):
        assert extract_amount("Total: 0.00") is None

    def test_no_numbers(self):
        assert extract_amount("Thank you for visiting") is None

    @pytest.mark.parametrize(
        "raw, expected",
        [("12,50", "12.50"), ("$3.00", "3.00"), ("1,234.56", "1234.56")],
    )
    def test_normalize(self, raw, expected):
        assert normalize_amount(raw) == Decimal(expected)


# =====================================================================
# Date
# =====================================================================
class TestDate:
    def test_month_first_slash(self):
        assert extract_date("12/25/2024") == date(2024, 12, 25)

    def test_day_first_when_month_impossible(self):
        assert extract_date("25/12/2024") == date(2024, 12, 25)

    def test_two_digit_year(self):
        assert extract_date("Date: 01-15-24") == date(2024, 1, 15)

    def test_year_first(self):
        assert extract_date("Printed 2024-03-05 10:31") == date(2024, 3, 5)

    def test_day_word_month(self):
        assert extract_date("15 March 2024") == date(2024, 3, 15)

    def test_word_month_day(self):
        assert extract_date("Visited on Sept 5, 2023") == date(2023, 9, 5)

    def test_invalid_date_is_absent(self):
        assert extract_date("31/02/2024") is None

    def test_no_date(self):
        assert extract_date("Total: 4.00") is None


# =====================================================================
# Merchant
# =====================================================================
class TestMerchant:
    def test_first_line(self):
        assert extract_merchant("\n  Joe's Diner \nTotal 4.00") == "Joe's Diner"

    def test_address_first_line_uses_second(self):
        assert extract_merchant("123 Main Street\nCorner Bakery\nTotal 3.00") == "Corner Bakery"

    def test_address_keyword_without_digit(self):
        assert extract_merchant("Ocean Avenue Plaza\nSurf Shop") == "Surf Shop"

    def test_address_only_line_kept(self):
        assert extract_merchant("42 Elm Road") == "42 Elm Road"

    def test_empty_text(self):
        assert extract_merchant("  \n\n") is None


class TestParseReceiptText:
    def test_all_fields(self):
        parsed = parse_receipt_text(STARBUCKS_TEXT)
        assert parsed.merchant == "Starbucks"
        assert parsed.amount == Decimal("45.99")
        assert parsed.date == date(2024, 12, 25)

    def test_pure(self):
        assert parse_receipt_text(STARBUCKS_TEXT) == parse_receipt_text(STARBUCKS_TEXT)


# =====================================================================
# Classifier
# =====================================================================
class TestClassifier:
    def test_food(self):
        assert classify("STARBUCKS #1234") == "food"

    def test_transport(self):
        assert classify("Uber trip receipt") == "transport"

    def test_groceries(self):
        assert classify("Walmart Supercenter") == "groceries"

    def test_declaration_order_wins(self):
        # "store" (shopping) is declared before "pharmacy" (healthcare)
        assert classify("Pharmacy Store") == "shopping"

    def test_unknown(self):
        assert classify("Receipt #000") is None

    def test_deterministic(self):
        assert classify(STARBUCKS_TEXT) == classify(STARBUCKS_TEXT) == "food"


# =====================================================================
# Extractor
# =====================================================================
class TestTesseractExtractor:
    def test_returns_engine_text(self, monkeypatch):
        seen = {}

        def fake_image_to_string(image, lang, timeout):
            seen.update(mode=image.mode, lang=lang, timeout=timeout)
            return "Total: 9.99\n"

        monkeypatch.setattr(pytesseract, "image_to_string", fake_image_to_string)
        extractor = TesseractExtractor(language="deu", timeout=7)
        assert extractor.extract(make_image("PNG")) == "Total: 9.99\n"
        assert seen == {"mode": "RGB", "lang": "deu", "timeout": 7}

    @pytest.mark.parametrize(
        "error",
        [pytesseract.TesseractError(1, "engine crashed"), RuntimeError("Tesseract process timeout")],
    )
    def test_engine_errors_become_extraction_error(self, monkeypatch, error):
        def failing(image, lang, timeout):
            raise error

        monkeypatch.setattr(pytesseract, "image_to_string", failing)
        with pytest.raises(ExtractionError, match="Failed to extract text from image"):
            TesseractExtractor().extract(make_image())

    def test_undecodable_bytes(self, monkeypatch):
        def never_called(image, lang, timeout):
            raise AssertionError("engine should not run")

        monkeypatch.setattr(pytesseract, "image_to_string", never_called)
        with pytest.raises(ExtractionError):
            TesseractExtractor().extract(b"not an image")

    def test_custom_binary(self, monkeypatch):
        monkeypatch.setattr(pytesseract.pytesseract, "tesseract_cmd", "tesseract")
        TesseractExtractor(tesseract_cmd="/opt/tesseract/bin/tesseract")
        assert pytesseract.pytesseract.tesseract_cmd == "/opt/tesseract/bin/tesseract"


# =====================================================================
# Orchestrator
# =====================================================================
def _receipt(db, mime_type="image/jpeg", user_id="user-1", **fields):
    return receipts_repo.create(
        db,
        user_id=user_id,
        file_url=fields.pop("file_url", "http://testserver/uploads/receipts/user-1/r.jpg"),
        file_name="r.jpg",
        file_size=1024,
        mime_type=mime_type,
        ocr_status=fields.pop("ocr_status", OcrStatus.PENDING.value),
        **fields,
    )


def _reload(db, receipt_id):
    db.expire_all()
    return receipts_repo.get(db, receipt_id), expenses_repo.get_by_receipt(db, receipt_id)


class TestOrchestrator:
    def test_image_creates_expense(self, db, session_factory):
        receipt = _receipt(db)
        status = run_ocr_pipeline(
            receipt.id, b"img", session_factory=session_factory, extractor=FakeExtractor()
        )
        assert status is OcrStatus.DONE

        receipt, expense = _reload(db, receipt.id)
        assert receipt.ocr_status == "done"
        assert receipt.ocr_result == STARBUCKS_TEXT
        assert receipt.processed_at is not None
        assert expense is not None
        assert expense.amount == Decimal("45.99")
        assert expense.date == date(2024, 12, 25)
        assert expense.merchant == "Starbucks"
        assert expense.category == "food"
        assert expense.currency == "USD"
        assert expense.is_verified is False
        assert expense.ocr_text == STARBUCKS_TEXT
        assert expense.parsed_data == {
            "merchant": "Starbucks",
            "amount": "45.99",
            "date": "2024-12-25",
        }

    def test_pdf_skips_ocr(self, db, session_factory):
        receipt = _receipt(db, mime_type="application/pdf")
        extractor = FakeExtractor()
        status = run_ocr_pipeline(
            receipt.id, b"%PDF", session_factory=session_factory, extractor=extractor
        )
        assert status is OcrStatus.DONE
        assert extractor.calls == 0

        receipt, expense = _reload(db, receipt.id)
        assert receipt.ocr_status == "done"
        assert receipt.ocr_result == NON_IMAGE_RESULT
        assert expense is None

    def test_extraction_error_marks_failed(self, db, session_factory):
        receipt = _receipt(db)
        extractor = FakeExtractor(error=ExtractionError("engine crashed"))
        status = run_ocr_pipeline(
            receipt.id, b"img", session_factory=session_factory, extractor=extractor
        )
        assert status is OcrStatus.FAILED

        receipt, expense = _reload(db, receipt.id)
        assert receipt.ocr_status == "failed"
        assert receipt.ocr_result is None
        assert expense is None

    def test_unexpected_error_marks_failed(self, db, session_factory):
        receipt = _receipt(db)
        extractor = FakeExtractor(error=ValueError("bad bytes"))
        run_ocr_pipeline(receipt.id, b"img", session_factory=session_factory, extractor=extractor)

        receipt, _ = _reload(db, receipt.id)
        assert receipt.ocr_status == "failed"

    def test_no_amount_means_no_expense(self, db, session_factory):
        receipt = _receipt(db)
        text = "Corner Shop\nThank you\nTotal: 0.00"
        run_ocr_pipeline(
            receipt.id, b"img", session_factory=session_factory, extractor=FakeExtractor(text)
        )

        receipt, expense = _reload(db, receipt.id)
        assert receipt.ocr_status == "done"
        assert receipt.ocr_result == text
        assert expense is None

    def test_missing_date_defaults_to_today(self, db, session_factory):
        receipt = _receipt(db)
        run_ocr_pipeline(
            receipt.id,
            b"img",
            session_factory=session_factory,
            extractor=FakeExtractor("Corner Bakery\nTotal: 3.50"),
        )

        _, expense = _reload(db, receipt.id)
        assert expense.amount == Decimal("3.50")
        assert expense.date == date.today()
        assert expense.merchant == "Corner Bakery"
        assert expense.parsed_data["date"] is None

    def test_missing_merchant_uses_placeholder(self, db, session_factory, monkeypatch):
        monkeypatch.setattr(
            "expense_tracker.pipeline.parse_receipt_text",
            lambda text: ParsedFields(amount=Decimal("5.00")),
        )
        receipt = _receipt(db)
        run_ocr_pipeline(
            receipt.id, b"img", session_factory=session_factory, extractor=FakeExtractor()
        )

        _, expense = _reload(db, receipt.id)
        assert expense.merchant == UNKNOWN_MERCHANT
        assert expense.parsed_data["merchant"] is None

    def test_not_pending_is_skipped(self, db, session_factory):
        receipt = _receipt(db, ocr_status=OcrStatus.DONE.value)
        extractor = FakeExtractor()
        status = run_ocr_pipeline(
            receipt.id, b"img", session_factory=session_factory, extractor=extractor
        )
        assert status is None
        assert extractor.calls == 0

        receipt, expense = _reload(db, receipt.id)
        assert receipt.ocr_status == "done"
        assert expense is None

    def test_second_run_is_noop(self, db, session_factory):
        receipt = _receipt(db)
        run_ocr_pipeline(receipt.id, b"img", session_factory=session_factory, extractor=FakeExtractor())
        again = run_ocr_pipeline(
            receipt.id, b"img", session_factory=session_factory, extractor=FakeExtractor()
        )
        assert again is None
        db.expire_all()
        assert db.query(ExpenseModel).count() == 1

    def test_existing_expense_is_kept(self, db, session_factory):
        receipt = _receipt(db)
        manual = expenses_repo.create(
            db,
            user_id="user-1",
            receipt_id=receipt.id,
            amount=Decimal("1.00"),
            currency="USD",
            date=date(2024, 1, 1),
            parsed_data={},
            tags=[],
        )
        status = run_ocr_pipeline(
            receipt.id, b"img", session_factory=session_factory, extractor=FakeExtractor()
        )
        assert status is OcrStatus.DONE

        receipt, expense = _reload(db, receipt.id)
        assert receipt.ocr_status == "done"
        assert expense.id == manual.id
        assert expense.amount == Decimal("1.00")

    def test_missing_receipt_does_not_raise(self, session_factory):
        assert run_ocr_pipeline(
            "7d3c4a3e-0000-4000-8000-000000000000",
            b"img",
            session_factory=session_factory,
            extractor=FakeExtractor(),
        ) is None


# =====================================================================
# Pending recovery
# =====================================================================
class TestRecovery:
    def test_stale_pending_receipts_are_processed(self, db, session_factory, store):
        blob = store.store(make_image(), folder="receipts/user-1", key="old.jpg", resource_kind="image")
        stale = _receipt(
            db,
            file_url=blob.url,
            uploaded_at=datetime.utcnow() - timedelta(hours=1),
        )
        fresh = _receipt(db, file_url=blob.url)

        count = recover_pending_receipts(
            session_factory, store, FakeExtractor(), older_than=timedelta(minutes=10)
        )
        assert count == 1

        stale, expense = _reload(db, stale.id)
        assert stale.ocr_status == "done"
        assert expense is not None
        fresh, _ = _reload(db, fresh.id)
        assert fresh.ocr_status == "pending"

    def test_missing_blob_is_skipped(self, db, session_factory, store):
        stale = _receipt(
            db,
            file_url="http://testserver/uploads/receipts/user-1/gone.jpg",
            uploaded_at=datetime.utcnow() - timedelta(hours=1),
        )
        count = recover_pending_receipts(
            session_factory, store, FakeExtractor(), older_than=timedelta(minutes=10)
        )
        assert count == 0
        stale, _ = _reload(db, stale.id)
        assert stale.ocr_status == "pending"
