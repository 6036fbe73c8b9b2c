"""
Text extraction from receipt images with Tesseract.
"""
from __future__ import annotations

import io
import logging
import time

import pytesseract
from PIL import Image

from expense_tracker.errors import ExtractionError

logger = logging.getLogger(__name__)


class TesseractExtractor:
    """Runs Tesseract on image bytes and returns the recognised text."""

    def __init__(self, language: str = "eng", timeout: int = 0, tesseract_cmd: str = ""):
        self.language = language
        self.timeout = timeout
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd

    def extract(self, content: bytes) -> str:
        started = time.monotonic()
        logger.info("OCR started (%d bytes, lang=%s)", len(content), self.language)
        try:
            with Image.open(io.BytesIO(content)) as image:
                text = pytesseract.image_to_string(
                    image.convert("RGB"),
                    lang=self.language,
                    timeout=self.timeout,
                )
        except (pytesseract.TesseractError, OSError, RuntimeError) as exc:
            # RuntimeError is how pytesseract reports a timeout
            raise ExtractionError("Failed to extract text from image") from exc
        logger.info(
            "OCR finished in %.2fs (%d characters)", time.monotonic() - started, len(text)
        )
        return text
