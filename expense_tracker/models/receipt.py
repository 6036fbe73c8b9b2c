"""
SQLAlchemy model for uploaded receipts.
"""
import enum
from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String, Text

from expense_tracker.database import Base


class OcrStatus(str, enum.Enum):
    """pending -> processing -> done | failed. done and failed are terminal."""

    PENDING = "pending"
    PROCESSING = "processing"
    DONE = "done"
    FAILED = "failed"


class ReceiptModel(Base):
    __tablename__ = "receipts"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)

    # Blob store location
    file_url = Column(String, nullable=False)
    file_name = Column(String, nullable=False)
    file_size = Column(Integer, nullable=False)
    mime_type = Column(String, nullable=False)

    # OCR lifecycle
    ocr_status = Column(String, nullable=False, default=OcrStatus.PENDING.value, index=True)
    ocr_result = Column(Text)

    uploaded_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    processed_at = Column(DateTime)
