"""
Receipt API schemas.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ReceiptResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    file_url: str
    file_name: str
    file_size: int
    mime_type: str
    ocr_status: str
    ocr_result: Optional[str] = None
    uploaded_at: datetime
    processed_at: Optional[datetime] = None


class ReceiptPage(BaseModel):
    items: list[ReceiptResponse]
    page: int
    limit: int
    total: int
    pages: int
