"""
Expense schemas: request bodies, responses, the parsed-field snapshot and
dashboard aggregates.
"""
from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# Amounts are stored as Numeric(12, 2): whole cents, at least one
MIN_AMOUNT = Decimal("0.01")


class ParsedFields(BaseModel):
    """Best-effort fields pulled out of OCR text. Every field is optional."""

    merchant: Optional[str] = None
    amount: Optional[Decimal] = None
    date: Optional[dt.date] = None


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class ExpenseCreate(BaseModel):
    receipt_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., ge=MIN_AMOUNT, decimal_places=2)
    date: dt.date
    merchant: Optional[str] = None
    category: Optional[str] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    payment_method: Optional[str] = None
    notes: Optional[str] = None
    tags: list[str] = Field(default_factory=list)


class ExpenseUpdate(BaseModel):
    amount: Optional[Decimal] = Field(None, ge=MIN_AMOUNT, decimal_places=2)
    date: Optional[dt.date] = None
    merchant: Optional[str] = None
    category: Optional[str] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    payment_method: Optional[str] = None
    notes: Optional[str] = None
    tags: Optional[list[str]] = None
    is_verified: Optional[bool] = None


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class ExpenseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    receipt_id: str
    merchant: Optional[str] = None
    amount: Decimal
    currency: str
    date: dt.date
    category: Optional[str] = None
    payment_method: Optional[str] = None
    ocr_text: Optional[str] = None
    parsed_data: ParsedFields = Field(default_factory=ParsedFields)
    notes: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    is_verified: bool = False
    created_at: dt.datetime
    updated_at: dt.datetime


class ExpensePage(BaseModel):
    items: list[ExpenseResponse]
    page: int
    limit: int
    total: int
    pages: int


class CategoryTotal(BaseModel):
    category: str
    total_amount: Decimal
    expense_count: int


class MonthlyTotal(BaseModel):
    month: int
    total_amount: Decimal
    expense_count: int


class DashboardSummary(BaseModel):
    year: int
    total_amount: Decimal = Decimal("0")
    expense_count: int = 0
    category_totals: list[CategoryTotal] = Field(default_factory=list)
    monthly_totals: list[MonthlyTotal] = Field(default_factory=list)
