"""
Expense operations: manual and OCR-driven creation, lookup, listing,
editing, deletion and the yearly dashboard.
"""
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from expense_tracker.errors import Conflict, Forbidden, InvalidInput, NotFound
from expense_tracker.models.expense import ExpenseModel
from expense_tracker.repositories import expenses as expenses_repo
from expense_tracker.repositories import receipts as receipts_repo
from expense_tracker.schemas import (
    CategoryTotal,
    DashboardSummary,
    ExpenseCreate,
    ExpensePage,
    ExpenseResponse,
    ExpenseUpdate,
    MonthlyTotal,
    ParsedFields,
)
from expense_tracker.services import page_count, page_window, require_valid_id
from expense_tracker.services.receipts import remove_receipt_blob
from expense_tracker.services.storage import BlobStore

logger = logging.getLogger(__name__)

# Columns that may be edited but never cleared
_REQUIRED_FIELDS = ("amount", "date", "currency")


def _check_amount(amount: Optional[Decimal]) -> None:
    if amount is None or amount <= 0:
        raise InvalidInput("Amount must be greater than 0")
    if amount != amount.quantize(Decimal("0.01")):
        raise InvalidInput("Amount cannot have more than 2 decimal places")


def create_expense(
    db: Session,
    owner_id: str,
    data: ExpenseCreate,
    *,
    default_currency: str = "USD",
    ocr_text: Optional[str] = None,
    parsed_data: Optional[ParsedFields] = None,
) -> ExpenseModel:
    """Create the single expense of a receipt the owner holds.

    Raises ``Conflict`` when the receipt already has an expense; duplicates
    are rejected, never merged.
    """
    _check_amount(data.amount)
    if data.date is None:
        raise InvalidInput("Date is required")
    require_valid_id(data.receipt_id, "receipt")

    receipt = receipts_repo.get(db, data.receipt_id)
    if receipt is None:
        raise NotFound("Receipt not found")
    if receipt.user_id != owner_id:
        raise Forbidden("Access denied")
    if expenses_repo.get_by_receipt(db, data.receipt_id) is not None:
        raise Conflict("Expense already exists for this receipt")

    snapshot = parsed_data or ParsedFields()
    try:
        expense = expenses_repo.create(
            db,
            user_id=owner_id,
            receipt_id=data.receipt_id,
            merchant=data.merchant,
            amount=data.amount,
            currency=(data.currency or default_currency).upper(),
            date=data.date,
            category=data.category,
            payment_method=data.payment_method,
            notes=data.notes,
            tags=list(data.tags),
            ocr_text=ocr_text,
            parsed_data=snapshot.model_dump(mode="json"),
            is_verified=False,
        )
    except IntegrityError:
        # Lost a race with another creator for the same receipt
        db.rollback()
        raise Conflict("Expense already exists for this receipt") from None
    logger.info("Created expense %s for receipt %s", expense.id, data.receipt_id)
    return expense


def get_expense(db: Session, expense_id: str, owner_id: str) -> ExpenseModel:
    require_valid_id(expense_id, "expense")
    expense = expenses_repo.get(db, expense_id)
    if expense is None:
        raise NotFound("Expense not found")
    if expense.user_id != owner_id:
        raise Forbidden("Access denied")
    return expense


def list_expenses(
    db: Session,
    owner_id: str,
    *,
    page: int = 1,
    limit: int = 10,
    category: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> ExpensePage:
    size, offset = page_window(page, limit)
    filters = dict(category=category, start_date=start_date, end_date=end_date)
    rows = expenses_repo.list_for_user(db, owner_id, limit=size, offset=offset, **filters)
    total = expenses_repo.count_for_user(db, owner_id, **filters)
    return ExpensePage(
        items=[ExpenseResponse.model_validate(e) for e in rows],
        page=page,
        limit=size,
        total=total,
        pages=page_count(total, size),
    )


def update_expense(
    db: Session, expense_id: str, owner_id: str, changes: ExpenseUpdate
) -> ExpenseModel:
    """Apply a partial edit. The parsed-field snapshot is not editable."""
    expense = get_expense(db, expense_id, owner_id)
    values = changes.model_dump(exclude_unset=True)
    for name in _REQUIRED_FIELDS:
        if name in values and values[name] is None:
            raise InvalidInput(f"{name} cannot be empty")
    if "amount" in values:
        _check_amount(values["amount"])
    if "currency" in values:
        values["currency"] = values["currency"].upper()
    if "tags" in values and values["tags"] is None:
        values["tags"] = []
    return expenses_repo.update(db, expense, values)


def delete_expense(
    db: Session, store: BlobStore, expense_id: str, owner_id: str
) -> ExpenseResponse:
    """Delete an expense, then best-effort remove its receipt and file."""
    expense = get_expense(db, expense_id, owner_id)
    deleted = ExpenseResponse.model_validate(expense)
    receipt_id = expense.receipt_id

    expenses_repo.delete(db, expense)
    logger.info("Deleted expense %s", expense_id)

    try:
        receipt = receipts_repo.get(db, receipt_id)
        if receipt is not None:
            remove_receipt_blob(store, receipt)
            receipts_repo.delete(db, receipt)
            logger.info("Deleted receipt %s linked to expense %s", receipt_id, expense_id)
    except Exception as exc:
        db.rollback()
        logger.warning("Could not delete receipt %s: %s", receipt_id, exc, exc_info=True)
    return deleted


def _money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(Decimal("0.01"))


def dashboard_summary(db: Session, owner_id: str, year: int) -> DashboardSummary:
    total, count = expenses_repo.yearly_total(db, owner_id, year)
    return DashboardSummary(
        year=year,
        total_amount=_money(total),
        expense_count=count,
        category_totals=[
            CategoryTotal(category=name, total_amount=_money(amount), expense_count=n)
            for name, amount, n in expenses_repo.category_totals(db, owner_id, year)
        ],
        monthly_totals=[
            MonthlyTotal(month=month, total_amount=_money(amount), expense_count=n)
            for month, amount, n in expenses_repo.monthly_totals(db, owner_id, year)
        ],
    )
