"""
Expense API endpoints.

POST   /api/expenses             — create an expense for an unclaimed receipt
GET    /api/expenses             — list with category / date filters
GET    /api/expenses/dashboard   — yearly totals by category and month
GET    /api/expenses/{id}        — get one expense
PUT    /api/expenses/{id}        — edit an expense
DELETE /api/expenses/{id}        — delete expense and its receipt
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from expense_tracker.database import get_db
from expense_tracker.dependencies import (
    get_blob_store,
    get_current_user_id,
    get_default_currency,
)
from expense_tracker.schemas import (
    DashboardSummary,
    ExpenseCreate,
    ExpensePage,
    ExpenseResponse,
    ExpenseUpdate,
)
from expense_tracker.services import expenses as expense_service
from expense_tracker.services.storage import BlobStore

logger = logging.getLogger(__name__)
router = APIRouter()


# ── POST /api/expenses ───────────────────────────────────────────────────
@router.post("/expenses", response_model=ExpenseResponse, status_code=201)
def create_expense(
    req: ExpenseCreate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    default_currency: str = Depends(get_default_currency),
):
    return expense_service.create_expense(db, user_id, req, default_currency=default_currency)


# ── GET /api/expenses ────────────────────────────────────────────────────
@router.get("/expenses", response_model=ExpensePage)
def list_expenses(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    category: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return expense_service.list_expenses(
        db,
        user_id,
        page=page,
        limit=limit,
        category=category,
        start_date=start_date,
        end_date=end_date,
    )


# ── GET /api/expenses/dashboard ──────────────────────────────────────────
@router.get("/expenses/dashboard", response_model=DashboardSummary)
def dashboard(
    year: Optional[int] = Query(None, ge=1970, le=9999),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return expense_service.dashboard_summary(db, user_id, year or date.today().year)


# ── GET /api/expenses/{expense_id} ───────────────────────────────────────
@router.get("/expenses/{expense_id}", response_model=ExpenseResponse)
def get_expense(
    expense_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return expense_service.get_expense(db, expense_id, user_id)


# ── PUT /api/expenses/{expense_id} ───────────────────────────────────────
@router.put("/expenses/{expense_id}", response_model=ExpenseResponse)
def update_expense(
    expense_id: str,
    req: ExpenseUpdate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return expense_service.update_expense(db, expense_id, user_id, req)


# ── DELETE /api/expenses/{expense_id} ────────────────────────────────────
@router.delete("/expenses/{expense_id}", response_model=ExpenseResponse)
def delete_expense(
    expense_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
):
    return expense_service.delete_expense(db, store, expense_id, user_id)
