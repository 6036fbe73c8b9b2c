"""
Expense persistence and aggregate queries.
"""
from __future__ import annotations

import uuid
from datetime import date
from typing import Any, Optional

from sqlalchemy import extract, func
from sqlalchemy.orm import Query, Session

from expense_tracker.models.expense import ExpenseModel

UNCATEGORIZED = "Uncategorized"


def create(db: Session, **fields: Any) -> ExpenseModel:
    expense = ExpenseModel(id=str(uuid.uuid4()), **fields)
    db.add(expense)
    db.commit()
    db.refresh(expense)
    return expense


def get(db: Session, expense_id: str) -> Optional[ExpenseModel]:
    return db.query(ExpenseModel).filter(ExpenseModel.id == expense_id).first()


def get_by_receipt(db: Session, receipt_id: str) -> Optional[ExpenseModel]:
    return db.query(ExpenseModel).filter(ExpenseModel.receipt_id == receipt_id).first()


def _filtered(
    db: Session,
    user_id: str,
    category: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> Query:
    query = db.query(ExpenseModel).filter(ExpenseModel.user_id == user_id)
    if category:
        query = query.filter(ExpenseModel.category == category)
    if start_date:
        query = query.filter(ExpenseModel.date >= start_date)
    if end_date:
        query = query.filter(ExpenseModel.date <= end_date)
    return query


def list_for_user(
    db: Session,
    user_id: str,
    *,
    limit: int,
    offset: int,
    category: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> list[ExpenseModel]:
    return (
        _filtered(db, user_id, category, start_date, end_date)
        .order_by(ExpenseModel.date.desc(), ExpenseModel.created_at.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def count_for_user(
    db: Session,
    user_id: str,
    category: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> int:
    return _filtered(db, user_id, category, start_date, end_date).count()


def update(db: Session, expense: ExpenseModel, changes: dict[str, Any]) -> ExpenseModel:
    for key, value in changes.items():
        setattr(expense, key, value)
    db.commit()
    db.refresh(expense)
    return expense


def delete(db: Session, expense: ExpenseModel) -> None:
    db.delete(expense)
    db.commit()


# ── Aggregates ───────────────────────────────────────────────────────────

def _year_query(db: Session, user_id: str, year: int, *columns: Any) -> Query:
    return db.query(*columns).filter(
        ExpenseModel.user_id == user_id,
        ExpenseModel.date >= date(year, 1, 1),
        ExpenseModel.date < date(year + 1, 1, 1),
    )


def yearly_total(db: Session, user_id: str, year: int) -> tuple[Any, int]:
    """``(sum_of_amounts_or_None, count)`` for one calendar year."""
    total, count = _year_query(
        db, user_id, year, func.sum(ExpenseModel.amount), func.count(ExpenseModel.id)
    ).one()
    return total, count


def category_totals(db: Session, user_id: str, year: int) -> list[tuple[str, Any, int]]:
    category = func.coalesce(func.nullif(ExpenseModel.category, ""), UNCATEGORIZED).label("category")
    total = func.sum(ExpenseModel.amount).label("total")
    rows = (
        _year_query(db, user_id, year, category, total, func.count(ExpenseModel.id))
        .group_by(category)
        .order_by(total.desc())
        .all()
    )
    return [(row[0], row[1], row[2]) for row in rows]


def monthly_totals(db: Session, user_id: str, year: int) -> list[tuple[int, Any, int]]:
    month = extract("month", ExpenseModel.date).label("month")
    rows = (
        _year_query(db, user_id, year, month, func.sum(ExpenseModel.amount), func.count(ExpenseModel.id))
        .group_by(month)
        .order_by(month)
        .all()
    )
    return [(int(row[0]), row[1], row[2]) for row in rows]
