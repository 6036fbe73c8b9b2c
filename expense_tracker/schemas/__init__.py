from expense_tracker.schemas.expense import (
    CategoryTotal,
    DashboardSummary,
    ExpenseCreate,
    ExpensePage,
    ExpenseResponse,
    ExpenseUpdate,
    MonthlyTotal,
    ParsedFields,
)
from expense_tracker.schemas.receipt import ReceiptPage, ReceiptResponse

__all__ = [
    "CategoryTotal",
    "DashboardSummary",
    "ExpenseCreate",
    "ExpensePage",
    "ExpenseResponse",
    "ExpenseUpdate",
    "MonthlyTotal",
    "ParsedFields",
    "ReceiptPage",
    "ReceiptResponse",
]
