from expense_tracker.models.expense import ExpenseModel
from expense_tracker.models.receipt import OcrStatus, ReceiptModel

__all__ = ["ExpenseModel", "OcrStatus", "ReceiptModel"]
