"""Smart Expense Tracker backend: receipt upload, OCR and expense records."""
