"""
SQLAlchemy model for expenses.
"""
from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, Date, DateTime, ForeignKey, Numeric, String, Text

from expense_tracker.database import Base


class ExpenseModel(Base):
    __tablename__ = "expenses"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)

    merchant = Column(String)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    date = Column(Date, nullable=False, index=True)
    category = Column(String, index=True)
    payment_method = Column(String)

    # At most one expense per receipt
    receipt_id = Column(String, ForeignKey("receipts.id"), nullable=False, unique=True)

    # What OCR saw when the expense was created; never edited afterwards
    ocr_text = Column(Text)
    parsed_data = Column(JSON, nullable=False, default=dict)  # merchant, date, amount

    notes = Column(Text)
    tags = Column(JSON, nullable=False, default=list)
    is_verified = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
