"""
Stock transaction model - append-only ledger of quantity deltas
"""
from sqlalchemy import Column, Integer, String, Float, Text, DateTime, ForeignKey, Enum as SQLEnum
from datetime import datetime
from stockflow.database import Base
from enum import Enum


class TransactionType(str, Enum):
    PURCHASE_IN = "PURCHASE_IN"
    RETURN_IN = "RETURN_IN"
    DAILY_USAGE = "DAILY_USAGE"
    ISSUE_OUT = "ISSUE_OUT"
    WRITE_OFF = "WRITE_OFF"
    MANUAL_ADJUSTMENT = "MANUAL_ADJUSTMENT"


class StockTransaction(Base):
    """One signed quantity delta applied to one material. Never updated."""
    __tablename__ = "stock_transactions"

    id = Column(Integer, primary_key=True, index=True)
    material_id = Column(Integer, ForeignKey("materials.id"), nullable=False, index=True)

    transaction_type = Column(SQLEnum(TransactionType, native_enum=False), nullable=False)
    quantity = Column(Float, nullable=False)  # signed delta
    balance_after_transaction = Column(Float, nullable=False)

    # Optional context
    reference_number = Column(String, nullable=True)
    project_code = Column(String, nullable=True)
    department = Column(String, nullable=True)
    notes = Column(Text, nullable=True)

    created_by = Column(String, nullable=False, default="System")
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
