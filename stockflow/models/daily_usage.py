"""
Daily usage model
"""
from sqlalchemy import Column, Integer, String, Float, Text, Date, DateTime, ForeignKey
from datetime import datetime
from stockflow.database import Base


class DailyUsage(Base):
    """Material consumed on a given day, paired 1:1 with a DAILY_USAGE transaction"""
    __tablename__ = "daily_usage"

    id = Column(Integer, primary_key=True, index=True)
    material_id = Column(Integer, ForeignKey("materials.id"), nullable=False, index=True)
    transaction_id = Column(Integer, ForeignKey("stock_transactions.id"), nullable=True)

    usage_date = Column(Date, nullable=False, index=True)
    quantity_used = Column(Float, nullable=False)  # always positive

    project_code = Column(String, nullable=True)
    department = Column(String, nullable=True)
    recorded_by = Column(String, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
