"""
Material model - a stocked item and its current quantity
"""
from sqlalchemy import Column, Integer, String, Float, Text, Boolean, DateTime
from datetime import datetime
from stockflow.database import Base


class Material(Base):
    __tablename__ = "materials"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String, unique=True, nullable=False, index=True)  # "STL-001"
    name = Column(String, nullable=False, index=True)
    description = Column(Text, nullable=True)
    category = Column(String, nullable=True)
    supplier = Column(String, nullable=True)
    unit = Column(String, nullable=False)  # units, meters, kg, etc.

    # Quantity state - current_quantity is the running sum of stock_transactions
    current_quantity = Column(Float, nullable=False, default=0)
    min_stock_level = Column(Float, nullable=False, default=0)
    reorder_level = Column(Float, nullable=False, default=0)
    max_stock_level = Column(Float, nullable=False, default=0)
    current_cost = Column(Float, nullable=False, default=0)

    # Status
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Material {self.code} qty={self.current_quantity}>"
