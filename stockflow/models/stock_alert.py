"""
Stock alert model - raised when a material drops into LOW or CRITICAL
"""
from sqlalchemy import Column, Integer, String, Float, Text, Boolean, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
from stockflow.database import Base
from enum import Enum


class AlertType(str, Enum):
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class StockAlert(Base):
    __tablename__ = "stock_alerts"

    id = Column(Integer, primary_key=True, index=True)
    material_id = Column(Integer, ForeignKey("materials.id"), nullable=False, index=True)

    alert_type = Column(SQLEnum(AlertType, native_enum=False), nullable=False)

    # Snapshot at trigger time
    current_quantity = Column(Float, nullable=True)
    threshold_quantity = Column(Float, nullable=True)
    alert_message = Column(Text, nullable=True)

    # Resolution
    is_resolved = Column(Boolean, nullable=False, default=False)
    resolved_by = Column(String, nullable=True)
    resolved_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    material = relationship("Material")
