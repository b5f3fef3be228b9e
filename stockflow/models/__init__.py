from stockflow.models.material import Material
from stockflow.models.stock_transaction import StockTransaction, TransactionType
from stockflow.models.daily_usage import DailyUsage
from stockflow.models.stock_alert import StockAlert, AlertType

__all__ = [
    "Material",
    "StockTransaction",
    "TransactionType",
    "DailyUsage",
    "StockAlert",
    "AlertType",
]
