"""
Aggregation service - read-only views derived from the stock ledger.

Holds the single stock classification rule used by the dashboard, search
filters, API status badges and alert generation:

    current_quantity <= 0                    -> CRITICAL
    0 < current_quantity <= min_stock_level  -> LOW
    current_quantity > min_stock_level       -> HEALTHY
"""
import logging
from collections import Counter
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import async_sessionmaker

from stockflow.models.material import Material
from stockflow.models.stock_transaction import StockTransaction
from stockflow.models.daily_usage import DailyUsage
from stockflow.models.stock_alert import StockAlert
from stockflow.utils.helpers import utc_today

logger = logging.getLogger(__name__)

# Float sums drift in the last bits; anything below this is not a desync
LEDGER_TOLERANCE = 1e-6


class StockStatus(str, Enum):
    HEALTHY = "healthy"
    LOW = "low"
    CRITICAL = "critical"


def classify_quantity(current_quantity: float, min_stock_level: float) -> StockStatus:
    if current_quantity <= 0:
        return StockStatus.CRITICAL
    if current_quantity <= min_stock_level:
        return StockStatus.LOW
    return StockStatus.HEALTHY


def classify_stock(material) -> StockStatus:
    """Classify anything carrying current_quantity and min_stock_level"""
    return classify_quantity(material.current_quantity, material.min_stock_level)


def material_to_dict(material: Material) -> dict:
    return {
        "id": material.id,
        "code": material.code,
        "name": material.name,
        "description": material.description,
        "category": material.category,
        "supplier": material.supplier,
        "unit": material.unit,
        "current_quantity": material.current_quantity,
        "min_stock_level": material.min_stock_level,
        "reorder_level": material.reorder_level,
        "max_stock_level": material.max_stock_level,
        "current_cost": material.current_cost,
        "status": classify_stock(material).value,
        "created_at": material.created_at.isoformat() if material.created_at else None,
        "updated_at": material.updated_at.isoformat() if material.updated_at else None,
    }


class AggregationService:
    """Stateless queries over the ledger. Never writes."""

    def __init__(self, session_factory: async_sessionmaker, ledger):
        self._session_factory = session_factory
        self._ledger = ledger

    async def dashboard_stats(self) -> dict:
        """Counts for the dashboard header"""
        async with self._session_factory() as session:
            result = await session.execute(
                select(Material.current_quantity, Material.min_stock_level)
                .where(Material.is_active == True)
            )
            rows = result.all()
            statuses = Counter(classify_quantity(q, m) for q, m in rows)

            active_alerts = await session.scalar(
                select(func.count(StockAlert.id)).where(StockAlert.is_resolved == False)
            )
            today_usage = await session.scalar(
                select(func.coalesce(func.sum(DailyUsage.quantity_used), 0))
                .where(DailyUsage.usage_date == utc_today())
            )
            total_transactions = await session.scalar(
                select(func.count(StockTransaction.id))
            )

        return {
            "total_materials": len(rows),
            "in_stock": statuses[StockStatus.HEALTHY],
            "low_stock": statuses[StockStatus.LOW],
            "out_of_stock": statuses[StockStatus.CRITICAL],
            "active_alerts": active_alerts or 0,
            "today_usage": float(today_usage or 0),
            "total_transactions": total_transactions or 0,
        }

    async def list_alerts(self) -> list[dict]:
        """Unresolved alerts with material name/code/unit, newest first"""
        async with self._session_factory() as session:
            result = await session.execute(
                select(StockAlert, Material.name, Material.code, Material.unit)
                .join(Material, StockAlert.material_id == Material.id)
                .where(StockAlert.is_resolved == False)
                .order_by(StockAlert.created_at.desc(), StockAlert.id.desc())
            )
            rows = result.all()

        return [
            {
                "id": alert.id,
                "material_id": alert.material_id,
                "alert_type": alert.alert_type.value,
                "current_quantity": alert.current_quantity,
                "threshold_quantity": alert.threshold_quantity,
                "alert_message": alert.alert_message,
                "is_resolved": alert.is_resolved,
                "created_at": alert.created_at.isoformat() if alert.created_at else None,
                "material_name": name,
                "material_code": code,
                "unit": unit,
            }
            for alert, name, code, unit in rows
        ]

    async def search_materials(
        self,
        search: Optional[str] = None,
        category: Optional[str] = None,
        supplier: Optional[str] = None,
        stock_status: Optional[StockStatus] = None,
    ) -> list[Material]:
        """list_materials narrowed by category, supplier and stock status"""
        materials = await self._ledger.list_materials(search)

        if category:
            materials = [m for m in materials if m.category == category]
        if supplier:
            materials = [m for m in materials if m.supplier == supplier]
        if stock_status:
            status = StockStatus(stock_status)
            materials = [m for m in materials if classify_stock(m) == status]
        return materials

    async def export_snapshot(self) -> dict:
        """Everything the UI export button downloads"""
        materials = await self._ledger.list_materials()
        stats = await self.dashboard_stats()
        return {
            "materials": [material_to_dict(m) for m in materials],
            "stats": stats,
            "export_date": datetime.utcnow().isoformat(),
        }

    async def ledger_discrepancies(self) -> list[dict]:
        """Materials whose current_quantity no longer matches their history"""
        history = (
            select(
                StockTransaction.material_id,
                func.sum(StockTransaction.quantity).label("ledger_total"),
            )
            .group_by(StockTransaction.material_id)
            .subquery()
        )
        async with self._session_factory() as session:
            result = await session.execute(
                select(
                    Material.id,
                    Material.code,
                    Material.current_quantity,
                    func.coalesce(history.c.ledger_total, 0),
                )
                .outerjoin(history, history.c.material_id == Material.id)
                .order_by(Material.id)
            )
            rows = result.all()

        discrepancies = []
        for material_id, code, current_quantity, ledger_total in rows:
            difference = current_quantity - ledger_total
            if abs(difference) > LEDGER_TOLERANCE:
                discrepancies.append({
                    "material_id": material_id,
                    "code": code,
                    "current_quantity": current_quantity,
                    "ledger_total": ledger_total,
                    "difference": difference,
                })
        if discrepancies:
            logger.warning(f"Ledger out of sync for {len(discrepancies)} material(s)")
        return discrepancies
