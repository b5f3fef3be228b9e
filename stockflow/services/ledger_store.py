"""
Ledger store - materials and their append-only quantity history.

Every mutation runs in one database transaction: the material's
current_quantity is moved with a single ``quantity = quantity + delta``
statement, the history row is stamped with the returned balance, and open
alerts are re-evaluated. Mutations on the same material are additionally
serialized by a per-material asyncio.Lock, so concurrent requests inside
one process never race on a stale balance. Different materials do not
block each other.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import Optional

from sqlalchemy import select, update, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stockflow.config import Settings, get_settings
from stockflow.exceptions import DuplicateCodeError, NotFoundError, ValidationError
from stockflow.models.material import Material
from stockflow.models.stock_transaction import StockTransaction, TransactionType
from stockflow.models.daily_usage import DailyUsage
from stockflow.models.stock_alert import StockAlert, AlertType
from stockflow.services.aggregation_service import StockStatus, classify_quantity
from stockflow.utils.helpers import format_quantity, make_reference_number, utc_today
from stockflow.utils.validators import (
    require_text,
    validate_non_negative,
    validate_number,
    validate_positive,
    validate_transaction_type,
)

logger = logging.getLogger(__name__)

REORDER_FACTOR = 1.5
MAX_STOCK_FACTOR = 3

ALERT_TYPE_FOR_STATUS = {
    StockStatus.LOW: AlertType.WARNING,
    StockStatus.CRITICAL: AlertType.CRITICAL,
}


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _alert_message(alert_type: AlertType, quantity: float, unit: str) -> str:
    if alert_type == AlertType.WARNING:
        return f"Low stock! Only {format_quantity(quantity)} {unit} remaining."
    if quantity < 0:
        return f"Out of stock! Balance is {format_quantity(quantity)} {unit}."
    return "Out of stock!"


class LedgerStore:
    """Single source of truth for materials and their transaction history"""

    def __init__(self, session_factory: async_sessionmaker, settings: Optional[Settings] = None):
        self._session_factory = session_factory
        self._settings = settings or get_settings()
        # material_id -> [lock, holders + waiters]; dropped when the count hits zero
        self._locks: dict[int, list] = {}

    @asynccontextmanager
    async def _material_lock(self, material_id: int):
        slot = self._locks.get(material_id)
        if slot is None:
            slot = self._locks[material_id] = [asyncio.Lock(), 0]
        slot[1] += 1
        try:
            async with slot[0]:
                yield
        finally:
            slot[1] -= 1
            if slot[1] == 0:
                del self._locks[material_id]

    def _author(self, name: Optional[str]) -> str:
        if name and name.strip():
            return name.strip()
        return self._settings.SYSTEM_USER

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create_material(
        self,
        name: Optional[str],
        code: Optional[str],
        unit: Optional[str],
        min_stock_level,
        description: Optional[str] = None,
        category: Optional[str] = None,
        initial_quantity=0,
        current_cost=0,
        supplier: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> int:
        """Insert a material and, for a positive initial quantity, its opening PURCHASE_IN entry"""
        name = require_text(name, "name")
        code = require_text(code, "code")
        unit = require_text(unit, "unit")
        min_level = validate_positive(min_stock_level, "min_stock_level")
        initial = validate_non_negative(
            0 if initial_quantity is None else initial_quantity, "initial_quantity"
        )
        cost = validate_non_negative(0 if current_cost is None else current_cost, "current_cost")

        material = Material(
            name=name,
            code=code,
            description=description or "",
            category=category or self._settings.DEFAULT_CATEGORY,
            supplier=supplier or self._settings.DEFAULT_SUPPLIER,
            unit=unit,
            current_quantity=initial,
            min_stock_level=min_level,
            reorder_level=min_level * REORDER_FACTOR,
            max_stock_level=min_level * MAX_STOCK_FACTOR,
            current_cost=cost,
            is_active=True,
        )

        async with self._session_factory() as session:
            try:
                async with session.begin():
                    session.add(material)
                    # The UNIQUE constraint on code decides duplicates here
                    await session.flush()

                    if initial > 0:
                        session.add(StockTransaction(
                            material_id=material.id,
                            transaction_type=TransactionType.PURCHASE_IN,
                            quantity=initial,
                            balance_after_transaction=initial,
                            reference_number=make_reference_number("INIT", code),
                            notes="Initial stock",
                            created_by=self._author(created_by),
                        ))

                    await self._evaluate_alerts(
                        session, material.id, initial, min_level, unit
                    )
            except IntegrityError as e:
                if "code" not in str(e.orig).lower():
                    raise
                logger.warning(f"Rejected duplicate material code '{code}'")
                raise DuplicateCodeError(code) from e

        logger.info(f"Material created: {code} (id={material.id}, qty={initial})")
        return material.id

    async def record_transaction(
        self,
        material_id: int,
        transaction_type,
        quantity,
        reference_number: Optional[str] = None,
        project_code: Optional[str] = None,
        department: Optional[str] = None,
        notes: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> int:
        """Apply a signed delta to a material and append it to the ledger"""
        entry_type = validate_transaction_type(transaction_type)
        delta = validate_number(quantity, "quantity")

        async with self._material_lock(material_id):
            async with self._session_factory() as session:
                async with session.begin():
                    balance = await self._apply_delta(session, material_id, delta)
                    entry = StockTransaction(
                        material_id=material_id,
                        transaction_type=entry_type,
                        quantity=delta,
                        balance_after_transaction=balance,
                        reference_number=reference_number,
                        project_code=project_code,
                        department=department,
                        notes=notes,
                        created_by=self._author(created_by),
                    )
                    session.add(entry)
                    await session.flush()

        logger.info(
            f"Transaction {entry.id}: {entry_type.value} {delta:+g} "
            f"on material {material_id} -> {balance:g}"
        )
        return entry.id

    async def record_daily_usage(
        self,
        material_id: int,
        quantity_used,
        project_code: Optional[str] = None,
        department: Optional[str] = None,
        recorded_by: Optional[str] = None,
        notes: Optional[str] = None,
        usage_date: Optional[date] = None,
    ) -> int:
        """Record consumption: usage row + DAILY_USAGE ledger entry, all or nothing"""
        used = validate_positive(quantity_used, "quantity_used")
        author = self._author(recorded_by)

        async with self._material_lock(material_id):
            async with self._session_factory() as session:
                async with session.begin():
                    balance = await self._apply_delta(session, material_id, -used)

                    if balance < 0 and not self._settings.ALLOW_NEGATIVE_STOCK:
                        raise ValidationError(
                            f"Usage of {used:g} exceeds available stock "
                            f"({balance + used:g}) for material {material_id}",
                            field="quantity_used",
                        )

                    entry = StockTransaction(
                        material_id=material_id,
                        transaction_type=TransactionType.DAILY_USAGE,
                        quantity=-used,
                        balance_after_transaction=balance,
                        reference_number=make_reference_number("USAGE"),
                        project_code=project_code,
                        department=department,
                        notes=notes,
                        created_by=author,
                    )
                    session.add(entry)
                    await session.flush()

                    usage = DailyUsage(
                        material_id=material_id,
                        transaction_id=entry.id,
                        usage_date=usage_date or utc_today(),
                        quantity_used=used,
                        project_code=project_code,
                        department=department,
                        recorded_by=author,
                        notes=notes,
                    )
                    session.add(usage)
                    await session.flush()

        logger.info(f"Daily usage {usage.id}: {used:g} of material {material_id} -> {balance:g}")
        return usage.id

    async def deactivate_material(self, material_id: int) -> None:
        """Soft delete. History rows stay; open alerts are closed."""
        async with self._material_lock(material_id):
            async with self._session_factory() as session:
                async with session.begin():
                    result = await session.execute(
                        update(Material)
                        .where(Material.id == material_id, Material.is_active == True)
                        .values(is_active=False, updated_at=datetime.utcnow())
                        .execution_options(synchronize_session=False)
                    )
                    if result.rowcount == 0:
                        raise NotFoundError("Material", material_id)
                    await self._resolve_open_alerts(session, material_id)

        logger.info(f"Material {material_id} deactivated")

    async def resolve_alert(self, alert_id: int, resolved_by: Optional[str] = None) -> StockAlert:
        async with self._session_factory() as session:
            async with session.begin():
                alert = await session.get(StockAlert, alert_id)
                if alert is None:
                    raise NotFoundError("Alert", alert_id)
                if not alert.is_resolved:
                    alert.is_resolved = True
                    alert.resolved_by = self._author(resolved_by)
                    alert.resolved_at = datetime.utcnow()
                    logger.info(f"Alert {alert_id} resolved by {alert.resolved_by}")
        return alert

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_material(
        self, material_id: int, limit: Optional[int] = None
    ) -> tuple[Material, list[StockTransaction]]:
        """Active material plus its most recent transactions, newest first"""
        if limit is None:
            limit = self._settings.RECENT_TRANSACTIONS_LIMIT
        async with self._session_factory() as session:
            result = await session.execute(
                select(Material).where(Material.id == material_id, Material.is_active == True)
            )
            material = result.scalar_one_or_none()
            if material is None:
                raise NotFoundError("Material", material_id)

            result = await session.execute(
                select(StockTransaction)
                .where(StockTransaction.material_id == material_id)
                .order_by(StockTransaction.created_at.desc(), StockTransaction.id.desc())
                .limit(limit)
            )
            transactions = list(result.scalars().all())

        return material, transactions

    async def list_materials(self, search: Optional[str] = None) -> list[Material]:
        """Active materials whose name or code contains search (any case), by name"""
        query = select(Material).where(Material.is_active == True)

        term = (search or "").strip()
        if term:
            pattern = f"%{_escape_like(term)}%"
            query = query.where(or_(
                Material.name.ilike(pattern, escape="\\"),
                Material.code.ilike(pattern, escape="\\"),
            ))

        async with self._session_factory() as session:
            result = await session.execute(query.order_by(Material.name, Material.id))
            return list(result.scalars().all())

    async def transaction_history(self, material_id: int) -> list[StockTransaction]:
        """Full history of a material in creation order, including inactive materials"""
        async with self._session_factory() as session:
            result = await session.execute(
                select(StockTransaction)
                .where(StockTransaction.material_id == material_id)
                .order_by(StockTransaction.id)
            )
            return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _apply_delta(self, session: AsyncSession, material_id: int, delta: float) -> float:
        """Atomic increment; returns the new balance or raises NotFoundError"""
        result = await session.execute(
            update(Material)
            .where(Material.id == material_id, Material.is_active == True)
            .values(
                current_quantity=Material.current_quantity + delta,
                updated_at=datetime.utcnow(),
            )
            .returning(Material.current_quantity, Material.min_stock_level, Material.unit)
            .execution_options(synchronize_session=False)
        )
        row = result.one_or_none()
        if row is None:
            raise NotFoundError("Material", material_id)

        balance, min_level, unit = row
        await self._evaluate_alerts(session, material_id, balance, min_level, unit)
        return balance

    async def _evaluate_alerts(
        self,
        session: AsyncSession,
        material_id: int,
        quantity: float,
        min_stock_level: float,
        unit: str,
    ) -> None:
        """Keep at most one open alert per material, matching its current status"""
        if not self._settings.AUTO_EVALUATE_ALERTS:
            return

        wanted = ALERT_TYPE_FOR_STATUS.get(classify_quantity(quantity, min_stock_level))
        result = await session.execute(
            select(StockAlert)
            .where(StockAlert.material_id == material_id, StockAlert.is_resolved == False)
            .order_by(StockAlert.id)
        )
        open_alerts = result.scalars().all()

        kept = None
        now = datetime.utcnow()
        for alert in open_alerts:
            if alert.alert_type == wanted and kept is None:
                kept = alert
                continue
            alert.is_resolved = True
            alert.resolved_by = self._settings.SYSTEM_USER
            alert.resolved_at = now
            logger.info(f"Alert {alert.id} auto-resolved for material {material_id}")

        if wanted is not None and kept is None:
            threshold = min_stock_level if wanted == AlertType.WARNING else 0
            session.add(StockAlert(
                material_id=material_id,
                alert_type=wanted,
                current_quantity=quantity,
                threshold_quantity=threshold,
                alert_message=_alert_message(wanted, quantity, unit),
                is_resolved=False,
            ))
            logger.info(f"{wanted.value} alert raised for material {material_id} at {quantity:g}")

    async def _resolve_open_alerts(self, session: AsyncSession, material_id: int) -> None:
        await session.execute(
            update(StockAlert)
            .where(StockAlert.material_id == material_id, StockAlert.is_resolved == False)
            .values(
                is_resolved=True,
                resolved_by=self._settings.SYSTEM_USER,
                resolved_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
