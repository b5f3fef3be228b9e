"""
Ledger store tests - quantity invariant, atomicity, validation and alert policy.
"""
import asyncio
import math
from datetime import timedelta

import pytest
from sqlalchemy import select, func

from stockflow.config import Settings
from stockflow.exceptions import DuplicateCodeError, NotFoundError, ValidationError
from stockflow.models.daily_usage import DailyUsage
from stockflow.models.stock_alert import StockAlert, AlertType
from stockflow.models.stock_transaction import StockTransaction, TransactionType
from stockflow.services.aggregation_service import StockStatus, classify_stock
from stockflow.services.ledger_store import LedgerStore
from stockflow.utils.helpers import utc_today


async def count_rows(session_factory, model):
    async with session_factory() as session:
        return await session.scalar(select(func.count(model.id)))


async def alerts_for(session_factory, material_id):
    async with session_factory() as session:
        result = await session.execute(
            select(StockAlert).where(StockAlert.material_id == material_id).order_by(StockAlert.id)
        )
        return result.scalars().all()


# ===================== CREATE MATERIAL =====================


class TestCreateMaterial:

    async def test_steel_plates_scenario(self, ledger, steel, check_ledger):
        material, transactions = await ledger.get_material(steel)
        assert material.current_quantity == 5
        assert len(transactions) == 1
        assert transactions[0].transaction_type == TransactionType.PURCHASE_IN
        assert transactions[0].quantity == 5
        assert transactions[0].balance_after_transaction == 5
        assert classify_stock(material) == StockStatus.LOW

        await ledger.record_daily_usage(steel, 10)

        material, transactions = await ledger.get_material(steel)
        assert material.current_quantity == -5
        latest = transactions[0]
        assert latest.transaction_type == TransactionType.DAILY_USAGE
        assert latest.quantity == -10
        assert latest.balance_after_transaction == -5
        assert classify_stock(material) == StockStatus.CRITICAL
        await check_ledger(steel)

    async def test_derived_levels_and_defaults(self, ledger, steel):
        material, _ = await ledger.get_material(steel)
        assert material.reorder_level == 30
        assert material.max_stock_level == 60
        assert material.category == "Raw Material"
        assert material.supplier == "General Supplies"
        assert material.description == ""
        assert material.is_active is True

    async def test_initial_reference_number(self, ledger, steel):
        _, transactions = await ledger.get_material(steel)
        assert transactions[0].reference_number.startswith("INIT-STL-001-")
        assert transactions[0].notes == "Initial stock"
        assert transactions[0].created_by == "System"

    async def test_zero_initial_quantity_writes_no_history(self, ledger):
        material_id = await ledger.create_material(
            name="PVC Pipes", code="PVC-50", unit="units", min_stock_level=10
        )
        material, transactions = await ledger.get_material(material_id)
        assert material.current_quantity == 0
        assert transactions == []

    async def test_duplicate_code_rejected(self, ledger, steel, session_factory):
        with pytest.raises(DuplicateCodeError) as exc_info:
            await ledger.create_material(
                name="Other Plates", code="STL-001", unit="units",
                min_stock_level=5, initial_quantity=100,
            )
        assert exc_info.value.material_code == "STL-001"

        material, transactions = await ledger.get_material(steel)
        assert material.name == "Steel Plates"
        assert material.current_quantity == 5
        assert len(transactions) == 1
        assert await count_rows(session_factory, StockTransaction) == 1
        assert len(await ledger.list_materials()) == 1

    @pytest.mark.parametrize("missing", ["name", "code", "unit", "min_stock_level"])
    async def test_missing_required_field(self, ledger, session_factory, missing):
        fields = {"name": "Bolts", "code": "BLT-10", "unit": "units", "min_stock_level": 50}
        fields[missing] = None
        with pytest.raises(ValidationError) as exc_info:
            await ledger.create_material(**fields)
        assert exc_info.value.field == missing
        assert await ledger.list_materials() == []

    async def test_blank_name_rejected(self, ledger):
        with pytest.raises(ValidationError):
            await ledger.create_material(name="   ", code="BLT-10", unit="units", min_stock_level=5)

    @pytest.mark.parametrize("min_stock_level", [0, -5, "twenty", True])
    async def test_invalid_min_stock_level(self, ledger, min_stock_level):
        with pytest.raises(ValidationError):
            await ledger.create_material(
                name="Bolts", code="BLT-10", unit="units", min_stock_level=min_stock_level
            )

    async def test_negative_initial_quantity_rejected(self, ledger):
        with pytest.raises(ValidationError):
            await ledger.create_material(
                name="Bolts", code="BLT-10", unit="units", min_stock_level=5, initial_quantity=-1
            )


# ===================== TRANSACTIONS =====================


class TestRecordTransaction:

    async def test_updates_quantity_and_balance(self, ledger, steel, check_ledger):
        tx_id = await ledger.record_transaction(
            steel, "PURCHASE_IN", 40, reference_number="PO-1", created_by="Nexa"
        )
        material, transactions = await ledger.get_material(steel)
        assert material.current_quantity == 45
        assert transactions[0].id == tx_id
        assert transactions[0].balance_after_transaction == 45
        assert transactions[0].created_by == "Nexa"
        assert transactions[0].reference_number == "PO-1"
        await check_ledger(steel)

    async def test_negative_adjustment(self, ledger, steel):
        await ledger.record_transaction(steel, TransactionType.MANUAL_ADJUSTMENT, -2.5)
        material, _ = await ledger.get_material(steel)
        assert material.current_quantity == 2.5

    async def test_unknown_material(self, ledger, session_factory):
        with pytest.raises(NotFoundError):
            await ledger.record_transaction(9999, "PURCHASE_IN", 10)
        assert await count_rows(session_factory, StockTransaction) == 0

    async def test_unknown_type(self, ledger, steel):
        with pytest.raises(ValidationError, match="transaction_type"):
            await ledger.record_transaction(steel, "TELEPORT", 10)

    @pytest.mark.parametrize("quantity", [math.nan, math.inf, None, "10"])
    async def test_bad_quantity(self, ledger, steel, quantity):
        with pytest.raises(ValidationError):
            await ledger.record_transaction(steel, "PURCHASE_IN", quantity)

    async def test_invariant_after_mixed_sequence(self, ledger, steel, check_ledger):
        await ledger.record_transaction(steel, "PURCHASE_IN", 100)
        await ledger.record_daily_usage(steel, 30)
        await ledger.record_transaction(steel, "RETURN_IN", 4.5)
        await ledger.record_transaction(steel, "WRITE_OFF", -0.5)
        await ledger.record_daily_usage(steel, 12)
        await ledger.record_transaction(steel, "ISSUE_OUT", -70)

        material, _ = await ledger.get_material(steel)
        assert material.current_quantity == 5 + 100 - 30 + 4.5 - 0.5 - 12 - 70
        await check_ledger(steel)

    async def test_updated_at_moves(self, ledger, steel):
        before, _ = await ledger.get_material(steel)
        await ledger.record_transaction(steel, "PURCHASE_IN", 1)
        after, _ = await ledger.get_material(steel)
        assert after.updated_at > before.updated_at

        await ledger.record_daily_usage(steel, 1)
        latest, _ = await ledger.get_material(steel)
        assert latest.updated_at > after.updated_at

    async def test_failed_mutation_keeps_updated_at(self, session_factory, steel):
        store = LedgerStore(session_factory, Settings(ALLOW_NEGATIVE_STOCK=False))
        before, _ = await store.get_material(steel)

        with pytest.raises(ValidationError):
            await store.record_daily_usage(steel, 10)

        after, _ = await store.get_material(steel)
        assert after.updated_at == before.updated_at
        assert after.current_quantity == 5

    async def test_locks_released_after_unknown_material(self, ledger):
        for material_id in range(1000, 1200):
            with pytest.raises(NotFoundError):
                await ledger.record_transaction(material_id, "PURCHASE_IN", 1)
            with pytest.raises(NotFoundError):
                await ledger.record_daily_usage(material_id, 1)
        assert len(ledger._locks) == 0

    async def test_locks_released_after_success(self, ledger, steel):
        await asyncio.gather(*[
            ledger.record_transaction(steel, "PURCHASE_IN", 1) for _ in range(10)
        ])
        await ledger.deactivate_material(steel)
        assert len(ledger._locks) == 0


# ===================== DAILY USAGE =====================


class TestRecordDailyUsage:

    async def test_usage_pairs_with_transaction(self, ledger, steel, session_factory):
        usage_id = await ledger.record_daily_usage(
            steel, 3, project_code="P-7", department="Assembly", recorded_by="Nexa", notes="line 2"
        )
        async with session_factory() as session:
            usage = await session.get(DailyUsage, usage_id)
            entry = await session.get(StockTransaction, usage.transaction_id)

        assert usage.quantity_used == 3
        assert usage.usage_date == utc_today()
        assert usage.recorded_by == "Nexa"
        assert entry.transaction_type == TransactionType.DAILY_USAGE
        assert entry.quantity == -3
        assert entry.balance_after_transaction == 2
        assert entry.project_code == "P-7"
        assert entry.reference_number.startswith("USAGE-")

    async def test_explicit_usage_date(self, ledger, steel, session_factory):
        yesterday = utc_today() - timedelta(days=1)
        usage_id = await ledger.record_daily_usage(steel, 1, usage_date=yesterday)
        async with session_factory() as session:
            usage = await session.get(DailyUsage, usage_id)
        assert usage.usage_date == yesterday

    async def test_unknown_material_leaves_nothing_behind(self, ledger, session_factory):
        with pytest.raises(NotFoundError):
            await ledger.record_daily_usage(4242, 5)
        assert await count_rows(session_factory, DailyUsage) == 0
        assert await count_rows(session_factory, StockTransaction) == 0

    @pytest.mark.parametrize("quantity_used", [0, -3, None, math.nan])
    async def test_quantity_must_be_positive(self, ledger, steel, session_factory, quantity_used):
        with pytest.raises(ValidationError):
            await ledger.record_daily_usage(steel, quantity_used)
        assert await count_rows(session_factory, DailyUsage) == 0
        material, _ = await ledger.get_material(steel)
        assert material.current_quantity == 5

    async def test_negative_stock_blocked_when_disabled(self, session_factory, steel, check_ledger):
        strict = LedgerStore(session_factory, Settings(ALLOW_NEGATIVE_STOCK=False))

        with pytest.raises(ValidationError, match="exceeds available stock"):
            await strict.record_daily_usage(steel, 10)

        material, transactions = await strict.get_material(steel)
        assert material.current_quantity == 5
        assert len(transactions) == 1
        assert await count_rows(session_factory, DailyUsage) == 0
        await check_ledger(steel)

        await strict.record_daily_usage(steel, 5)
        material, _ = await strict.get_material(steel)
        assert material.current_quantity == 0


# ===================== READS =====================


class TestReads:

    async def test_recent_transactions_newest_first_and_bounded(self, session_factory, steel):
        store = LedgerStore(session_factory, Settings(RECENT_TRANSACTIONS_LIMIT=3))
        ids = [await store.record_transaction(steel, "PURCHASE_IN", n) for n in (1, 2, 3, 4)]

        _, transactions = await store.get_material(steel)
        assert [t.id for t in transactions] == list(reversed(ids))[:3]

        _, transactions = await store.get_material(steel, limit=10)
        assert len(transactions) == 5

        _, transactions = await store.get_material(steel, limit=0)
        assert transactions == []

    async def test_get_missing_material(self, ledger):
        with pytest.raises(NotFoundError):
            await ledger.get_material(123)

    async def test_search_is_case_insensitive_on_name_or_code(self, ledger, steel):
        await ledger.create_material(name="PVC Pipes", code="PVC-50", unit="units", min_stock_level=10)
        await ledger.create_material(name="Flexible pvc hose", code="HOSE-1", unit="m", min_stock_level=10)
        await ledger.create_material(name="Copper Fitting", code="cu-PvC-02", unit="units", min_stock_level=10)

        found = await ledger.list_materials("pvc")
        assert [m.name for m in found] == ["Copper Fitting", "Flexible pvc hose", "PVC Pipes"]

        assert [m.code for m in await ledger.list_materials("STL")] == ["STL-001"]
        assert len(await ledger.list_materials("")) == 4
        assert len(await ledger.list_materials(None)) == 4

    async def test_search_treats_wildcards_literally(self, ledger, steel):
        assert await ledger.list_materials("%") == []
        assert await ledger.list_materials("_") == []


# ===================== DEACTIVATION =====================


class TestDeactivate:

    async def test_inactive_material_is_hidden_but_history_kept(self, ledger, steel):
        await ledger.deactivate_material(steel)

        assert await ledger.list_materials() == []
        with pytest.raises(NotFoundError):
            await ledger.get_material(steel)
        with pytest.raises(NotFoundError):
            await ledger.record_transaction(steel, "PURCHASE_IN", 1)
        with pytest.raises(NotFoundError):
            await ledger.record_daily_usage(steel, 1)

        history = await ledger.transaction_history(steel)
        assert [t.quantity for t in history] == [5]

    async def test_deactivate_twice(self, ledger, steel):
        await ledger.deactivate_material(steel)
        with pytest.raises(NotFoundError):
            await ledger.deactivate_material(steel)

    async def test_deactivate_closes_alerts(self, ledger, steel, session_factory):
        await ledger.deactivate_material(steel)
        alerts = await alerts_for(session_factory, steel)
        assert alerts and all(a.is_resolved for a in alerts)


# ===================== ALERT POLICY =====================


class TestAlertPolicy:

    async def test_low_stock_opens_warning(self, steel, session_factory):
        alerts = await alerts_for(session_factory, steel)
        assert len(alerts) == 1
        assert alerts[0].alert_type == AlertType.WARNING
        assert alerts[0].threshold_quantity == 20
        assert alerts[0].current_quantity == 5
        assert alerts[0].alert_message == "Low stock! Only 5 units remaining."
        assert alerts[0].is_resolved is False

    async def test_further_low_mutation_keeps_single_alert(self, ledger, steel, session_factory):
        await ledger.record_daily_usage(steel, 1)
        await ledger.record_transaction(steel, "PURCHASE_IN", 2)
        alerts = await alerts_for(session_factory, steel)
        assert len(alerts) == 1
        assert alerts[0].is_resolved is False

    async def test_recovery_resolves_alert(self, ledger, steel, session_factory):
        await ledger.record_transaction(steel, "PURCHASE_IN", 100)
        alerts = await alerts_for(session_factory, steel)
        assert len(alerts) == 1
        assert alerts[0].is_resolved is True
        assert alerts[0].resolved_by == "System"
        assert alerts[0].resolved_at is not None

    async def test_escalation_to_critical(self, ledger, steel, session_factory):
        await ledger.record_daily_usage(steel, 10)
        alerts = await alerts_for(session_factory, steel)
        assert [a.alert_type for a in alerts] == [AlertType.WARNING, AlertType.CRITICAL]
        assert alerts[0].is_resolved is True
        assert alerts[1].is_resolved is False
        assert alerts[1].threshold_quantity == 0
        assert alerts[1].alert_message == "Out of stock! Balance is -5 units."

    async def test_zero_initial_quantity_is_critical(self, ledger, session_factory):
        material_id = await ledger.create_material(
            name="PVC Pipes", code="PVC-50", unit="units", min_stock_level=10
        )
        alerts = await alerts_for(session_factory, material_id)
        assert len(alerts) == 1
        assert alerts[0].alert_type == AlertType.CRITICAL
        assert alerts[0].alert_message == "Out of stock!"

    async def test_healthy_material_has_no_alert(self, ledger, session_factory):
        material_id = await ledger.create_material(
            name="Bolts", code="BLT-10", unit="units", min_stock_level=50, initial_quantity=51
        )
        assert await alerts_for(session_factory, material_id) == []

    async def test_auto_evaluation_can_be_disabled(self, session_factory):
        store = LedgerStore(session_factory, Settings(AUTO_EVALUATE_ALERTS=False))
        material_id = await store.create_material(
            name="PVC Pipes", code="PVC-50", unit="units", min_stock_level=10
        )
        await store.record_daily_usage(material_id, 3)
        assert await count_rows(session_factory, StockAlert) == 0

    async def test_manual_resolve(self, ledger, steel, session_factory):
        alert = (await alerts_for(session_factory, steel))[0]
        resolved = await ledger.resolve_alert(alert.id, resolved_by="Nexa")
        assert resolved.is_resolved is True
        assert resolved.resolved_by == "Nexa"

        again = await ledger.resolve_alert(alert.id, resolved_by="Someone else")
        assert again.resolved_by == "Nexa"

    async def test_resolve_missing_alert(self, ledger):
        with pytest.raises(NotFoundError):
            await ledger.resolve_alert(999)
