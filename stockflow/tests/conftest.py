"""
Test fixtures - in-memory SQLite ledger + HTTP client
"""
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from stockflow.config import Settings
from stockflow.database import Base, create_session_factory
from stockflow.main import app
from stockflow.api.deps import get_ledger_store, get_aggregation_service
from stockflow.services.ledger_store import LedgerStore
from stockflow.services.aggregation_service import AggregationService


@pytest.fixture()
def settings():
    return Settings(SEED_SAMPLE_DATA=False, DEBUG=False)


@pytest_asyncio.fixture()
async def db_engine():
    """Fresh in-memory SQLite database for each test, one shared connection"""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture()
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest.fixture()
def ledger(session_factory, settings):
    return LedgerStore(session_factory, settings)


@pytest.fixture()
def aggregation(session_factory, ledger):
    return AggregationService(session_factory, ledger)


@pytest_asyncio.fixture()
async def steel(ledger):
    """STL-001 with 5 units against a minimum of 20"""
    return await ledger.create_material(
        name="Steel Plates",
        code="STL-001",
        unit="units",
        min_stock_level=20,
        initial_quantity=5,
    )


@pytest_asyncio.fixture()
async def client(ledger, aggregation):
    """httpx AsyncClient bound to the FastAPI app with test services"""
    app.dependency_overrides[get_ledger_store] = lambda: ledger
    app.dependency_overrides[get_aggregation_service] = lambda: aggregation

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", follow_redirects=True) as ac:
        yield ac

    app.dependency_overrides.clear()


async def _assert_ledger_consistent(ledger, material_id):
    """current_quantity equals the running sum of history, and every balance snapshot matches"""
    material, _ = await ledger.get_material(material_id)
    history = await ledger.transaction_history(material_id)

    running = 0.0
    for entry in history:
        running += entry.quantity
        assert entry.balance_after_transaction == pytest.approx(running)
    assert material.current_quantity == pytest.approx(running)


@pytest.fixture()
def check_ledger(ledger):
    async def check(material_id):
        await _assert_ledger_consistent(ledger, material_id)
    return check
