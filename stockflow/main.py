"""
Main FastAPI application
"""
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import select, func

from stockflow.config import get_settings
from stockflow.database import engine, Base, AsyncSessionLocal
from stockflow.models import Material
from stockflow.services.ledger_store import LedgerStore
from stockflow.services.aggregation_service import AggregationService
from stockflow.api import materials, transactions, daily_usage, dashboard, alerts, reports
from stockflow.utils.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)

# name, code, description, category, unit, initial quantity, min stock, cost, supplier
SAMPLE_MATERIALS = [
    ("Steel Plates", "STL-001", "Raw materials for construction", "Raw Material", "units", 5, 20, 45.50, "General Supplies Inc."),
    ("Electrical Wire", "EW-100", "Copper electrical wiring", "Electrical", "meters", 15, 50, 2.30, "Electrical Components Ltd."),
    ("PVC Pipes", "PVC-50", "Plastic piping for construction", "Raw Material", "units", 0, 10, 8.75, "General Supplies Inc."),
    ("Bolts", "BLT-10", "Assorted bolts and nuts", "Mechanical", "units", 45, 50, 0.25, "General Supplies Inc."),
]


async def seed_sample_materials(ledger: LedgerStore, session_factory=AsyncSessionLocal) -> int:
    """Insert sample materials through the ledger when the table is empty"""
    async with session_factory() as session:
        count = await session.scalar(select(func.count(Material.id)))
    if count:
        return 0

    for name, code, description, category, unit, qty, min_stock, cost, supplier in SAMPLE_MATERIALS:
        await ledger.create_material(
            name=name,
            code=code,
            unit=unit,
            min_stock_level=min_stock,
            description=description,
            category=category,
            initial_quantity=qty,
            current_cost=cost,
            supplier=supplier,
        )
    logger.info(f"Seeded {len(SAMPLE_MATERIALS)} sample materials")
    return len(SAMPLE_MATERIALS)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created")

    ledger = LedgerStore(AsyncSessionLocal, settings)
    app.state.ledger_store = ledger
    app.state.aggregation_service = AggregationService(AsyncSessionLocal, ledger)

    if settings.SEED_SAMPLE_DATA:
        await seed_sample_materials(ledger)

    yield

    await engine.dispose()

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_origin_regex=settings.CORS_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
)

# Include routers
app.include_router(materials.router, prefix="/api/materials", tags=["Materials"])
app.include_router(transactions.router, prefix="/api/transactions", tags=["Transactions"])
app.include_router(daily_usage.router, prefix="/api/daily-usage", tags=["Daily Usage"])
app.include_router(dashboard.router, prefix="/api/dashboard", tags=["Dashboard"])
app.include_router(alerts.router, prefix="/api/alerts", tags=["Alerts"])
app.include_router(reports.router, prefix="/api", tags=["Reports"])


@app.get("/")
async def root():
    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running"
    }


@app.get("/api/health")
async def health_check():
    return {
        "success": True,
        "database": engine.dialect.name,
        "message": f"{settings.APP_NAME} API is running!",
        "timestamp": datetime.utcnow().isoformat(),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "stockflow.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
