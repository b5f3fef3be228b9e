"""Create the StockFlow tables; pass --seed to load the sample materials through the ledger"""
import asyncio
import sys

from stockflow.config import get_settings
from stockflow.database import engine, Base, AsyncSessionLocal
from stockflow.main import seed_sample_materials
from stockflow.services.ledger_store import LedgerStore


async def init(seed: bool = False):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    print("Database tables created successfully.")

    if seed:
        ledger = LedgerStore(AsyncSessionLocal, get_settings())
        created = await seed_sample_materials(ledger)
        print(f"Seeded {created} sample materials." if created else "Materials already present, nothing seeded.")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(init(seed="--seed" in sys.argv[1:]))
