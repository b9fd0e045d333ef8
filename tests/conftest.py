# tests/conftest.py
import os
from typing import Optional

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from stockbridge.core.config import Settings
from stockbridge.database import Base, build_session_factory, normalize_database_url
from stockbridge.models import MlItem, Sku, StockLedgerEntry, TnItem
from stockbridge.services.ledger import LedgerStore

# Set TEST_DATABASE_URL to run the database tests against Postgres
TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL")


@pytest.fixture
def settings():
    """Provide test settings"""
    return Settings(
        DATABASE_URL="sqlite+aiosqlite://",
        ML_ACCESS_TOKEN="ml-access",
        ML_REFRESH_TOKEN="ml-refresh",
        ML_CLIENT_ID="ml-client",
        ML_CLIENT_SECRET="ml-secret",
        TN_ACCESS_TOKEN="tn-access",
        TN_STORE_ID="12345",
        TN_WEBHOOK_SECRET="tn-webhook-secret",
        PUSH_CONCURRENCY=4,
        WEBHOOK_WORKERS=2,
        WEBHOOK_QUEUE_SIZE=10,
    )


@pytest.fixture(scope="function")
async def test_engine(tmp_path):
    """Create and configure the test database engine (function-scoped)."""
    if TEST_DATABASE_URL:
        engine = create_async_engine(normalize_database_url(TEST_DATABASE_URL))
    else:
        # File database so concurrent sessions use separate connections
        engine = create_async_engine(
            f"sqlite+aiosqlite:///{tmp_path / 'stockbridge.db'}",
            connect_args={"timeout": 30},
        )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return build_session_factory(test_engine)


@pytest.fixture
def ledger(session_factory):
    return LedgerStore(session_factory)


@pytest.fixture
def seed(session_factory):
    """Helpers that insert rows directly, bypassing the ledger"""

    class Seeder:
        async def sku(self, sku: str, stock: int = 0, title: Optional[str] = None):
            async with session_factory() as session:
                session.add(Sku(sku=sku, stock=stock, title=title or f"Product {sku}"))
                await session.commit()

        async def ml_item(self, item_id: str, sku: str, stock_ml: int = 0):
            async with session_factory() as session:
                session.add(MlItem(item_id=item_id, sku=sku, title=f"ML {item_id}", stock_ml=stock_ml))
                await session.commit()

        async def tn_item(self, product_id: int, variant_id: int, sku: str, stock_tn: int = 0):
            async with session_factory() as session:
                session.add(TnItem(
                    product_id=product_id,
                    variant_id=variant_id,
                    sku=sku,
                    title=f"TN {product_id}/{variant_id}",
                    stock_tn=stock_tn,
                ))
                await session.commit()

        async def movement(self, sku: str, delta: int, reason: str, ref: Optional[str] = None):
            async with session_factory() as session:
                session.add(StockLedgerEntry(sku=sku, delta=delta, reason=reason, ref=ref))
                await session.commit()

    return Seeder()
