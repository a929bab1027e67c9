"""Integration-test fixtures (requires running PG, opt-in).

Pre-condition: alembic upgrade head against settings.DATABASE_URL, then
RUN_INTEGRATION=1 pytest tests/integration

All integration tests share a single event loop so that the module-level
SQLAlchemy async engine pool stays valid across the session.
"""

import os
import uuid
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy import text

from src.pm_common.database import async_session_factory
from src.pm_ledger.application.engine import LedgerEngine

_SEED_ACCOUNT_SQL = text("INSERT INTO accounts (user_id, balance) VALUES (:user_id, :balance)")
_SEED_MARKET_SQL = text("INSERT INTO markets (id, name) VALUES (:id, :name)")
_CLEANUP_SQL = (
    text("DELETE FROM ledger_entries WHERE user_id = :user_id"),
    text("DELETE FROM positions WHERE user_id = :user_id"),
    text("DELETE FROM accounts WHERE user_id = :user_id"),
    text("DELETE FROM markets WHERE id = :market_id"),
)


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if os.getenv("RUN_INTEGRATION") == "1":
        return
    skip = pytest.mark.skip(reason="set RUN_INTEGRATION=1 with a migrated PostgreSQL")
    for item in items:
        if "integration" in item.nodeid:
            item.add_marker(skip)


@pytest_asyncio.fixture(loop_scope="session")
async def seeded() -> AsyncGenerator[tuple[str, str], None]:
    """A fresh account with balance 100 and a fresh market; removed afterwards."""
    user_id = f"it_{uuid.uuid4().hex[:10]}"
    market_id = f"MKT-{uuid.uuid4().hex[:8]}"
    async with async_session_factory() as db, db.begin():
        await db.execute(_SEED_ACCOUNT_SQL, {"user_id": user_id, "balance": 100})
        await db.execute(_SEED_MARKET_SQL, {"id": market_id, "name": "Integration market"})
    yield user_id, market_id
    async with async_session_factory() as db, db.begin():
        for sql in _CLEANUP_SQL:
            await db.execute(sql, {"user_id": user_id, "market_id": market_id})


@pytest.fixture
def pg_engine() -> LedgerEngine:
    return LedgerEngine(async_session_factory)
