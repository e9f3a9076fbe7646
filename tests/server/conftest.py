"""Pytest fixtures for Promethean Attribution Server tests."""

import os
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Integration tests need TEST_DATABASE_URL (or DATABASE_URL for simpler setups)
_test_db_url = os.environ.get("TEST_DATABASE_URL") or os.environ.get("DATABASE_URL")
if _test_db_url:
    os.environ["DATABASE_URL"] = _test_db_url

from promethean.attribution_server.database import (  # noqa: E402
    get_dial_store,
    get_event_store,
    get_receipt_store,
)
from promethean.attribution_server.main import app  # noqa: E402

SCHEMA_SQL = Path(__file__).resolve().parents[2] / "schema.sql"


class InMemoryReceiptStore:
    def __init__(self) -> None:
        self.seen: set[str] = set()

    async def record(self, webhook_id: str) -> bool:
        if webhook_id in self.seen:
            return False
        self.seen.add(webhook_id)
        return True

    async def release(self, webhook_id: str) -> None:
        self.seen.discard(webhook_id)


@pytest.fixture
def receipt_store() -> InMemoryReceiptStore:
    return InMemoryReceiptStore()


@pytest.fixture
def stores(event_store_factory, dial_store_factory, receipt_store) -> dict[str, Any]:
    """Empty in-memory stores wired into the app's dependencies."""
    wired = {
        "events": event_store_factory(),
        "dials": dial_store_factory(),
        "receipts": receipt_store,
    }
    app.dependency_overrides[get_event_store] = lambda: wired["events"]
    app.dependency_overrides[get_dial_store] = lambda: wired["dials"]
    app.dependency_overrides[get_receipt_store] = lambda: wired["receipts"]
    yield wired
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(stores) -> AsyncIterator[AsyncClient]:
    """Create an async HTTP client for testing."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client


@pytest_asyncio.fixture
async def pool():
    """Create a connection pool against a freshly loaded schema."""
    if not _test_db_url:
        pytest.skip("TEST_DATABASE_URL not set")

    from psycopg_pool import AsyncConnectionPool

    pool = AsyncConnectionPool(_test_db_url, open=False, min_size=1, max_size=5)
    await pool.open(wait=True, timeout=10)
    async with pool.connection() as conn:
        await conn.execute(SCHEMA_SQL.read_text())
        for table in ("dials", "discoveries", "appointments", "webhook_receipts"):
            await conn.execute(f"DELETE FROM {table}")

    yield pool

    await pool.close()
