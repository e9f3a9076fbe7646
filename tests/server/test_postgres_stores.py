"""Integration tests for the PostgreSQL-backed stores."""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from promethean.attribution import (
    ConversionContact,
    ConversionRecord,
    DateRange,
    compute_metrics,
    link_new_conversion,
)
from promethean.attribution_server.services.claims import PostgresDialClaimStore
from promethean.attribution_server.services.events import PostgresEventStore
from promethean.attribution_server.services.receipts import PostgresReceiptStore

pytestmark = pytest.mark.integration


async def _insert_dial(pool, dial_id, created_at, phone="+15550100", setter_id="S1"):
    async with pool.connection() as conn:
        await conn.execute(
            """
            INSERT INTO dials (id, account_id, contact_id, setter_id, phone, created_at)
            VALUES (%s, 'acct-1', 'c1', %s, %s, %s)
            """,
            (dial_id, setter_id, phone, created_at),
        )


async def _insert_appointment(pool, appointment_id, appointment_date, setter_id=None):
    async with pool.connection() as conn:
        await conn.execute(
            """
            INSERT INTO appointments (id, account_id, contact_id, setter_id, rep_id,
                                      appointment_date, appointment_value, showed, closed)
            VALUES (%s, 'acct-1', 'c1', %s, 'R1', %s, 1200, true, true)
            """,
            (appointment_id, setter_id, appointment_date),
        )


class TestPostgresEventStore:
    async def test_compute_metrics_from_tables(self, pool):
        now = datetime.now(UTC)
        await _insert_dial(pool, "d1", now - timedelta(minutes=20))
        await _insert_appointment(pool, "a1", now - timedelta(minutes=10))

        report = await compute_metrics(
            PostgresEventStore(pool), "acct-1", DateRange(start=now - timedelta(days=1))
        )

        assert report.unavailable_sources == []
        assert report.session_count == 1
        assert report.setter_metrics[0].setter_id == "S1"
        assert report.rep_metrics[0].revenue == 1200


class TestPostgresDialClaimStore:
    async def test_claim_and_copy_setter(self, pool):
        now = datetime.now(UTC)
        await _insert_dial(pool, "d1", now - timedelta(hours=20))
        await _insert_appointment(pool, "a1", now)

        result = await link_new_conversion(
            PostgresDialClaimStore(pool),
            "acct-1",
            ConversionContact(phone="+15550100"),
            ConversionRecord(id="a1", kind="appointment"),
        )

        assert result.status == "claimed"
        assert result.setter_copied is True
        async with pool.connection() as conn:
            cur = await conn.execute("SELECT booked, booked_appointment_id FROM dials WHERE id = 'd1'")
            assert await cur.fetchone() == (True, "a1")
            cur = await conn.execute("SELECT setter_id FROM appointments WHERE id = 'a1'")
            assert await cur.fetchone() == ("S1",)

    async def test_concurrent_claims(self, pool):
        await _insert_dial(pool, "d1", datetime.now(UTC) - timedelta(hours=1))
        store = PostgresDialClaimStore(pool)

        outcomes = await asyncio.gather(*(store.claim_dial("d1", f"a{i}") for i in range(5)))

        assert outcomes.count(True) == 1


class TestPostgresReceiptStore:
    async def test_duplicate_detected(self, pool):
        store = PostgresReceiptStore(pool, timedelta(hours=24))
        assert await store.record("wh-1") is True
        assert await store.record("wh-1") is False

    async def test_expired_receipt_accepted_again(self, pool):
        store = PostgresReceiptStore(pool, timedelta(hours=24))
        async with pool.connection() as conn:
            await conn.execute(
                "INSERT INTO webhook_receipts (webhook_id, received_at) VALUES ('wh-1', now() - interval '2 days')"
            )
        assert await store.record("wh-1") is True

    async def test_released_receipt_accepted_again(self, pool):
        store = PostgresReceiptStore(pool, timedelta(hours=24))
        assert await store.record("wh-1") is True
        await store.release("wh-1")
        assert await store.record("wh-1") is True
