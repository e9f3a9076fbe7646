"""Replay protection for webhook deliveries.

Receipts live in the database rather than process memory so they survive
restarts and are shared by every server instance. They expire after a TTL.
"""

from datetime import timedelta
from typing import Any, Protocol

from psycopg import AsyncConnection
from psycopg_pool import AsyncConnectionPool


class ReceiptStore(Protocol):
    async def record(self, webhook_id: str) -> bool:
        """Store a delivery id. Returns False if it was already seen."""
        ...

    async def release(self, webhook_id: str) -> None:
        """Forget a delivery so a retry of it is processed again."""
        ...


async def record_receipt(
    conn: AsyncConnection,
    webhook_id: str,
    ttl: timedelta,
) -> bool:
    """Record a delivery; False when an unexpired receipt already exists."""
    await conn.execute(
        "DELETE FROM webhook_receipts WHERE received_at < now() - %s",
        (ttl,),
    )
    cur = await conn.execute(
        """
        INSERT INTO webhook_receipts (webhook_id)
        VALUES (%s)
        ON CONFLICT (webhook_id) DO NOTHING
        """,
        (webhook_id,),
    )
    return cur.rowcount == 1


async def release_receipt(conn: AsyncConnection, webhook_id: str) -> None:
    await conn.execute(
        "DELETE FROM webhook_receipts WHERE webhook_id = %s",
        (webhook_id,),
    )


class PostgresReceiptStore:
    """ReceiptStore backed by the webhook_receipts table."""

    def __init__(self, pool: AsyncConnectionPool[Any], ttl: timedelta) -> None:
        self.pool = pool
        self.ttl = ttl

    async def record(self, webhook_id: str) -> bool:
        async with self.pool.connection() as conn:
            return await record_receipt(conn, webhook_id, self.ttl)

    async def release(self, webhook_id: str) -> None:
        async with self.pool.connection() as conn:
            await release_receipt(conn, webhook_id)
