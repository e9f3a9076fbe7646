"""Event source queries for the attribution pipeline."""

from datetime import datetime
from typing import Any

from psycopg import AsyncConnection
from psycopg_pool import AsyncConnectionPool

from promethean.attribution.normalizer import Row


def _range_clause(column: str, since: datetime | None, until: datetime | None) -> tuple[str, list]:
    conditions = []
    params: list = []
    if since is not None:
        conditions.append(f"{column} >= %s")
        params.append(since)
    if until is not None:
        conditions.append(f"{column} <= %s")
        params.append(until)
    return "".join(f" AND {c}" for c in conditions), params


async def fetch_dials(
    conn: AsyncConnection,
    account_id: str,
    since: datetime | None = None,
    until: datetime | None = None,
) -> list[Row]:
    """Get dials for an account, ordered by call time."""
    range_sql, range_params = _range_clause("created_at", since, until)
    row = await conn.execute(
        f"""
        SELECT id, contact_id, setter_id, rep_id, call_sid, created_at
        FROM dials
        WHERE account_id = %s{range_sql}
        ORDER BY created_at ASC
        """,
        (account_id, *range_params),
    )
    results = await row.fetchall()
    return [_row_to_dial(r) for r in results]


async def fetch_discoveries(
    conn: AsyncConnection,
    account_id: str,
    since: datetime | None = None,
    until: datetime | None = None,
) -> list[Row]:
    """Get discovery calls for an account, ordered by creation time."""
    range_sql, range_params = _range_clause("created_at", since, until)
    row = await conn.execute(
        f"""
        SELECT id, contact_id, setter_id, call_sid, created_at
        FROM discoveries
        WHERE account_id = %s{range_sql}
        ORDER BY created_at ASC
        """,
        (account_id, *range_params),
    )
    results = await row.fetchall()
    return [_row_to_discovery(r) for r in results]


async def fetch_appointments(
    conn: AsyncConnection,
    account_id: str,
    since: datetime | None = None,
    until: datetime | None = None,
) -> list[Row]:
    """Get appointments for an account, ordered by appointment date."""
    range_sql, range_params = _range_clause("appointment_date", since, until)
    row = await conn.execute(
        f"""
        SELECT id, contact_id, setter_id, rep_id, call_sid, appointment_date,
               appointment_value, showed, closed, cash_collected, closed_at
        FROM appointments
        WHERE account_id = %s{range_sql}
        ORDER BY appointment_date ASC
        """,
        (account_id, *range_params),
    )
    results = await row.fetchall()
    return [_row_to_appointment(r) for r in results]


class PostgresEventStore:
    """EventStore backed by the dials, discoveries and appointments tables.

    Each fetch takes its own pooled connection so the pipeline can run the
    three queries concurrently.
    """

    def __init__(self, pool: AsyncConnectionPool[Any]) -> None:
        self.pool = pool

    async def fetch_dials(
        self, account_id: str, since: datetime | None, until: datetime | None
    ) -> list[Row]:
        async with self.pool.connection() as conn:
            return await fetch_dials(conn, account_id, since, until)

    async def fetch_discoveries(
        self, account_id: str, since: datetime | None, until: datetime | None
    ) -> list[Row]:
        async with self.pool.connection() as conn:
            return await fetch_discoveries(conn, account_id, since, until)

    async def fetch_appointments(
        self, account_id: str, since: datetime | None, until: datetime | None
    ) -> list[Row]:
        async with self.pool.connection() as conn:
            return await fetch_appointments(conn, account_id, since, until)


def _row_to_dial(row: tuple) -> dict:
    """Convert a database row to a raw dial record."""
    return {
        "id": row[0],
        "contact_id": row[1],
        "setter_id": row[2],
        "rep_id": row[3],
        "call_sid": row[4],
        "created_at": row[5],
    }


def _row_to_discovery(row: tuple) -> dict:
    """Convert a database row to a raw discovery record."""
    return {
        "id": row[0],
        "contact_id": row[1],
        "setter_id": row[2],
        "call_sid": row[3],
        "created_at": row[4],
    }


def _row_to_appointment(row: tuple) -> dict:
    """Convert a database row to a raw appointment record."""
    return {
        "id": row[0],
        "contact_id": row[1],
        "setter_id": row[2],
        "rep_id": row[3],
        "call_sid": row[4],
        "appointment_date": row[5],
        "appointment_value": row[6],
        "showed": row[7],
        "closed": row[8],
        "cash_collected": row[9],
        "closed_at": row[10],
    }
