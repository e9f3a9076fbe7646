"""Dial claim service: candidate search and the conditional claim writes."""

from datetime import datetime
from typing import Any

from psycopg import AsyncConnection, sql
from psycopg_pool import AsyncConnectionPool

from promethean.attribution.claims import ContactField
from promethean.attribution.normalizer import Row
from promethean.attribution.schema import ConversionRecord

_CONTACT_MATCH = {
    "email": "lower(email) = %s",
    "phone": "phone = %s",
}

_CONVERSION_TABLES = {
    "appointment": "appointments",
    "discovery": "discoveries",
}


async def find_unclaimed_dials(
    conn: AsyncConnection,
    account_id: str,
    contact_field: ContactField,
    contact_value: str,
    since: datetime,
    until: datetime,
) -> list[Row]:
    """Get unclaimed dials for a contact inside a window, most recent first."""
    row = await conn.execute(
        f"""
        SELECT id, setter_id, rep_id, created_at
        FROM dials
        WHERE account_id = %s
          AND {_CONTACT_MATCH[contact_field]}
          AND booked_appointment_id IS NULL
          AND created_at >= %s
          AND created_at <= %s
        ORDER BY created_at DESC
        """,
        (account_id, contact_value, since, until),
    )
    results = await row.fetchall()
    return [
        {"id": r[0], "setter_id": r[1], "rep_id": r[2], "created_at": r[3]}
        for r in results
    ]


async def claim_dial(
    conn: AsyncConnection,
    dial_id: str,
    conversion_id: str,
) -> bool:
    """Point a dial at a conversion, only if no conversion has claimed it yet.

    The row count of the conditional update decides the winner when
    several deliveries race for the same dial.
    """
    cur = await conn.execute(
        """
        UPDATE dials
        SET booked = true,
            booked_appointment_id = %s
        WHERE id = %s
          AND booked_appointment_id IS NULL
        """,
        (conversion_id, dial_id),
    )
    return cur.rowcount == 1


async def copy_setter(
    conn: AsyncConnection,
    conversion: ConversionRecord,
    setter_id: str,
) -> bool:
    """Fill in the conversion's setter if it is still empty."""
    query = sql.SQL(
        "UPDATE {table} SET setter_id = %s WHERE id = %s AND setter_id IS NULL"
    ).format(table=sql.Identifier(_CONVERSION_TABLES[conversion.kind]))
    cur = await conn.execute(query, (setter_id, conversion.id))
    return cur.rowcount == 1


class PostgresDialClaimStore:
    """DialClaimStore backed by the dials, appointments and discoveries tables."""

    def __init__(self, pool: AsyncConnectionPool[Any]) -> None:
        self.pool = pool

    async def find_unclaimed_dials(
        self,
        account_id: str,
        contact_field: ContactField,
        contact_value: str,
        since: datetime,
        until: datetime,
    ) -> list[Row]:
        async with self.pool.connection() as conn:
            return await find_unclaimed_dials(
                conn, account_id, contact_field, contact_value, since, until
            )

    async def claim_dial(self, dial_id: str, conversion_id: str) -> bool:
        async with self.pool.connection() as conn:
            return await claim_dial(conn, dial_id, conversion_id)

    async def copy_setter(self, conversion: ConversionRecord, setter_id: str) -> bool:
        async with self.pool.connection() as conn:
            return await copy_setter(conn, conversion, setter_id)
