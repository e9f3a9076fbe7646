"""Database connection pool management and store dependencies."""

from datetime import timedelta
from typing import Annotated, Any

from fastapi import Depends, Request
from psycopg_pool import AsyncConnectionPool

from promethean.attribution.claims import DialClaimStore
from promethean.attribution.pipeline import EventStore
from promethean.attribution_server.config import settings
from promethean.attribution_server.services.claims import PostgresDialClaimStore
from promethean.attribution_server.services.events import PostgresEventStore
from promethean.attribution_server.services.receipts import PostgresReceiptStore, ReceiptStore


def get_pool(request: Request) -> AsyncConnectionPool[Any]:
    """Get the connection pool from app state."""
    return request.app.state.pool


Pool = Annotated[AsyncConnectionPool[Any], Depends(get_pool)]


def get_event_store(pool: Pool) -> EventStore:
    """Event sources for the metrics pipeline."""
    return PostgresEventStore(pool)


def get_dial_store(pool: Pool) -> DialClaimStore:
    """Dial reads and claim writes for real-time linking."""
    return PostgresDialClaimStore(pool)


def get_receipt_store(pool: Pool) -> ReceiptStore:
    """Webhook replay protection."""
    return PostgresReceiptStore(pool, timedelta(hours=settings.replay_ttl_hours))


Events = Annotated[EventStore, Depends(get_event_store)]
Dials = Annotated[DialClaimStore, Depends(get_dial_store)]
Receipts = Annotated[ReceiptStore, Depends(get_receipt_store)]
