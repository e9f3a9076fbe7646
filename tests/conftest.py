"""Pytest fixtures: in-memory event and dial stores."""

import asyncio
from datetime import datetime

import pytest

from promethean.attribution.schema import ConversionRecord


class InMemoryEventStore:
    """EventStore over plain row lists; a source set to an exception fails."""

    def __init__(self, dials=None, discoveries=None, appointments=None) -> None:
        self.sources = {
            "dials": dials or [],
            "discoveries": discoveries or [],
            "appointments": appointments or [],
        }
        self.calls: list[tuple[str, datetime | None, datetime | None]] = []

    async def _fetch(self, source, time_column, since, until):
        self.calls.append((source, since, until))
        rows = self.sources[source]
        if isinstance(rows, Exception):
            raise rows
        return [
            r
            for r in rows
            if (since is None or r[time_column] >= since) and (until is None or r[time_column] <= until)
        ]

    async def fetch_dials(self, account_id, since, until):
        return await self._fetch("dials", "created_at", since, until)

    async def fetch_discoveries(self, account_id, since, until):
        return await self._fetch("discoveries", "created_at", since, until)

    async def fetch_appointments(self, account_id, since, until):
        return await self._fetch("appointments", "appointment_date", since, until)


class InMemoryDialStore:
    """DialClaimStore with a compare-and-set claim.

    Reads yield to the event loop so concurrent callers all see the same
    unclaimed dial before any of them claims it.
    """

    def __init__(self, dials=None) -> None:
        self.dials: dict[str, dict] = {d["id"]: dict(d) for d in dials or []}
        self.setters: dict[str, str] = {}
        self.fail_search = False

    async def find_unclaimed_dials(self, account_id, contact_field, contact_value, since, until):
        await asyncio.sleep(0)
        if self.fail_search:
            raise ConnectionError("dial store unreachable")
        matches = []
        for dial in self.dials.values():
            value = dial.get(contact_field) or ""
            if contact_field == "email":
                value = value.lower()
            if (
                dial["account_id"] == account_id
                and value == contact_value
                and dial.get("booked_appointment_id") is None
                and since <= dial["created_at"] <= until
            ):
                matches.append(dial)
        return matches

    async def claim_dial(self, dial_id, conversion_id):
        await asyncio.sleep(0)
        dial = self.dials[dial_id]
        if dial.get("booked_appointment_id") is not None:
            return False
        dial["booked_appointment_id"] = conversion_id
        return True

    async def copy_setter(self, conversion: ConversionRecord, setter_id):
        if conversion.id in self.setters:
            return False
        self.setters[conversion.id] = setter_id
        return True


@pytest.fixture
def event_store_factory():
    """Build an InMemoryEventStore from row lists."""
    return InMemoryEventStore


@pytest.fixture
def dial_store_factory():
    """Build an InMemoryDialStore from dial rows."""
    return InMemoryDialStore
