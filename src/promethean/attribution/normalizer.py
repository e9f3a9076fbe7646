"""Convert stored dial, discovery and appointment rows into canonical events."""

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, ValidationError

from promethean.attribution.schema import Event, EventSourceName, MetricsFilters

logger = logging.getLogger(__name__)

Row = Mapping[str, Any]

_ID_FIELDS = ("id", "contact_id", "setter_id", "rep_id", "correlation_key")


class DroppedRecord(BaseModel):
    """A source row that could not be turned into an Event."""

    source: EventSourceName
    record_id: str | None
    reason: str


class NormalizedEvents(BaseModel):
    """Normalizer output: time-ordered events plus what was skipped."""

    events: list[Event] = Field(default_factory=list)
    dropped: list[DroppedRecord] = Field(default_factory=list)


def _dial_fields(row: Row) -> dict:
    return {
        "id": row.get("id"),
        "kind": "dial",
        "contact_id": row.get("contact_id"),
        "setter_id": row.get("setter_id"),
        "rep_id": row.get("rep_id"),
        "correlation_key": row.get("call_sid"),
        "timestamp": row.get("created_at"),
    }


def _discovery_fields(row: Row) -> dict:
    # Discoveries never carry a rep
    return {
        "id": row.get("id"),
        "kind": "discovery",
        "contact_id": row.get("contact_id"),
        "setter_id": row.get("setter_id"),
        "correlation_key": row.get("call_sid"),
        "timestamp": row.get("created_at"),
    }


def _appointment_fields(row: Row) -> dict:
    return {
        "id": row.get("id"),
        "kind": "appointment",
        "contact_id": row.get("contact_id"),
        "setter_id": row.get("setter_id"),
        "rep_id": row.get("rep_id"),
        "correlation_key": row.get("call_sid"),
        "timestamp": row.get("appointment_date"),
        "monetary_value": row.get("appointment_value"),
        "showed": row.get("showed"),
        "closed": row.get("closed"),
        "cash_collected": row.get("cash_collected"),
        "close_timestamp": row.get("closed_at"),
    }


_FIELD_MAPPERS: dict[EventSourceName, Callable[[Row], dict]] = {
    "dials": _dial_fields,
    "discoveries": _discovery_fields,
    "appointments": _appointment_fields,
}


def _clean(fields: dict) -> dict:
    """Blank strings count as absent; database UUIDs become plain ids."""
    cleaned = {}
    for key, value in fields.items():
        if key in _ID_FIELDS and isinstance(value, UUID | int):
            value = str(value)
        elif isinstance(value, str):
            value = value.strip() or None
        cleaned[key] = value
    return cleaned


def passes_filters(event: Event, filters: MetricsFilters) -> bool:
    """Allow-list check: an absent setter or rep is never excluded."""
    if filters.rep_ids and event.rep_id is not None and event.rep_id not in filters.rep_ids:
        return False
    if (
        filters.setter_ids
        and event.setter_id is not None
        and event.setter_id not in filters.setter_ids
    ):
        return False
    return True


def normalize_events(
    dials: Iterable[Row] = (),
    discoveries: Iterable[Row] = (),
    appointments: Iterable[Row] = (),
    filters: MetricsFilters | None = None,
) -> NormalizedEvents:
    """Build one time-ordered event list from the three sources.

    Malformed rows (missing contact, unparseable timestamp, ...) are dropped
    with a warning instead of aborting the batch.

    Args:
        dials: Rows from the dials store.
        discoveries: Rows from the discoveries store.
        appointments: Rows from the appointments store.
        filters: Optional rep/setter allow-lists.

    Returns:
        Events sorted by (timestamp, id), and the dropped records.
    """
    filters = filters or MetricsFilters()
    result = NormalizedEvents()

    sources: tuple[tuple[EventSourceName, Iterable[Row]], ...] = (
        ("dials", dials),
        ("discoveries", discoveries),
        ("appointments", appointments),
    )
    for source, rows in sources:
        to_fields = _FIELD_MAPPERS[source]
        seen_ids: set[str] = set()
        for row in rows:
            fields = _clean(to_fields(row))
            try:
                event = Event.model_validate(fields)
            except ValidationError as exc:
                reason = "; ".join(
                    f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
                )
                logger.warning("Dropping malformed %s record %s: %s", source, fields["id"], reason)
                result.dropped.append(
                    DroppedRecord(source=source, record_id=fields["id"], reason=reason)
                )
                continue
            # Ids are only unique within one source
            if event.id in seen_ids:
                logger.warning("Dropping repeated %s record %s", source, event.id)
                result.dropped.append(
                    DroppedRecord(source=source, record_id=event.id, reason="duplicate id")
                )
                continue
            seen_ids.add(event.id)
            if passes_filters(event, filters):
                result.events.append(event)

    result.events.sort(key=lambda e: e.sort_key)
    return result
