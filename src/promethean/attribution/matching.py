"""Nearest-prior-event matching shared by the batch linker and the claim linker."""

from collections.abc import Collection, Iterable
from datetime import datetime, timedelta

from promethean.attribution.schema import Event, EventKind

# Conversion kind -> kinds it may link back to
LINKABLE_KINDS: dict[str, frozenset[EventKind]] = {
    "discovery": frozenset({"dial"}),
    "appointment": frozenset({"dial", "discovery"}),
}


def nearest_prior_event(
    candidates: Iterable[Event],
    *,
    contact_id: str,
    before: datetime,
    window: timedelta,
    kinds: Collection[EventKind],
) -> Event | None:
    """Find the most recent event for a contact inside a trailing window.

    A candidate qualifies when it belongs to ``contact_id``, has one of
    ``kinds``, and ``before - window <= timestamp < before``. Among the
    qualifying events the greatest ``(timestamp, id)`` wins, so the result
    is deterministic regardless of candidate order.

    Args:
        candidates: Events to search.
        contact_id: Contact the match must belong to.
        before: The conversion instant (exclusive upper bound).
        window: Maximum look-back.
        kinds: Allowed candidate kinds.

    Returns:
        The closest preceding event, or None.
    """
    window_start = before - window
    best: Event | None = None
    for event in candidates:
        if event.contact_id != contact_id or event.kind not in kinds:
            continue
        if not window_start <= event.timestamp < before:
            continue
        if best is None or event.sort_key > best.sort_key:
            best = event
    return best


def inherit_setter(conversion: Event, prior: Event) -> Event:
    """Return the conversion carrying the prior event's setter if it has none."""
    if conversion.setter_id is not None or prior.setter_id is None:
        return conversion
    return conversion.model_copy(update={"setter_id": prior.setter_id})
