"""Batch pipeline: fetch, normalize, link, de-duplicate, attribute, aggregate."""

import asyncio
import logging
from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta
from typing import Protocol

from promethean.attribution.attribution import attribute
from promethean.attribution.dedup import deduplicate
from promethean.attribution.errors import MetricsUnavailableError
from promethean.attribution.linking import link_sessions
from promethean.attribution.metrics import pair_metrics, rep_metrics, setter_metrics
from promethean.attribution.normalizer import Row, normalize_events
from promethean.attribution.schema import (
    DateRange,
    Event,
    EventSourceName,
    MetricsFilters,
    MetricsReport,
    Session,
    SessionLinkingPolicy,
)

logger = logging.getLogger(__name__)

SOURCES: tuple[EventSourceName, ...] = ("dials", "discoveries", "appointments")


class EventStore(Protocol):
    """Read access to the three event sources for one account.

    Each fetch returns raw rows whose timestamp falls inside
    ``[since, until]`` (either bound may be None).
    """

    async def fetch_dials(
        self, account_id: str, since: datetime | None, until: datetime | None
    ) -> Sequence[Row]: ...

    async def fetch_discoveries(
        self, account_id: str, since: datetime | None, until: datetime | None
    ) -> Sequence[Row]: ...

    async def fetch_appointments(
        self, account_id: str, since: datetime | None, until: datetime | None
    ) -> Sequence[Row]: ...


def build_sessions(
    events: Iterable[Event],
    policy: SessionLinkingPolicy | None = None,
) -> list[Session]:
    """Link, de-duplicate and attribute in one pure step."""
    policy = policy or SessionLinkingPolicy()
    return attribute(deduplicate(link_sessions(events, policy), policy), policy)


async def fetch_rows(
    store: EventStore,
    account_id: str,
    since: datetime | None,
    until: datetime | None,
) -> tuple[dict[EventSourceName, Sequence[Row]], list[EventSourceName]]:
    """Fetch the three sources concurrently.

    A failing source is logged and treated as empty.

    Returns:
        Rows per source, and the names of the sources that failed.

    Raises:
        MetricsUnavailableError: If every source failed.
    """
    results = await asyncio.gather(
        store.fetch_dials(account_id, since, until),
        store.fetch_discoveries(account_id, since, until),
        store.fetch_appointments(account_id, since, until),
        return_exceptions=True,
    )

    rows: dict[EventSourceName, Sequence[Row]] = {}
    failures: dict[str, BaseException] = {}
    for source, result in zip(SOURCES, results, strict=True):
        if isinstance(result, Exception):
            logger.warning("Event source %s unavailable for %s: %s", source, account_id, result)
            failures[source] = result
            rows[source] = []
        elif isinstance(result, BaseException):
            raise result
        else:
            rows[source] = result

    if len(failures) == len(SOURCES):
        raise MetricsUnavailableError(failures)
    return rows, [s for s in SOURCES if s in failures]


async def compute_metrics(
    store: EventStore,
    account_id: str,
    date_range: DateRange | None = None,
    policy: SessionLinkingPolicy | None = None,
    filters: MetricsFilters | None = None,
) -> MetricsReport:
    """Compute setter, rep and pair metrics for an account.

    Events are fetched from ``time_window_days`` before the range start so
    conversions early in the range can still link to earlier dials; only
    sessions whose primary event falls inside the range are aggregated.

    Args:
        store: Event source collaborator.
        account_id: Account to report on.
        date_range: Reporting range (open by default).
        policy: Linking/de-duplication/attribution policy.
        filters: Optional rep and setter allow-lists.

    Returns:
        The three metric views, plus partial-result details.

    Raises:
        MetricsUnavailableError: If no event source could be read.
    """
    date_range = date_range or DateRange()
    policy = policy or SessionLinkingPolicy()

    since = date_range.start
    if since is not None:
        since -= timedelta(days=policy.time_window_days)

    rows, unavailable = await fetch_rows(store, account_id, since, date_range.end)
    normalized = normalize_events(
        rows["dials"], rows["discoveries"], rows["appointments"], filters
    )

    sessions = [
        s
        for s in build_sessions(normalized.events, policy)
        if date_range.contains(s.primary_event.timestamp)
    ]
    logger.debug(
        "Account %s: %d events -> %d sessions in range",
        account_id,
        len(normalized.events),
        len(sessions),
    )

    return MetricsReport(
        setter_metrics=setter_metrics(sessions),
        rep_metrics=rep_metrics(sessions),
        pair_metrics=pair_metrics(sessions),
        unavailable_sources=unavailable,
        dropped_events=len(normalized.dropped),
        session_count=len(sessions),
    )
