"""Reconstruct customer-interaction sessions from a flat event list."""

import logging
from collections.abc import Iterable
from datetime import timedelta

from promethean.attribution.matching import LINKABLE_KINDS, inherit_setter, nearest_prior_event
from promethean.attribution.schema import KIND_RANK, Event, Session, SessionLinkingPolicy

logger = logging.getLogger(__name__)


def choose_primary(events: Iterable[Event]) -> Event:
    """Pick the highest-ranked kind, earliest first within that kind."""
    return min(events, key=lambda e: (-KIND_RANK[e.kind], e.sort_key))


def _ordered(events: Iterable[Event]) -> list[Event]:
    return sorted(events, key=lambda e: e.sort_key)


def link_sessions(
    events: Iterable[Event],
    policy: SessionLinkingPolicy | None = None,
) -> list[Session]:
    """Group events into sessions.

    1. Events sharing a correlation key form one explicit session.
    2. Each remaining discovery or appointment, in time order, is merged
       with its nearest prior ungrouped dial (or discovery, for an
       appointment) for the same contact when the gap is within the
       same-call window. The conversion becomes primary and inherits the
       prior event's setter if it has none.
    3. Everything left over becomes a single-event session.

    Every input event lands in exactly one session. Output is sorted by the
    first member's (timestamp, id), then session id.
    """
    policy = policy or SessionLinkingPolicy()
    ordered = _ordered(events)
    sessions: list[Session] = []

    groups: dict[str, list[Event]] = {}
    ungrouped: dict[tuple[str, str], Event] = {}  # keyed by (kind, id)
    for event in ordered:
        if event.correlation_key:
            groups.setdefault(event.correlation_key, []).append(event)
        else:
            ungrouped[(event.kind, event.id)] = event

    for key, members in groups.items():
        sessions.append(
            Session(
                session_id=f"sid_{key}",
                events=members,
                primary_event=choose_primary(members),
                is_inferred=False,
            )
        )

    look_back = timedelta(days=policy.time_window_days)
    same_call = timedelta(minutes=policy.same_call_window_minutes)

    for conversion in list(ungrouped.values()):
        if not conversion.is_conversion:
            continue
        prior = nearest_prior_event(
            (e for e in ungrouped.values() if e is not conversion),
            contact_id=conversion.contact_id,
            before=conversion.timestamp,
            window=look_back,
            kinds=LINKABLE_KINDS[conversion.kind],
        )
        if prior is None:
            continue
        gap = conversion.timestamp - prior.timestamp
        if gap > same_call:
            logger.debug(
                "%s %s: nearest prior %s is %s away, left unlinked",
                conversion.kind,
                conversion.id,
                prior.id,
                gap,
            )
            continue

        del ungrouped[(prior.kind, prior.id)]
        del ungrouped[(conversion.kind, conversion.id)]
        primary = inherit_setter(conversion, prior)
        sessions.append(
            Session(
                session_id=f"inferred_{prior.id}_{conversion.id}",
                events=[prior, primary],
                primary_event=primary,
                is_inferred=True,
            )
        )

    for event in ungrouped.values():
        sessions.append(
            Session(
                session_id=f"standalone_{event.id}",
                events=[event],
                primary_event=event,
                is_inferred=False,
            )
        )

    sessions.sort(key=lambda s: (s.events[0].sort_key, s.session_id))
    return sessions
