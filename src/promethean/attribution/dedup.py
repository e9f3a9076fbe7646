"""Policy-driven exclusion of double-counted events."""

from collections.abc import Iterable

from promethean.attribution.linking import choose_primary
from promethean.attribution.schema import Event, Session, SessionLinkingPolicy


def _filter_events(events: list[Event], policy: SessionLinkingPolicy) -> list[Event]:
    kept = events
    if policy.exclude_in_call_dials and any(e.is_conversion for e in kept):
        kept = [e for e in kept if e.kind != "dial"]
    if policy.exclude_rep_dials:
        # A rep's own dial is not setter outbound activity
        kept = [e for e in kept if not (e.kind == "dial" and e.rep_id)]
    return kept


def deduplicate(
    sessions: Iterable[Session],
    policy: SessionLinkingPolicy | None = None,
) -> list[Session]:
    """Apply the exclusion rules and recompute each primary event.

    Sessions left without events are dropped. Applying this twice gives the
    same result as applying it once.
    """
    policy = policy or SessionLinkingPolicy()
    result: list[Session] = []
    for session in sessions:
        events = _filter_events(session.events, policy)
        if not events:
            continue
        result.append(
            session.model_copy(update={"events": events, "primary_event": choose_primary(events)})
        )
    return result
