"""Assign setter and rep credit to sessions."""

from collections.abc import Iterable

from promethean.attribution.schema import INBOUND, Event, Session, SessionLinkingPolicy


def _is_real_setter(setter_id: str | None) -> bool:
    return bool(setter_id) and setter_id != INBOUND


def primary_setter(session: Session) -> str:
    """Setter on the primary event, or INBOUND."""
    setter_id = session.primary_event.setter_id
    return setter_id if _is_real_setter(setter_id) else INBOUND


def _latest_setter(events: Iterable[Event]) -> str | None:
    touches = [e for e in events if _is_real_setter(e.setter_id)]
    if not touches:
        return None
    return max(touches, key=lambda e: e.sort_key).setter_id


def last_touch_setter(session: Session) -> str:
    """Latest setter touch in the session.

    For a conversion session the touch must come strictly before the
    conversion; when none survived de-duplication the conversion's own setter
    is credited. Sessions without a conversion credit their latest touch.
    """
    conversion = session.primary_event
    if not conversion.is_conversion:
        return _latest_setter(session.events) or INBOUND
    prior = _latest_setter(
        e for e in session.events if e is not conversion and e.timestamp < conversion.timestamp
    )
    if prior:
        return prior
    return conversion.setter_id if _is_real_setter(conversion.setter_id) else INBOUND


def assisting_setters(session: Session, credited: str) -> list[str]:
    """Distinct real setters who touched the session, other than the credited one."""
    seen: dict[str, None] = {}  # ordered set
    for event in session.events:
        setter_id = event.setter_id
        if setter_id and _is_real_setter(setter_id) and setter_id != credited:
            seen[setter_id] = None
    return list(seen)


def session_rep(session: Session) -> str | None:
    """Rep of the earliest appointment, else the latest member carrying a rep."""
    for event in session.events:
        if event.kind == "appointment" and event.rep_id:
            return event.rep_id
    with_rep = [e for e in session.events if e.rep_id]
    if not with_rep:
        return None
    return max(with_rep, key=lambda e: e.sort_key).rep_id


def attribute(
    sessions: Iterable[Session],
    policy: SessionLinkingPolicy | None = None,
) -> list[Session]:
    """Return copies of the sessions with setter and rep credit resolved.

    ``assist`` credits exactly like ``primary`` and additionally lists the
    other setters who touched the session; no credit split is computed.
    """
    policy = policy or SessionLinkingPolicy()
    attributed: list[Session] = []
    for session in sessions:
        if policy.attribution_mode == "last-touch":
            setter_id = last_touch_setter(session)
        else:
            setter_id = primary_setter(session)

        assists = assisting_setters(session, setter_id) if policy.attribution_mode == "assist" else []
        attributed.append(
            session.model_copy(
                update={
                    "attributed_setter_id": setter_id,
                    "attributed_rep_id": session_rep(session),
                    "assisting_setter_ids": assists,
                }
            )
        )
    return attributed
