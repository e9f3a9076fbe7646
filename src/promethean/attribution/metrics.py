"""Fold attributed sessions into setter, rep and setter x rep metrics.

Every ratio with a zero denominator is reported as 0. An appointment marked
closed is counted as held even when ``showed`` was not recorded, which keeps
show and win rates inside [0, 1].
"""

from collections import defaultdict
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from promethean.attribution.schema import (
    INBOUND,
    Event,
    PairMetrics,
    RepMetrics,
    Session,
    SetterMetrics,
)


def ratio(numerator: float, denominator: float) -> float:
    """Divide, returning 0.0 for an empty denominator."""
    return numerator / denominator if denominator else 0.0


def _held(appointment: Event) -> bool:
    return bool(appointment.showed or appointment.closed)


def _closed(appointment: Event) -> bool:
    return bool(appointment.closed)


def _credited_appointments(session: Session) -> Iterator[tuple[str, Event]]:
    """Each appointment in the session with the rep it is credited to."""
    for event in session.events:
        if event.kind != "appointment":
            continue
        rep_id = event.rep_id or session.attributed_rep_id
        if rep_id:
            yield rep_id, event


@dataclass
class _AppointmentTally:
    booked: int = 0
    held: int = 0
    closed: int = 0
    revenue: float = 0.0
    cash: float = 0.0
    cycle_days: list[int] = field(default_factory=list)

    def add(self, appointment: Event, first_touch: Event | None = None) -> None:
        self.booked += 1
        if not _held(appointment):
            return
        self.held += 1
        if not _closed(appointment):
            return
        self.closed += 1
        self.revenue += appointment.monetary_value or 0.0
        self.cash += appointment.cash_collected or 0.0
        if first_touch is not None:
            closed_at = appointment.close_timestamp or appointment.timestamp
            self.cycle_days.append((closed_at - first_touch.timestamp).days)


def setter_metrics(sessions: Iterable[Session]) -> list[SetterMetrics]:
    """Per attributed setter: activity counts, show rate, win rate, revenue."""
    by_setter: dict[str, list[Session]] = defaultdict(list)
    for session in sessions:
        by_setter[session.attributed_setter_id or INBOUND].append(session)

    results = []
    for setter_id, grouped in sorted(by_setter.items()):
        contacts: set[str] = set()
        dials = discoveries = 0
        tally = _AppointmentTally()
        for session in grouped:
            for event in session.events:
                contacts.add(event.contact_id)
                if event.kind == "dial":
                    if not event.rep_id:
                        dials += 1
                elif event.kind == "discovery":
                    discoveries += 1
                else:
                    tally.add(event)
        results.append(
            SetterMetrics(
                setter_id=setter_id,
                unique_contacts=len(contacts),
                outbound_dials=dials,
                discoveries_set=discoveries,
                appointments_booked=tally.booked,
                appointments_showed=tally.held,
                appointments_closed=tally.closed,
                show_rate=ratio(tally.held, tally.booked),
                setter_win_rate=ratio(tally.closed, tally.held),
                attributed_revenue=tally.revenue,
            )
        )
    return results


def rep_metrics(sessions: Iterable[Session]) -> list[RepMetrics]:
    """Per rep, over every appointment credited to them."""
    tallies: dict[str, _AppointmentTally] = defaultdict(_AppointmentTally)
    for session in sessions:
        for rep_id, appointment in _credited_appointments(session):
            tallies[rep_id].add(appointment, first_touch=session.events[0])

    return [
        RepMetrics(
            rep_id=rep_id,
            appointments=tally.booked,
            sales_calls_held=tally.held,
            deals_closed=tally.closed,
            win_rate=ratio(tally.closed, tally.held),
            revenue=tally.revenue,
            cash_collected=tally.cash,
            avg_order_value=ratio(tally.revenue, tally.closed),
            avg_sales_cycle=ratio(sum(tally.cycle_days), len(tally.cycle_days)),
        )
        for rep_id, tally in sorted(tallies.items())
    ]


def pair_metrics(sessions: Iterable[Session]) -> list[PairMetrics]:
    """Per (setter, rep) pair, for the setter x rep matrix."""
    tallies: dict[tuple[str, str], _AppointmentTally] = defaultdict(_AppointmentTally)
    for session in sessions:
        setter_id = session.attributed_setter_id or INBOUND
        for rep_id, appointment in _credited_appointments(session):
            tallies[(setter_id, rep_id)].add(appointment)

    return [
        PairMetrics(
            setter_id=setter_id,
            rep_id=rep_id,
            appointments=tally.booked,
            show_rate=ratio(tally.held, tally.booked),
            win_rate=ratio(tally.closed, tally.held),
            revenue=tally.revenue,
            cash_collected=tally.cash,
            avg_deal_size=ratio(tally.revenue, tally.closed),
        )
        for (setter_id, rep_id), tally in sorted(tallies.items())
    ]
