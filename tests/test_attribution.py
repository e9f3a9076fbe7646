"""Tests for setter and rep attribution."""

from datetime import UTC, datetime, timedelta

import pytest

from promethean.attribution import (
    INBOUND,
    Event,
    Session,
    SessionLinkingPolicy,
    attribute,
    build_sessions,
    setter_metrics,
)

T0 = datetime(2025, 3, 3, 15, 0, tzinfo=UTC)


def _event(event_id, kind, minutes=0, **kwargs):
    return Event(
        id=event_id,
        kind=kind,
        contact_id="c1",
        timestamp=T0 + timedelta(minutes=minutes),
        **kwargs,
    )


def _session(*events, primary=None):
    events = list(events)
    return Session(
        session_id="sid_test",
        events=events,
        primary_event=primary or events[-1],
    )


def _attribute(session, mode):
    (result,) = attribute([session], SessionLinkingPolicy(attribution_mode=mode))
    return result


class TestPrimaryMode:
    def test_credits_primary_setter(self):
        session = _session(_event("d1", "dial", 0, setter_id="S1"), _event("a1", "appointment", 5, setter_id="S2"))
        assert _attribute(session, "primary").attributed_setter_id == "S2"

    def test_missing_setter_is_inbound(self):
        """GIVEN a primary event without setter SHOULD credit INBOUND, never None."""
        session = _session(_event("a1", "appointment", 0))
        assert _attribute(session, "primary").attributed_setter_id == INBOUND


class TestLastTouchMode:
    def test_latest_setter_before_conversion(self):
        session = _session(
            _event("d1", "dial", 0, setter_id="S1"),
            _event("d2", "dial", 5, setter_id="S2"),
            _event("a1", "appointment", 10, setter_id="S3"),
        )
        assert _attribute(session, "last-touch").attributed_setter_id == "S2"

    def test_ignores_inbound_touches(self):
        session = _session(
            _event("d1", "dial", 0, setter_id="S1"),
            _event("d2", "dial", 5, setter_id=INBOUND),
            _event("a1", "appointment", 10),
        )
        assert _attribute(session, "last-touch").attributed_setter_id == "S1"

    def test_no_prior_touch_falls_back_to_conversion_setter(self):
        session = _session(_event("a1", "appointment", 0, setter_id="S3"))
        assert _attribute(session, "last-touch").attributed_setter_id == "S3"

    def test_no_setter_anywhere_is_inbound(self):
        session = _session(_event("a1", "appointment", 0))
        assert _attribute(session, "last-touch").attributed_setter_id == INBOUND

    def test_touches_after_conversion_ignored(self):
        conversion = _event("a1", "appointment", 5, setter_id="S3")
        session = _session(
            _event("d1", "dial", 0, setter_id="S1"),
            conversion,
            _event("d2", "dial", 10, setter_id="S2"),
            primary=conversion,
        )
        assert _attribute(session, "last-touch").attributed_setter_id == "S1"

    def test_dial_only_session_credits_its_setter(self):
        session = _session(_event("d1", "dial", 0, setter_id="S1"))
        assert _attribute(session, "last-touch").attributed_setter_id == "S1"


class TestLastTouchThroughPipeline:
    """Last-touch credit after linking and de-duplication with the default policy."""

    @pytest.fixture
    def events(self):
        return [
            _event("d1", "dial", 0, setter_id="S1"),
            _event("v1", "discovery", 10),
            _event("d9", "dial", 5000, setter_id="S1"),
            _event("a9", "appointment", 90000, setter_id="S2"),
        ]

    def test_setters_survive_in_call_dial_removal(self, events):
        """GIVEN in-call dials excluded
        SHOULD credit the setter the conversion inherited, not INBOUND."""
        sessions = build_sessions(events, SessionLinkingPolicy(attribution_mode="last-touch"))

        assert {s.session_id: s.attributed_setter_id for s in sessions} == {
            "inferred_d1_v1": "S1",
            "standalone_d9": "S1",
            "standalone_a9": "S2",
        }

    def test_standalone_dial_counted_for_its_setter(self, events):
        sessions = build_sessions(events, SessionLinkingPolicy(attribution_mode="last-touch"))
        by_setter = {m.setter_id: m for m in setter_metrics(sessions)}

        assert INBOUND not in by_setter
        assert by_setter["S1"].outbound_dials == 1
        assert by_setter["S1"].discoveries_set == 1
        assert by_setter["S2"].appointments_booked == 1

    def test_matches_primary_when_only_one_setter(self, events):
        last_touch = build_sessions(events, SessionLinkingPolicy(attribution_mode="last-touch"))
        primary = build_sessions(events, SessionLinkingPolicy(attribution_mode="primary"))
        assert [s.attributed_setter_id for s in last_touch] == [
            s.attributed_setter_id for s in primary
        ]


class TestAssistMode:
    def test_credits_like_primary_and_lists_assists(self):
        """GIVEN several setters in a session SHOULD credit the primary setter
        and list the others without splitting credit."""
        session = _session(
            _event("d1", "dial", 0, setter_id="S1"),
            _event("d2", "dial", 5, setter_id="S2"),
            _event("d3", "dial", 7, setter_id="S1"),
            _event("a1", "appointment", 10, setter_id="S3"),
        )
        result = _attribute(session, "assist")
        assert result.attributed_setter_id == _attribute(session, "primary").attributed_setter_id
        assert result.assisting_setter_ids == ["S1", "S2"]

    def test_other_modes_list_no_assists(self):
        session = _session(_event("d1", "dial", 0, setter_id="S1"), _event("a1", "appointment", 5))
        assert _attribute(session, "primary").assisting_setter_ids == []


class TestRepCredit:
    def test_rep_from_appointment(self):
        session = _session(
            _event("d1", "dial", 0, rep_id="R9"),
            _event("a1", "appointment", 5, rep_id="R1"),
        )
        assert _attribute(session, "primary").attributed_rep_id == "R1"

    def test_rep_from_dial_when_no_appointment(self):
        session = _session(_event("d1", "dial", 0, rep_id="R9"))
        assert _attribute(session, "primary").attributed_rep_id == "R9"

    def test_no_rep(self):
        session = _session(_event("v1", "discovery", 0))
        assert _attribute(session, "primary").attributed_rep_id is None


def test_attribution_is_pure():
    """GIVEN the same sessions twice SHOULD return equal results without mutating input."""
    session = _session(_event("d1", "dial", 0, setter_id="S1"), _event("a1", "appointment", 5))
    policy = SessionLinkingPolicy(attribution_mode="last-touch")
    assert attribute([session], policy) == attribute([session], policy)
    assert session.attributed_setter_id is None
