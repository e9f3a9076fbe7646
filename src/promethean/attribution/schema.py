"""
Promethean Attribution Schema

This module defines the core data types for the event-correlation and
attribution engine behind the sales-operations dashboard.

The schema supports:
- A canonical event shape for dials, discovery calls and appointments
- Reconstructed customer-interaction sessions
- Policy-driven linking, de-duplication and setter attribution
- Setter, rep and setter x rep performance metrics
- Real-time claiming of the dial that produced a new conversion
"""

from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

# =============================================================================
# TYPE DEFINITIONS
# =============================================================================

EventKind = Literal[
    "dial",         # Outbound call placed by a setter (or a rep)
    "discovery",    # Discovery call held with the contact
    "appointment",  # Sales appointment booked with a rep
]
"""
Supported interaction kinds.

Discoveries and appointments are conversion-capable; dials are the
outbound activity that may have produced them.
"""

AttributionMode = Literal["primary", "last-touch", "assist"]
"""
Setter attribution modes.

- primary: credit the setter on the session's primary event
- last-touch: credit the last setter to touch the contact before the conversion
- assist: credit as primary, and list the other setters who touched the session
"""

EventSourceName = Literal["dials", "discoveries", "appointments"]
"""The three independent event stores read by the pipeline."""

ClaimStatus = Literal["claimed", "no_contact", "no_candidate", "lost_race"]
"""
Outcomes of a real-time claim attempt.

- claimed: the dial now points at the conversion
- no_contact: the conversion carried neither email nor phone
- no_candidate: no unclaimed dial in the window (or the store was unreachable)
- lost_race: a concurrent caller claimed the dial first
"""

INBOUND = "INBOUND"
"""Sentinel setter identity used when no human setter can be credited."""

KIND_RANK: dict[str, int] = {"appointment": 3, "discovery": 2, "dial": 1}
"""Primary-event rank; the highest-ranked kind wins."""


def _as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


# =============================================================================
# CORE MODELS
# =============================================================================


class Event(BaseModel):
    """
    One observed interaction.

    Events are the atomic unit of linking. Outcome fields are only
    populated for appointments.

    Attributes:
        id: Unique identifier of the source record.
        kind: The interaction kind (see EventKind).
        contact_id: The customer being contacted. Required.
        setter_id: Person who generated or booked the interaction. Absent
            means the interaction is treated as inbound.
        rep_id: Sales representative involved (dials and appointments).
        correlation_key: Explicit "same phone call" identifier, such as a
            telephony call sid.
        timestamp: When the interaction occurred (UTC). Naive values are
            assumed to be UTC.
        monetary_value: Deal value of an appointment.
        showed: Whether the appointment was held.
        closed: Whether the appointment closed.
        cash_collected: Cash collected on a closed appointment.
        close_timestamp: When the deal closed.

    Example:
        >>> event = Event(
        ...     id="dial-1",
        ...     kind="dial",
        ...     contact_id="contact-42",
        ...     setter_id="setter-7",
        ...     timestamp=datetime.now(UTC),
        ... )
    """

    id: str
    kind: EventKind
    contact_id: str = Field(min_length=1)
    setter_id: str | None = None
    rep_id: str | None = None
    correlation_key: str | None = None
    timestamp: datetime

    # Appointment outcome fields
    monetary_value: float | None = None
    showed: bool | None = None
    closed: bool | None = None
    cash_collected: float | None = None
    close_timestamp: datetime | None = None

    @field_validator("timestamp", "close_timestamp")
    @classmethod
    def _default_utc(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    @property
    def is_conversion(self) -> bool:
        """True for discoveries and appointments."""
        return self.kind != "dial"

    @property
    def sort_key(self) -> tuple[datetime, str]:
        """Total order used for every tie-break: time first, then id."""
        return (self.timestamp, self.id)


class Session(BaseModel):
    """
    A reconstructed customer-interaction unit.

    Attributes:
        session_id: Deterministic identifier derived from how the session
            was built (``sid_``, ``inferred_`` or ``standalone_`` prefix).
        events: Member events ordered by time. Never empty.
        primary_event: The member that determines the session's conversion
            significance (appointment > discovery > dial).
        is_inferred: True when membership came from time-window matching
            rather than a correlation key.
        attributed_setter_id: Credited setter, or INBOUND. Set by the attributor.
        attributed_rep_id: Rep read from the session's appointment or dial.
        assisting_setter_ids: Other setters who touched the session
            (``assist`` mode only). No credit weights are computed.
    """

    session_id: str
    events: list[Event] = Field(min_length=1)
    primary_event: Event
    is_inferred: bool = False
    attributed_setter_id: str | None = None
    attributed_rep_id: str | None = None
    assisting_setter_ids: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _primary_is_member(self) -> "Session":
        if self.primary_event not in self.events:
            raise ValueError(
                f"primary event {self.primary_event.id} is not a member of {self.session_id}"
            )
        return self

    @property
    def first_timestamp(self) -> datetime:
        return self.events[0].timestamp


class SessionLinkingPolicy(BaseModel):
    """
    Linking, de-duplication and attribution policy.

    Configuration only; never persisted.

    Attributes:
        exclude_in_call_dials: Drop dials from sessions that also contain a
            discovery or appointment.
        exclude_rep_dials: Drop every dial performed by a rep.
        attribution_mode: Setter attribution mode (see AttributionMode).
        time_window_days: Maximum look-back for heuristic linking.
        same_call_window_minutes: Maximum gap between a dial/discovery and
            its conversion for both to count as the same call.
    """

    exclude_in_call_dials: bool = True
    exclude_rep_dials: bool = True
    attribution_mode: AttributionMode = "primary"
    time_window_days: int = Field(default=14, ge=0)
    same_call_window_minutes: int = Field(default=30, ge=0)


class DateRange(BaseModel):
    """Inclusive reporting range. Either bound may be open."""

    start: datetime | None = None
    end: datetime | None = None

    @field_validator("start", "end")
    @classmethod
    def _default_utc(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    def contains(self, moment: datetime) -> bool:
        if self.start is not None and moment < self.start:
            return False
        if self.end is not None and moment > self.end:
            return False
        return True


class MetricsFilters(BaseModel):
    """
    Rep and setter allow-lists.

    An empty list disables that filter. Events without a rep or setter
    always pass; only an explicit mismatch excludes.
    """

    rep_ids: list[str] = Field(default_factory=list)
    setter_ids: list[str] = Field(default_factory=list)


# =============================================================================
# METRICS
# =============================================================================


class SetterMetrics(BaseModel):
    """Performance of one setter (or INBOUND) over attributed sessions."""

    setter_id: str
    unique_contacts: int = 0
    outbound_dials: int = 0
    discoveries_set: int = 0
    appointments_booked: int = 0
    appointments_showed: int = 0
    appointments_closed: int = 0
    show_rate: float = 0.0
    setter_win_rate: float = 0.0
    attributed_revenue: float = 0.0


class RepMetrics(BaseModel):
    """Performance of one sales rep over the appointments they held."""

    rep_id: str
    appointments: int = 0
    sales_calls_held: int = 0
    deals_closed: int = 0
    win_rate: float = 0.0
    revenue: float = 0.0
    cash_collected: float = 0.0
    avg_order_value: float = 0.0
    avg_sales_cycle: float = 0.0  # Days from first touch to close


class PairMetrics(BaseModel):
    """One cell of the setter x rep performance matrix."""

    setter_id: str
    rep_id: str
    appointments: int = 0
    show_rate: float = 0.0
    win_rate: float = 0.0
    revenue: float = 0.0
    cash_collected: float = 0.0
    avg_deal_size: float = 0.0


class MetricsReport(BaseModel):
    """
    Result of a metrics computation.

    Attributes:
        setter_metrics: One row per attributed setter.
        rep_metrics: One row per rep with at least one appointment.
        pair_metrics: One row per (setter, rep) pair.
        unavailable_sources: Event sources that failed and were treated as
            empty. A non-empty list marks a partial result.
        dropped_events: Malformed source records skipped by the normalizer.
        session_count: Sessions that fell inside the requested range.
    """

    setter_metrics: list[SetterMetrics] = Field(default_factory=list)
    rep_metrics: list[RepMetrics] = Field(default_factory=list)
    pair_metrics: list[PairMetrics] = Field(default_factory=list)
    unavailable_sources: list[EventSourceName] = Field(default_factory=list)
    dropped_events: int = 0
    session_count: int = 0


# =============================================================================
# REAL-TIME CLAIMS
# =============================================================================


class ConversionContact(BaseModel):
    """Contact details carried by an ingested appointment or discovery."""

    email: str | None = None
    phone: str | None = None


class ConversionRecord(BaseModel):
    """The newly persisted appointment or discovery being linked."""

    id: str
    kind: Literal["discovery", "appointment"]
    setter_id: str | None = None


class ClaimResult(BaseModel):
    """
    Outcome of linking a conversion back to its dial.

    Attributes:
        status: See ClaimStatus. Only ``claimed`` means a dial was linked.
        dial_id: The claimed dial, or the dial lost to a concurrent caller.
        setter_id: Setter identity carried by that dial.
        setter_copied: Whether the dial's setter was copied onto the conversion.
        store_error: The dial store failed before the claim could be decided,
            so the same conversion may be retried.
    """

    status: ClaimStatus
    dial_id: str | None = None
    setter_id: str | None = None
    setter_copied: bool = False
    store_error: bool = False

    @property
    def claimed(self) -> bool:
        return self.status == "claimed"
