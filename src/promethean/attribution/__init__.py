"""
Promethean Attribution - session linking and setter attribution for sales teams.

Reconstructs customer-interaction sessions from dials, discovery calls and
appointments, removes double-counted events, credits setters and reps, and
folds the result into setter, rep and setter x rep metrics.

Example:
    >>> from promethean.attribution import SessionLinkingPolicy, build_sessions
    >>> sessions = build_sessions(events, SessionLinkingPolicy(attribution_mode="last-touch"))
    >>> report = await compute_metrics(store, "acct-1", DateRange(start=start, end=end))
"""

from promethean.attribution.attribution import attribute
from promethean.attribution.claims import DialClaimStore, contact_key, link_new_conversion
from promethean.attribution.client import Client
from promethean.attribution.dedup import deduplicate
from promethean.attribution.errors import MetricsUnavailableError
from promethean.attribution.linking import link_sessions
from promethean.attribution.matching import nearest_prior_event
from promethean.attribution.metrics import pair_metrics, rep_metrics, setter_metrics
from promethean.attribution.normalizer import normalize_events
from promethean.attribution.pipeline import EventStore, build_sessions, compute_metrics
from promethean.attribution.schema import (
    INBOUND,
    AttributionMode,
    ClaimResult,
    ClaimStatus,
    ConversionContact,
    ConversionRecord,
    DateRange,
    Event,
    EventKind,
    EventSourceName,
    MetricsFilters,
    MetricsReport,
    PairMetrics,
    RepMetrics,
    Session,
    SessionLinkingPolicy,
    SetterMetrics,
)

__all__ = [
    # Client
    "Client",
    # Pipeline
    "compute_metrics",
    "build_sessions",
    "normalize_events",
    "link_sessions",
    "deduplicate",
    "attribute",
    "setter_metrics",
    "rep_metrics",
    "pair_metrics",
    # Real-time claims
    "link_new_conversion",
    "contact_key",
    "nearest_prior_event",
    # Collaborator protocols
    "EventStore",
    "DialClaimStore",
    # Errors
    "MetricsUnavailableError",
    # Type aliases
    "EventKind",
    "AttributionMode",
    "EventSourceName",
    "ClaimStatus",
    "INBOUND",
    # Models
    "Event",
    "Session",
    "SessionLinkingPolicy",
    "DateRange",
    "MetricsFilters",
    "SetterMetrics",
    "RepMetrics",
    "PairMetrics",
    "MetricsReport",
    "ConversionContact",
    "ConversionRecord",
    "ClaimResult",
]

__version__ = "0.1.0"
