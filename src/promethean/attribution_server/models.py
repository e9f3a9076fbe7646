"""Server-side models for the Promethean Attribution Server."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

# Re-export engine schema types for convenience
from promethean.attribution.schema import (
    ClaimResult,
    ConversionContact,
    ConversionRecord,
    DateRange,
    MetricsFilters,
    MetricsReport,
    SessionLinkingPolicy,
)

__all__ = [
    # Engine re-exports
    "ClaimResult",
    "ConversionContact",
    "ConversionRecord",
    "DateRange",
    "MetricsFilters",
    "MetricsReport",
    "SessionLinkingPolicy",
    # Server models
    "MetricsRequest",
    "LinkConversionRequest",
]


# =============================================================================
# API Input Models
# =============================================================================


class MetricsRequest(BaseModel):
    """Input for POST /metrics (matches the client)."""

    account_id: str = Field(min_length=1)
    start: datetime | None = None
    end: datetime | None = None
    policy: SessionLinkingPolicy | None = None
    rep_ids: list[str] = Field(default_factory=list)
    setter_ids: list[str] = Field(default_factory=list)

    def date_range(self) -> DateRange:
        return DateRange(start=self.start, end=self.end)

    def filters(self) -> MetricsFilters:
        return MetricsFilters(rep_ids=self.rep_ids, setter_ids=self.setter_ids)


class LinkConversionRequest(BaseModel):
    """Input for POST /conversions/link, sent once per ingested conversion."""

    account_id: str = Field(min_length=1)
    conversion_id: str = Field(min_length=1)
    kind: Literal["discovery", "appointment"]
    setter_id: str | None = None
    email: str | None = None
    phone: str | None = None
    webhook_id: str | None = None

    def conversion(self) -> ConversionRecord:
        return ConversionRecord(id=self.conversion_id, kind=self.kind, setter_id=self.setter_id)

    def contact(self) -> ConversionContact:
        return ConversionContact(email=self.email, phone=self.phone)
