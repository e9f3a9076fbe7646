"""Real-time linking of a new appointment or discovery to the dial that produced it.

Runs once per ingested conversion, outside the batch pipeline, and uses the
same nearest-prior-event matching as the batch linker with a fixed 24 hour
window. Claiming is a one-way ``unclaimed -> claimed`` transition performed
by a single conditional update, so concurrent callers racing for the same
dial see exactly one success.
"""

import logging
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta
from typing import Literal, Protocol

from promethean.attribution.matching import nearest_prior_event
from promethean.attribution.normalizer import Row, normalize_events
from promethean.attribution.schema import ClaimResult, ConversionContact, ConversionRecord

logger = logging.getLogger(__name__)

CLAIM_WINDOW = timedelta(hours=24)

ContactField = Literal["email", "phone"]


class DialClaimStore(Protocol):
    """Dial reads and the two conditional writes used by the claim linker."""

    async def find_unclaimed_dials(
        self,
        account_id: str,
        contact_field: ContactField,
        contact_value: str,
        since: datetime,
        until: datetime,
    ) -> Sequence[Row]:
        """Unclaimed dials for the contact with ``since <= created_at <= until``."""
        ...

    async def claim_dial(self, dial_id: str, conversion_id: str) -> bool:
        """Record the claim only if the dial is still unclaimed.

        Returns True when this call performed the claim.
        """
        ...

    async def copy_setter(self, conversion: ConversionRecord, setter_id: str) -> bool:
        """Set the conversion's setter only if it has none. Returns True if written."""
        ...


def contact_key(contact: ConversionContact) -> tuple[ContactField, str] | None:
    """Identify the contact by email, falling back to phone."""
    email = (contact.email or "").strip().lower()
    if email:
        return "email", email
    phone = (contact.phone or "").strip()
    if phone:
        return "phone", phone
    return None


async def link_new_conversion(
    store: DialClaimStore,
    account_id: str,
    contact: ConversionContact,
    conversion: ConversionRecord,
    now: datetime | None = None,
    window: timedelta = CLAIM_WINDOW,
) -> ClaimResult:
    """Claim the most recent unclaimed dial for the contact.

    Failures are reported through ``ClaimResult.status`` and never raised:
    a lost race or a missing dial is an expected outcome of ingestion.

    Args:
        store: Dial store collaborator.
        account_id: Account the conversion belongs to.
        contact: Email and/or phone of the converted contact.
        conversion: The newly persisted appointment or discovery.
        now: Reference instant; defaults to the current time.
        window: Trailing search window.

    Returns:
        The claim outcome.
    """
    key = contact_key(contact)
    if key is None:
        logger.info("No email or phone on %s %s, skipping dial link", conversion.kind, conversion.id)
        return ClaimResult(status="no_contact")
    contact_field, contact_value = key

    now = now or datetime.now(UTC)
    try:
        rows = await store.find_unclaimed_dials(
            account_id, contact_field, contact_value, now - window, now
        )
    except Exception as exc:
        logger.warning("Dial search failed for %s %s: %s", conversion.kind, conversion.id, exc)
        return ClaimResult(status="no_candidate", store_error=True)

    candidates = normalize_events(dials=[{**row, "contact_id": contact_value} for row in rows])
    dial = nearest_prior_event(
        candidates.events,
        contact_id=contact_value,
        before=now,
        window=window,
        kinds={"dial"},
    )
    if dial is None:
        logger.info("No unclaimed dial within %s for %s %s", window, conversion.kind, conversion.id)
        return ClaimResult(status="no_candidate")

    try:
        claimed = await store.claim_dial(dial.id, conversion.id)
    except Exception as exc:
        logger.warning("Claiming dial %s for %s failed: %s", dial.id, conversion.id, exc)
        return ClaimResult(
            status="no_candidate", dial_id=dial.id, setter_id=dial.setter_id, store_error=True
        )

    if not claimed:
        logger.info("Dial %s was claimed concurrently; %s left unlinked", dial.id, conversion.id)
        return ClaimResult(status="lost_race", dial_id=dial.id, setter_id=dial.setter_id)

    logger.info("Linked dial %s to %s %s", dial.id, conversion.kind, conversion.id)

    setter_copied = False
    if dial.setter_id and not conversion.setter_id:
        try:
            setter_copied = await store.copy_setter(conversion, dial.setter_id)
        except Exception as exc:
            logger.warning("Copying setter onto %s failed: %s", conversion.id, exc)

    return ClaimResult(
        status="claimed",
        dial_id=dial.id,
        setter_id=dial.setter_id,
        setter_copied=setter_copied,
    )
