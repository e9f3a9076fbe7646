"""Conversion routes - link a newly ingested appointment or discovery to its dial."""

from datetime import timedelta

from fastapi import APIRouter

from promethean.attribution.claims import link_new_conversion
from promethean.attribution_server.config import settings
from promethean.attribution_server.database import Dials, Receipts
from promethean.attribution_server.models import LinkConversionRequest

router = APIRouter(tags=["conversions"])


@router.post("/conversions/link")
async def link_conversion(
    data: LinkConversionRequest,
    dials: Dials,
    receipts: Receipts,
) -> dict:
    """Claim the most recent unclaimed dial for the conversion's contact.

    Every claim outcome is a 200; ``status`` tells the caller whether a dial
    was linked. A delivery whose ``webhook_id`` was already seen is
    acknowledged without running the claim again, unless the earlier attempt
    was cut short by a dial store failure.
    """
    if data.webhook_id is not None and not await receipts.record(data.webhook_id):
        return {"status": "duplicate"}

    result = await link_new_conversion(
        dials,
        data.account_id,
        data.contact(),
        data.conversion(),
        window=timedelta(hours=settings.claim_window_hours),
    )
    if result.store_error and data.webhook_id is not None:
        await receipts.release(data.webhook_id)
    return result.model_dump()
