"""Metrics routes - setter, rep and pair performance."""

import logging

from fastapi import APIRouter, HTTPException

from promethean.attribution import pipeline
from promethean.attribution.errors import MetricsUnavailableError
from promethean.attribution_server.config import settings
from promethean.attribution_server.database import Events
from promethean.attribution_server.models import MetricsReport, MetricsRequest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["metrics"])


@router.post("/metrics")
async def compute_metrics(
    data: MetricsRequest,
    store: Events,
) -> MetricsReport:
    """Compute setter, rep and setter x rep metrics for an account.

    A partial result (one or two sources unavailable) is still a 200; the
    failed sources are listed in ``unavailable_sources``.
    """
    try:
        return await pipeline.compute_metrics(
            store,
            data.account_id,
            data.date_range(),
            data.policy or settings.default_policy(),
            data.filters(),
        )
    except MetricsUnavailableError as e:
        logger.error("Metrics unavailable for %s: %s", data.account_id, e)
        raise HTTPException(503, "Metrics computation unavailable: no event source reachable") from e
