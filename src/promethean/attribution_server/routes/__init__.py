"""API routes for the Promethean Attribution Server."""

from fastapi import APIRouter

from promethean.attribution_server.routes.conversions import router as conversions_router
from promethean.attribution_server.routes.metrics import router as metrics_router

router = APIRouter()
router.include_router(metrics_router)
router.include_router(conversions_router)
