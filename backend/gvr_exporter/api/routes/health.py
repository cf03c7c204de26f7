"""
Health check endpoint
"""
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from gvr_exporter.api.routes.metrics import get_scrape_service
from gvr_exporter.services.scrape_service import ScrapeService

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def health_check(service: ScrapeService = Depends(get_scrape_service)):
    """
    Readiness document

    The app is only built once the stub compiled, so answering means ready.
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "selector": str(service.selector),
        "query": service.query.query,
        "extensions": list(service.query.extension_names),
    }
