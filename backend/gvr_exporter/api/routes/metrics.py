"""
Metrics endpoints: the stub's payload and the exporter's own metrics
"""
from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from gvr_exporter.core.metrics import get_metrics, get_metrics_content_type
from gvr_exporter.services.scrape_service import ScrapeService

router = APIRouter(tags=["metrics"])

SCRAPE_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
CLIENT_CLOSED_REQUEST = 499


def get_scrape_service(request: Request) -> ScrapeService:
    return request.app.state.scrape_service


@router.api_route("/metrics", methods=SCRAPE_METHODS)
async def metrics(request: Request, service: ScrapeService = Depends(get_scrape_service)):
    """
    Fetch the configured resources, evaluate the stub and return its output

    The request's Content-Type decides the framing: application/openmetrics-text
    gets a terminal "# EOF" line, anything else the plain text format.
    """
    assembled = await service.scrape(request.headers.get("content-type"), request.is_disconnected)
    if assembled is None:
        # client went away mid-scrape; nobody reads this
        return Response(status_code=CLIENT_CLOSED_REQUEST)
    return Response(
        content=assembled.body,
        media_type=assembled.media_type,
        status_code=assembled.status_code,
    )


@router.get("/exporter/metrics")
async def exporter_metrics():
    """Prometheus metrics about the exporter itself"""
    return Response(
        content=get_metrics(),
        media_type=get_metrics_content_type()
    )
