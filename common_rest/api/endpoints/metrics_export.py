"""Prometheus metrics scrape endpoint.

Exposes the process-wide registry of HTTP, resource-operation and sequence
metrics. The exposition format follows the scraper's Accept header (text or
OpenMetrics), and ``?name[]=<sample>`` limits the output to the named samples.
"""

from fastapi import APIRouter, Request, Response
from prometheus_client import REGISTRY
from prometheus_client.exposition import choose_encoder

router = APIRouter()


@router.get("/metrics", include_in_schema=False)
def prometheus_metrics(request: Request) -> Response:
    encoder, content_type = choose_encoder(request.headers.get("accept"))
    names = request.query_params.getlist("name[]")
    registry = REGISTRY.restricted_registry(names) if names else REGISTRY
    return Response(encoder(registry), headers={"Content-Type": content_type})
