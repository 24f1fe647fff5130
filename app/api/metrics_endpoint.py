"""Prometheus scrape endpoint.

Returns the text exposition format, not JSON:

  # TYPE login_attempts_total counter
  login_attempts_total{method="password",outcome="success"} 42.0
  identity_resolutions_total{outcome="user_not_found"} 3.0
  session_restores_total{source="cache"} 1280.0

The metric inventory lives in app/core/metrics.py.  Restrict this path to
the Prometheus scraper at the ingress; it is not authenticated here.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["observability"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
