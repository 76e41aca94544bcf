"""Prometheus metrics endpoint."""

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter()


@router.get("/metrics")
async def metrics() -> Response:
    """Prometheus metrics endpoint.

    Exposes all registered Prometheus metrics including:
    - external_call_latency_ms{service, outcome}
    - external_call_errors_total{service, reason}
    - ingestions_total{media_type, outcome}
    - retrieval_outcomes_total{outcome}
    - chat_turns_total{outcome}
    """
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
