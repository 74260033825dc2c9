from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

REQS = Counter(
    "websubhub_requests_total",
    "Requests",
    ["method", "path", "status"],
)
LAT = Histogram(
    "websubhub_latency_seconds",
    "Latency",
    ["method", "path"],
)
VERIFICATIONS = Counter(
    "websubhub_verifications_total",
    "Challenge verifications by outcome",
    ["outcome"],
)
DELIVERIES = Counter(
    "websubhub_deliveries_total",
    "Content deliveries by outcome",
    ["outcome"],
)
SUBSCRIBERS = Gauge(
    "websubhub_verified_subscribers",
    "Verified subscribers in the running hub's registry",
)


def router() -> APIRouter:
    r = APIRouter()

    @r.get("/metrics", include_in_schema=False)
    def metrics():
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return r
