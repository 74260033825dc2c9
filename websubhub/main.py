from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime
from urllib.parse import parse_qsl

import httpx
from fastapi import Depends, FastAPI, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel
from starlette.datastructures import FormData

from . import __version__
from .collaborator import trigger_resubscription
from .config import Settings, reload_settings, settings
from .hub import Hub
from .logging_setup import RequestLogMiddleware, init_logging
from .metrics import LAT, REQS, router as metrics_router
from .publisher import PayloadError
from .registry import Subscriber

logger = logging.getLogger(__name__)


class Health(BaseModel):
    status: str
    time: str
    subscribers: int
    pending_verifications: int
    pending_deliveries: int


def get_hub(request: Request) -> Hub:
    return request.app.state.hub


def _parse_form(raw: bytes) -> FormData:
    """Decode a URL-encoded body regardless of its Content-Type header."""

    return FormData(parse_qsl(raw.decode("utf-8"), keep_blank_values=True))


def create_app(
    config: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the hub application.

    ``transport`` replaces the network layer of every outbound call, which
    is how tests stand in for subscribers and the collaborator service.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        cfg = config or reload_settings()
        hub = Hub(cfg, transport=transport)
        app.state.hub = hub
        logger.info("Hub started (collaborator %s)", cfg.COLLABORATOR_URL)
        try:
            yield
        finally:
            await hub.aclose()

    app = FastAPI(title="WebSub Hub", version=__version__, lifespan=lifespan)
    app.add_middleware(RequestLogMiddleware)
    app.include_router(metrics_router())

    @app.middleware("http")
    async def _metrics(request: Request, call_next):
        method = request.method
        path = request.url.path
        start = time.time()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            duration = time.time() - start
            REQS.labels(method, path, str(status_code)).inc()
            LAT.labels(method, path).observe(duration)

    @app.post("/", response_class=PlainTextResponse)
    async def subscribe(request: Request, hub: Hub = Depends(get_hub)):
        try:
            form = _parse_form(await request.body())
        except UnicodeDecodeError:
            return PlainTextResponse("Can't parse body", status_code=400)
        callback = form.get("hub.callback", "")
        secret = form.get("hub.secret", "")
        topic = form.get("hub.topic", "")
        if not callback or not topic or not secret:
            return PlainTextResponse("Missing subscriber data", status_code=400)
        hub.request_verification(
            Subscriber(callback_url=callback, secret=secret, topic=topic)
        )
        return "Subscription request received."

    @app.get("/publish", response_class=PlainTextResponse)
    async def publish(hub: Hub = Depends(get_hub)):
        try:
            count = hub.publish()
        except PayloadError as exc:
            logger.error("Error marshaling JSON: %s", exc)
            return PlainTextResponse("Internal server error", status_code=500)
        return f"Content published to {count} verified subscribers.\n"

    @app.get("/resub", response_class=PlainTextResponse)
    async def resub(hub: Hub = Depends(get_hub)):
        status_code = await trigger_resubscription(
            hub.client, hub.settings.COLLABORATOR_URL
        )
        if status_code is None:
            return "Resubscription service unreachable."
        return f"Resubscription service answered {status_code}."

    @app.get("/health", response_model=Health)
    def health(hub: Hub = Depends(get_hub)):
        return Health(
            status="ok",
            time=datetime.utcnow().isoformat(),
            subscribers=len(hub.registry),
            pending_verifications=hub.verifications.pending,
            pending_deliveries=hub.deliveries.pending,
        )

    return app


init_logging(settings.LOG_LEVEL)

app = create_app()
