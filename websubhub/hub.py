from __future__ import annotations

import logging

import httpx

from .background import BackgroundRunner
from .config import Settings
from .metrics import SUBSCRIBERS
from .publisher import Publisher
from .registry import Registry, Subscriber
from .verifier import Verifier

logger = logging.getLogger(__name__)


def build_client(
    settings: Settings, transport: httpx.AsyncBaseTransport | None = None
) -> httpx.AsyncClient:
    timeout = settings.OUTBOUND_TIMEOUT_SECONDS or None
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout),
        follow_redirects=settings.FOLLOW_REDIRECTS,
        transport=transport,
    )


class Hub:
    """Everything one running hub owns: registry, HTTP client and runners.

    Created on app startup and closed on shutdown; handlers reach it via
    ``request.app.state.hub``.
    """

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self.registry = Registry()
        SUBSCRIBERS.set_function(self.registry.__len__)
        self.client = build_client(settings, transport)
        self.verifications = BackgroundRunner("verification", settings.VERIFY_CONCURRENCY)
        self.deliveries = BackgroundRunner("delivery", settings.DELIVERY_CONCURRENCY)
        self.verifier = Verifier(
            self.client,
            self.registry,
            challenge_bytes=settings.CHALLENGE_BYTES,
            max_body_bytes=settings.VERIFY_MAX_BODY_BYTES,
        )
        self.publisher = Publisher(
            self.client,
            self.registry,
            self.deliveries,
            collaborator_url=(
                settings.COLLABORATOR_URL if settings.ECHO_SUBSCRIBER_LOGS else None
            ),
        )

    def request_verification(self, subscriber: Subscriber) -> None:
        self.verifications.spawn(lambda: self.verifier.verify(subscriber))

    def publish(self) -> int:
        return self.publisher.publish()

    async def aclose(self) -> None:
        grace = self.settings.SHUTDOWN_GRACE_SECONDS
        await self.verifications.shutdown(grace)
        await self.deliveries.shutdown(grace)
        await self.client.aclose()
        SUBSCRIBERS.set_function(lambda: 0)
        logger.info("Hub stopped with %d verified subscribers", len(self.registry))
