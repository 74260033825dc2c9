"""Signed fan-out of content notifications to verified subscribers."""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping

import httpx

from .background import BackgroundRunner
from .collaborator import fetch_subscriber_logs
from .metrics import DELIVERIES
from .registry import Registry, Subscriber
from .signer import SIGNATURE_HEADER, signature_header

logger = logging.getLogger(__name__)

DEFAULT_PAYLOAD: dict[str, Any] = {"message": "New content available"}


class HubError(Exception):
    pass


class PayloadError(HubError):
    pass


def serialize_payload(payload: Mapping[str, Any]) -> bytes:
    try:
        return json.dumps(payload, separators=(",", ":")).encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise PayloadError(f"cannot serialize payload: {exc}") from exc


class Publisher:
    def __init__(
        self,
        client: httpx.AsyncClient,
        registry: Registry,
        runner: BackgroundRunner,
        collaborator_url: str | None = None,
    ) -> None:
        self.client = client
        self.registry = registry
        self.runner = runner
        # set to echo the collaborator's /log after every delivery
        self.collaborator_url = collaborator_url

    def publish(self, payload: Mapping[str, Any] | None = None) -> int:
        """Start delivering ``payload`` to every verified subscriber.

        Returns the number of subscribers in the snapshot taken before any
        delivery begins; deliveries run in the background and their outcome
        is only logged. Must be called from within the running event loop.
        """

        body = serialize_payload(DEFAULT_PAYLOAD if payload is None else payload)
        targets = self.registry.snapshot()
        for subscriber in targets:
            self.runner.spawn(lambda sub=subscriber: self.deliver(sub, body))
        logger.info("Publishing to %d verified subscribers", len(targets))
        return len(targets)

    async def deliver(self, subscriber: Subscriber, body: bytes) -> int | None:
        headers = {
            "Content-Type": "application/json",
            SIGNATURE_HEADER: signature_header(subscriber.secret, body),
        }
        try:
            response = await self.client.post(
                subscriber.callback_url, content=body, headers=headers
            )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning(
                "Error sending signed content to subscriber %s: %s",
                subscriber.callback_url,
                exc,
            )
            DELIVERIES.labels("error").inc()
            return None

        DELIVERIES.labels("delivered" if response.is_success else "rejected").inc()
        logger.info(
            "Signed content sent to subscriber %s, response status: %d",
            subscriber.callback_url,
            response.status_code,
        )
        if self.collaborator_url:
            await fetch_subscriber_logs(self.client, self.collaborator_url)
        return response.status_code
