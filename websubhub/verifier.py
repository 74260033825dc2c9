"""Challenge/response verification of subscription requests.

A pending subscriber is admitted to the registry only when its callback
echoes the random challenge back verbatim. Every other outcome (transport
error, oversized body, wrong or empty body) is logged and dropped.
"""

from __future__ import annotations

import logging
import secrets

import httpx

from .metrics import VERIFICATIONS
from .registry import Registry, Subscriber

logger = logging.getLogger(__name__)


class ChallengeTooLarge(Exception):
    pass


def generate_challenge(nbytes: int = 16) -> str:
    return secrets.token_hex(nbytes)


def verification_url(subscriber: Subscriber, challenge: str) -> httpx.URL:
    return httpx.URL(subscriber.callback_url).copy_merge_params(
        {
            "hub.mode": "subscribe",
            "hub.topic": subscriber.topic,
            "hub.challenge": challenge,
        }
    )


async def _read_body(response: httpx.Response, limit: int) -> bytes:
    if not limit:
        return await response.aread()
    body = bytearray()
    async for chunk in response.aiter_bytes():
        body.extend(chunk)
        if len(body) > limit:
            raise ChallengeTooLarge(f"response exceeds {limit} bytes")
    return bytes(body)


class Verifier:
    def __init__(
        self,
        client: httpx.AsyncClient,
        registry: Registry,
        challenge_bytes: int = 16,
        max_body_bytes: int = 0,
    ) -> None:
        self.client = client
        self.registry = registry
        self.challenge_bytes = challenge_bytes
        self.max_body_bytes = max_body_bytes

    async def verify(self, subscriber: Subscriber) -> bool:
        """Run one challenge round trip; True when the subscriber was admitted."""

        logger.info("Verifying subscriber: %s", subscriber.callback_url)
        challenge = generate_challenge(self.challenge_bytes)
        try:
            url = verification_url(subscriber, challenge)
            async with self.client.stream("GET", url) as response:
                body = await _read_body(response, self.max_body_bytes)
        except (httpx.HTTPError, httpx.InvalidURL, ChallengeTooLarge) as exc:
            logger.warning(
                "Error sending verification request to %s: %s",
                subscriber.callback_url,
                exc,
            )
            VERIFICATIONS.labels("error").inc()
            return False

        if not body or body != challenge.encode("ascii"):
            logger.info("Verification failed for subscriber: %s", subscriber.callback_url)
            VERIFICATIONS.labels("mismatch").inc()
            return False

        self.registry.append(subscriber)
        VERIFICATIONS.labels("verified").inc()
        logger.info("Subscriber verified: %s", subscriber.callback_url)
        return True
