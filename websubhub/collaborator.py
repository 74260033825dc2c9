"""Client for the companion resubscription service.

The service exposes ``GET /resub`` (starts its own subscription dance) and
``GET /log`` (plain-text log). Failures are logged and never raised.
"""

from __future__ import annotations

import logging

import httpx

logger = logging.getLogger(__name__)


def _url(base_url: str, path: str) -> str:
    return base_url.rstrip("/") + path


async def trigger_resubscription(client: httpx.AsyncClient, base_url: str) -> int | None:
    """Return the collaborator's status code, or None if it was unreachable."""

    try:
        response = await client.get(_url(base_url, "/resub"))
    except httpx.HTTPError as exc:
        logger.warning("Error initiating subscription dance: %s", exc)
        return None

    if response.status_code == httpx.codes.OK:
        logger.info("Subscription dance initiated successfully.")
    else:
        logger.warning(
            "Failed to initiate subscription dance, status code: %d",
            response.status_code,
        )
    return response.status_code


async def fetch_subscriber_logs(client: httpx.AsyncClient, base_url: str) -> str | None:
    try:
        response = await client.get(_url(base_url, "/log"))
    except httpx.HTTPError as exc:
        logger.warning("Error fetching subscriber logs: %s", exc)
        return None

    logger.info("___________")
    logger.info("Subscriber logs:\n%s", response.text)
    logger.info("___________")
    return response.text
