from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from websubhub.background import BackgroundRunner
from websubhub.publisher import (
    DEFAULT_PAYLOAD,
    PayloadError,
    Publisher,
    serialize_payload,
)
from websubhub.registry import Registry, Subscriber
from websubhub.signer import sign, verify_signature

BODY = b'{"message":"New content available"}'


def _sub(host: str, secret: str = "s1") -> Subscriber:
    return Subscriber(callback_url=f"http://{host}/cb", secret=secret, topic="t1")


def _publish(network, registry: Registry, collaborator_url: str | None = None, **kw) -> int:
    async def _run() -> int:
        async with httpx.AsyncClient(transport=network.transport()) as client:
            runner = BackgroundRunner("delivery", 8)
            publisher = Publisher(client, registry, runner, collaborator_url=collaborator_url)
            count = publisher.publish(**kw)
            await runner.join()
            return count

    return asyncio.run(_run())


def test_default_payload_serialization():
    assert serialize_payload(DEFAULT_PAYLOAD) == BODY


def test_unserializable_payload_raises():
    with pytest.raises(PayloadError):
        serialize_payload({"when": object()})


def test_signed_delivery_to_every_subscriber(network):
    registry = Registry()
    for host, secret in [("sub1", "s1"), ("sub2", "s2")]:
        network.add(host)
        registry.append(_sub(host, secret))

    assert _publish(network, registry) == 2

    for host, secret in [("sub1", "s1"), ("sub2", "s2")]:
        (request,) = network.delivered_to(host)
        assert request.method == "POST"
        assert request.headers["Content-Type"] == "application/json"
        assert request.content == BODY
        assert request.headers["X-Hub-Signature"] == f"sha256={sign(secret, BODY)}"
        assert verify_signature(secret, request.content, request.headers["X-Hub-Signature"])


def test_failures_do_not_affect_other_deliveries(network):
    registry = Registry()
    network.add("good")
    network.add("gone", "404")
    registry.append(_sub("down"))
    registry.append(_sub("gone"))
    registry.append(_sub("good"))

    assert _publish(network, registry) == 3
    assert len(network.delivered_to("good")) == 1
    assert len(network.delivered_to("gone")) == 1


def test_count_is_snapshot_size_not_successes(network):
    registry = Registry()
    registry.append(_sub("down1"))
    registry.append(_sub("down2"))

    assert _publish(network, registry) == 2
    assert network.deliveries == []


def test_empty_registry_publishes_nothing(network):
    assert _publish(network, Registry()) == 0
    assert network.calls == []


def test_custom_payload_is_signed_as_sent(network):
    registry = Registry()
    network.add("sub1")
    registry.append(_sub("sub1"))

    _publish(network, registry, payload={"message": "hi", "n": 1})

    (request,) = network.delivered_to("sub1")
    assert json.loads(request.content) == {"message": "hi", "n": 1}
    assert request.headers["X-Hub-Signature"] == f"sha256={sign('s1', request.content)}"


def test_subscriber_added_after_snapshot_is_not_notified(network):
    registry = Registry()
    network.add("early")
    network.add("late")
    registry.append(_sub("early"))

    async def _run() -> int:
        async with httpx.AsyncClient(transport=network.transport()) as client:
            runner = BackgroundRunner("delivery", 8)
            publisher = Publisher(client, registry, runner)
            count = publisher.publish()
            registry.append(_sub("late"))
            await runner.join()
            return count

    assert asyncio.run(_run()) == 1
    assert len(network.delivered_to("early")) == 1
    assert network.delivered_to("late") == []


def test_collaborator_log_fetched_after_delivery(network):
    registry = Registry()
    network.add("sub1")
    network.add("web-sub-client")
    registry.append(_sub("sub1"))

    _publish(network, registry, collaborator_url="http://web-sub-client:8080")

    paths = [r.url.path for r in network.calls if r.url.host == "web-sub-client"]
    assert paths == ["/log"]
