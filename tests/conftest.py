from __future__ import annotations

import threading
import time
from typing import Callable

import httpx
import pytest


class FakeNetwork:
    """Stand-in for subscriber callbacks and the resubscription service.

    Hosts are registered with a behaviour for the challenge GET:
    ``echo`` returns the challenge, ``wrong`` returns another token,
    ``empty`` returns nothing, ``404`` returns a not-found page and
    ``down`` raises a connection error. POSTs are recorded.
    """

    def __init__(self) -> None:
        self.behaviours: dict[str, str] = {}
        self.deliveries: list[httpx.Request] = []
        self.calls: list[httpx.Request] = []
        self._lock = threading.Lock()

    def add(self, host: str, behaviour: str = "echo") -> None:
        self.behaviours[host] = behaviour

    def handler(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.calls.append(request)
        behaviour = self.behaviours.get(request.url.host, "down")
        if behaviour == "down":
            raise httpx.ConnectError("connection refused", request=request)
        if request.method == "POST":
            request.read()
            with self._lock:
                self.deliveries.append(request)
            return httpx.Response(200 if behaviour != "404" else 404)
        if request.url.path == "/resub":
            return httpx.Response(200 if behaviour == "echo" else 503)
        if request.url.path == "/log":
            return httpx.Response(200, text="subscriber log line")
        challenge = request.url.params.get("hub.challenge", "")
        if behaviour == "echo":
            return httpx.Response(200, text=challenge)
        if behaviour == "wrong":
            return httpx.Response(200, text="not-the-challenge")
        if behaviour == "empty":
            return httpx.Response(200, text="")
        if behaviour == "huge":
            return httpx.Response(200, text=challenge + "x" * 100_000)
        return httpx.Response(404, text="404 page not found")

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def delivered_to(self, host: str) -> list[httpx.Request]:
        with self._lock:
            return [r for r in self.deliveries if r.url.host == host]


@pytest.fixture
def network() -> FakeNetwork:
    return FakeNetwork()


def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()
