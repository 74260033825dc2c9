"""In-memory store of verified subscribers."""

from __future__ import annotations

import threading

from pydantic import BaseModel, ConfigDict, Field


class Subscriber(BaseModel):
    model_config = ConfigDict(frozen=True)

    callback_url: str
    secret: str = Field(repr=False)
    topic: str


class Registry:
    """Append-only list of verified subscribers guarded by its own lock.

    Duplicate ``(callback_url, topic)`` pairs are kept as separate entries;
    every successful verification appends. Readers only ever see copies.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: list[Subscriber] = []

    def append(self, subscriber: Subscriber) -> int:
        with self._lock:
            self._subscribers.append(subscriber)
            return len(self._subscribers)

    def snapshot(self) -> list[Subscriber]:
        with self._lock:
            return list(self._subscribers)

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscribers)
