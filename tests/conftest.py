"""Shared fixtures for the apilogs test suite."""

import threading
from typing import Any

import pytest

from apilogs.records import LogRecord


class RecordingSink:
    """Channel sink that keeps every emitted record in memory."""

    def __init__(self, fail_on: set[str] | None = None):
        self.fail_on = fail_on or set()
        self.emitted: list[tuple[str, str, dict[str, Any]]] = []
        self._lock = threading.Lock()

    def emit(self, channel: str, message: str, context: dict[str, Any]) -> None:
        if channel in self.fail_on:
            raise OSError(f"sink unavailable for {channel}")
        with self._lock:
            self.emitted.append((channel, message, context))

    def for_channel(self, channel: str) -> list[dict[str, Any]]:
        return [context for name, _, context in self.emitted if name == channel]


@pytest.fixture
def sink():
    """In-memory channel sink."""
    return RecordingSink()


@pytest.fixture
def failing_sink():
    """Build a sink that fails for the given channel names."""

    def build(*channels: str) -> RecordingSink:
        return RecordingSink(fail_on=set(channels))

    return build


@pytest.fixture
def record():
    """A completed inbound record carrying a password and a bearer token."""
    rec = LogRecord.start(
        "req-1",
        "POST",
        "https://api.example.com/v1/login?next=home",
        headers={"authorization": "Bearer abc.def", "content-type": "application/json"},
        body={"username": "ada", "password": "secret123"},
        ip_address="10.0.0.5",
        user_agent="pytest",
    )
    rec.complete(200, headers={"content-type": "application/json"}, body={"token": "tok-1", "ok": True})
    return rec
