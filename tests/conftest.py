"""Shared pytest fixtures."""

import queue
import threading
import time

import pytest
from loguru import logger


@pytest.fixture
def log_messages():
    """Capture loguru messages emitted during a test."""
    messages: list[str] = []
    handler_id = logger.add(lambda m: messages.append(m.record["message"]), level="DEBUG")
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def outbox():
    return queue.Queue(maxsize=32)


class RecordingTransport:
    """Mail transport that records payloads instead of sending them."""

    def __init__(self, fail_on: set[str] | None = None):
        self.sent: list[dict] = []
        self.attempts = 0
        self.fail_on = fail_on or set()
        self._lock = threading.Lock()

    def send_mail(self, server, auth, sender, recipients, payload):
        with self._lock:
            self.attempts += 1
        text = payload.decode("utf-8")
        for marker in self.fail_on:
            if marker in text:
                raise OSError(f"connection refused for {marker}")
        with self._lock:
            self.sent.append(
                {
                    "server": server,
                    "auth": auth,
                    "sender": sender,
                    "recipients": list(recipients),
                    "payload": text,
                }
            )


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def wait_for():
    """Poll a predicate until it is true or the timeout expires."""

    def _wait(predicate, timeout: float = 5.0, interval: float = 0.02) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(interval)
        return predicate()

    return _wait
