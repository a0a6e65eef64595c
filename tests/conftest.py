"""Root conftest: shared test configuration."""

import os
import threading
import time

import pytest


@pytest.fixture(autouse=True)
def _clean_handoff_env(monkeypatch):
    """Keep a developer's HANDOFF_* variables out of the tests."""
    for key in list(os.environ):
        if key.startswith("HANDOFF_"):
            monkeypatch.delenv(key, raising=False)
    yield
    # values pulled in from a .env during the test
    for key in list(os.environ):
        if key.startswith("HANDOFF_"):
            del os.environ[key]


def wait_until(predicate, timeout=2.0, interval=0.01):
    """Poll ``predicate`` until it is truthy or ``timeout`` elapses."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return bool(predicate())


def start_thread(target, *args, name=None):
    t = threading.Thread(target=target, args=args, name=name, daemon=True)
    t.start()
    return t
