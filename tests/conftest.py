"""Pytest configuration and fixtures shared across all test modules.

Environment defaults are set before anything imports the settings module,
which validates configuration at import time.
"""

import os

os.environ["APP_ENV"] = "testing"
os.environ.setdefault("UPSTREAM_BASE_URL", "http://upstream.test")
os.environ.setdefault("UPSTREAM_CONCURRENCY", "1")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest  # noqa: E402

from fakes import FakeClock, FakeUpstreamClient  # noqa: E402


@pytest.fixture
def fake_upstream() -> FakeUpstreamClient:
    return FakeUpstreamClient()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
