"""Shared fixtures for dashboard-cache tests."""

from __future__ import annotations

import pytest

from dashboard_cache.cache import TaggedTTLCache
from dashboard_cache.dashboard import DashboardCache


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, now: int = 1_700_000_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += round(seconds * 1000)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def cache(clock) -> TaggedTTLCache:
    return TaggedTTLCache(clock=clock)


@pytest.fixture()
def dashboard(cache) -> DashboardCache:
    return DashboardCache(cache)
