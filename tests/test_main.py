"""Tests for the cache administration API."""

from __future__ import annotations

import logging

import pytest
from fastapi.testclient import TestClient

from dashboard_cache.main import create_app
from dashboard_cache.settings import Settings


@pytest.fixture()
def client():
    app = create_app(Settings(cleanup_interval_seconds=60))
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def cache(client):
    return client.app.state.dashboard.cache


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_lifespan_starts_and_stops_sweeper():
    app = create_app(Settings(cleanup_interval_seconds=60))
    with TestClient(app):
        sweeper = app.state.sweeper
        assert sweeper.running
    assert not sweeper.running


def test_stats(client, cache):
    cache.set("k", 1, 60)
    r = client.get("/v1/cache/stats")
    assert r.status_code == 200
    body = r.json()
    assert body["size"] == 1
    assert "dashboard_overview" in body["strategies"]
    assert body["enabled"] is True


def test_stats_reflects_disabled_setting():
    with TestClient(create_app(Settings(cache_enabled=False))) as c:
        assert c.get("/v1/cache/stats").json()["enabled"] is False


def test_cache_health(client, cache):
    r = client.get("/v1/cache/health")
    assert r.status_code == 200
    body = r.json()
    assert body["healthy"] is True
    assert body["config"]["strategies"]["alerts"] == {"ttl": 120, "tags": ["inventory", "sales"]}
    assert cache.size() == 0


def test_cache_health_unhealthy(client, cache, monkeypatch):
    def broken_set(*args, **kwargs):
        raise RuntimeError("store unavailable")

    monkeypatch.setattr(cache, "set", broken_set)
    r = client.get("/v1/cache/health")
    assert r.status_code == 503
    assert r.json()["healthy"] is False
    assert r.json()["error"] == "store unavailable"


def test_invalidate(client, cache):
    cache.set("overview", 1, 60, ["sales", "customers"])
    cache.set("stock", 2, 60, ["inventory"])

    r = client.post("/v1/cache/invalidate", json={"tags": ["sales", " "]})

    assert r.status_code == 200
    assert r.json() == {"tags": ["sales"], "removed": 1}
    assert "overview" not in cache
    assert "stock" in cache


def test_invalidate_requires_a_tag(client):
    r = client.post("/v1/cache/invalidate", json={"tags": ["", "  "]})
    assert r.status_code == 400
    assert r.json()["detail"] == "Provide at least one tag"


def test_invalidate_validates_body(client):
    r = client.post("/v1/cache/invalidate", json={})
    assert r.status_code == 422


def test_cleanup(client, cache):
    cache.set("expired", 1, 0)
    cache.set("live", 2, 60)

    r = client.post("/v1/cache/cleanup")

    assert r.status_code == 200
    assert r.json() == {"removed": 1, "size": 1}


def test_clear(client, cache):
    cache.set("a", 1, 60)
    cache.set("b", 2, 60)

    r = client.delete("/v1/cache")

    assert r.status_code == 200
    assert r.json() == {"size": 0}
    assert cache.get("a") is None


@pytest.fixture()
def restore_log_level():
    root = logging.getLogger("dashboard_cache")
    level = root.level
    yield
    root.setLevel(level)


@pytest.mark.parametrize("level, expected", [("DEBUG", logging.DEBUG), ("error", logging.ERROR)])
def test_log_level_follows_injected_settings(restore_log_level, level, expected):
    with TestClient(create_app(Settings(log_level=level))):
        for name in ("dashboard_cache.sweeper", "dashboard_cache.dashboard", "dashboard_cache.main"):
            assert logging.getLogger(name).getEffectiveLevel() == expected


def test_openapi_describes_admin_endpoints(client):
    paths = client.get("/openapi.json").json()["paths"]
    assert paths["/v1/cache/stats"]["get"]["description"].startswith("Report cache occupancy")
    assert paths["/v1/cache/cleanup"]["post"]["description"].startswith("Sweep expired entries now")
    assert paths["/v1/cache"]["delete"]["description"].startswith("Drop every cached read")
