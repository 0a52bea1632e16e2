from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from .cache import TaggedTTLCache
from .dashboard import DashboardCache
from .log import get_logger, set_log_level
from .schemas import (
    CacheHealthResponse,
    CacheStatsResponse,
    CleanupResponse,
    ClearResponse,
    InvalidateRequest,
    InvalidateResponse,
)
from .settings import Settings, settings as default_settings
from .sweeper import CacheSweeper

log = get_logger("main")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the cache service.

    The cache, the dashboard layer and the background sweeper are created in
    the application lifespan and shared through `app.state`.

    Parameters
    ----------
    settings : Optional[Settings]
        Runtime configuration. Defaults to the module-level `settings`.
    """

    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        set_log_level(settings.log_level)
        cache = TaggedTTLCache()
        app.state.dashboard = DashboardCache(cache, enabled=settings.cache_enabled)
        app.state.sweeper = CacheSweeper(cache, settings.cleanup_interval_seconds)
        app.state.sweeper.start()
        try:
            yield
        finally:
            await app.state.sweeper.stop()
            cache.clear()

    app = FastAPI(title="Dashboard Cache API", version="1.0.0", lifespan=lifespan)

    _register_routes(app)
    return app


def get_dashboard(request: Request) -> DashboardCache:
    return request.app.state.dashboard


def _register_routes(app: FastAPI) -> None:
    @app.get("/health")
    async def health():
        """Liveness probe for the service.

        Returns
        -------
        dict
            A fixed payload `{"status": "ok"}` used by orchestrators and uptime checks.
        """

        return {"status": "ok"}

    @app.get("/v1/cache/stats", response_model=CacheStatsResponse)
    async def cache_stats(dashboard: DashboardCache = Depends(get_dashboard)):
        """Report cache occupancy and uptime.

        Returns
        -------
        CacheStatsResponse
            `size` includes expired entries not yet swept.
        """

        return dashboard.stats()

    @app.get("/v1/cache/health", response_model=CacheHealthResponse)
    async def cache_health(dashboard: DashboardCache = Depends(get_dashboard)):
        """Round-trip a probe entry through the cache.

        Returns
        -------
        CacheHealthResponse
            The health report, with status 503 when the probe could not be
            written and read back.
        """

        report = dashboard.health_check()
        if not report["healthy"]:
            return JSONResponse(status_code=503, content=CacheHealthResponse(**report).model_dump())
        return report

    @app.post("/v1/cache/invalidate", response_model=InvalidateResponse)
    async def invalidate(body: InvalidateRequest, dashboard: DashboardCache = Depends(get_dashboard)):
        """Drop every cached read tagged with any of the given tags.

        Raises
        ------
        HTTPException
            400 if no non-blank tag is provided.

        Examples
        --------
        - `POST /v1/cache/invalidate` with `{"tags": ["sales", "inventory"]}`
        """

        tags = [t.strip() for t in body.tags if t.strip()]
        if not tags:
            raise HTTPException(status_code=400, detail="Provide at least one tag")
        removed = dashboard.invalidate(tags)
        return {"tags": tags, "removed": removed}

    @app.post("/v1/cache/cleanup", response_model=CleanupResponse)
    async def cleanup(request: Request, dashboard: DashboardCache = Depends(get_dashboard)):
        """Sweep expired entries now instead of waiting for the background sweeper.

        Returns
        -------
        CleanupResponse
            Number of entries removed and the remaining size.
        """

        removed = request.app.state.sweeper.run_once()
        return {"removed": removed, "size": dashboard.cache.size()}

    @app.delete("/v1/cache", response_model=ClearResponse)
    async def clear(dashboard: DashboardCache = Depends(get_dashboard)):
        """Drop every cached read, live or expired.

        Returns
        -------
        ClearResponse
            The size after clearing, always 0.
        """

        dashboard.clear_all()
        return {"size": dashboard.cache.size()}


app = create_app()
