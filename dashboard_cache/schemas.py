from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class StrategyConfig(BaseModel):
    ttl: int
    tags: List[str]


class CacheConfig(BaseModel):
    enabled: bool
    strategies: Dict[str, StrategyConfig]


class CacheStatsResponse(BaseModel):
    """Occupancy and uptime of the dashboard cache.

    Notes
    -----
    - `size` counts stored entries, including expired ones the sweep has not
      reached yet.
    - `uptime` is in seconds since the cache layer was built.
    """

    size: int
    strategies: List[str]
    uptime: float
    enabled: bool


class CacheHealthResponse(BaseModel):
    healthy: bool
    error: Optional[str] = None
    stats: CacheStatsResponse
    config: CacheConfig


class InvalidateRequest(BaseModel):
    tags: List[str] = Field(..., description="Tags whose entries must be dropped")


class InvalidateResponse(BaseModel):
    tags: List[str]
    removed: int


class CleanupResponse(BaseModel):
    removed: int
    size: int


class ClearResponse(BaseModel):
    size: int
