from pydantic import BaseModel, ConfigDict, Field


class Settings(BaseModel):
    """Immutable runtime configuration for the cache service.

    Notes
    -----
    - Values here are not read from environment variables. Build a `Settings`
      explicitly and pass it to `create_app` to override them.
    - Per-query TTLs live in the cache strategies (`dashboard.CACHE_STRATEGIES`);
      the interval below only drives the background sweep.
    """

    model_config = ConfigDict(frozen=True)

    cache_enabled: bool = True
    cleanup_interval_seconds: float = Field(5 * 60, gt=0)  # 5 minutes
    log_level: str = "WARNING"


settings = Settings()
