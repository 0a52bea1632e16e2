import functools
import inspect
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, NamedTuple, Optional, Union

from .cache import TaggedTTLCache
from .errors import UnknownStrategyError
from .log import get_logger

log = get_logger("dashboard")

HEALTH_CHECK_KEY = "health-check"
_MISSING = object()


class CacheStrategy(NamedTuple):
    ttl: int
    tags: tuple


CACHE_STRATEGIES: Dict[str, CacheStrategy] = {
    "dashboard_overview": CacheStrategy(300, ("sales", "products", "customers")),
    "top_products": CacheStrategy(600, ("sales", "products")),
    "user_performance": CacheStrategy(900, ("sales",)),
    "category_metrics": CacheStrategy(600, ("sales", "categories")),
    "inventory_analysis": CacheStrategy(180, ("inventory",)),
    "sales_chart": CacheStrategy(300, ("sales",)),
    "category_chart": CacheStrategy(600, ("sales", "categories")),
    "alerts": CacheStrategy(120, ("inventory", "sales")),
}


class CachedResult(NamedTuple):
    data: Any
    cached: bool
    cache_expiry: Optional[datetime] = None


QueryFunction = Callable[[], Union[Any, Awaitable[Any]]]


def generate_cache_key(endpoint: str, params: Mapping[str, Any], user_id: Optional[int] = None) -> str:
    """Build a deterministic key from an endpoint name, query params and user.

    Params are sorted by name so that their order does not matter.

    Examples
    --------
    >>> generate_cache_key("top-products", {"period": "week", "limit": 5}, 7)
    'dashboard:top-products:user:7:limit=5&period=week'
    """

    sorted_params = "&".join(f"{k}={params[k]}" for k in sorted(params))
    user_part = f"user:{user_id}" if user_id else "public"
    return f"dashboard:{endpoint}:{user_part}:{sorted_params}"


class DashboardCache:
    """Memoizes dashboard analytics queries on top of a `TaggedTTLCache`.

    Parameters
    ----------
    cache : TaggedTTLCache
        Shared cache instance, owned by the application.
    strategies : Mapping[str, CacheStrategy]
        TTL and tags per query kind. Defaults to `CACHE_STRATEGIES`.
    enabled : bool
        When False every call recomputes and nothing is stored.

    Notes
    -----
    - Tags name the business entities a query reads; writers call the
      ``invalidate_after_*`` hooks so that dependent reads are recomputed.
    """

    def __init__(self, cache: TaggedTTLCache, strategies: Optional[Mapping[str, CacheStrategy]] = None,
                 enabled: bool = True):
        self.cache = cache
        self.strategies = dict(CACHE_STRATEGIES if strategies is None else strategies)
        self.enabled = enabled
        self._started = time.monotonic()

    def strategy(self, name: str) -> CacheStrategy:
        """Look up a strategy by name.

        Raises
        ------
        UnknownStrategyError
            If `name` is not registered.
        """

        try:
            return self.strategies[name]
        except KeyError:
            raise UnknownStrategyError(f"unknown cache strategy: {name!r}") from None

    async def get_cached_data(self, cache_key: str, query_function: QueryFunction, strategy: str) -> CachedResult:
        """Return the cached value for `cache_key`, computing and storing it on a miss.

        Parameters
        ----------
        cache_key : str
            Key of the cached read, usually from `generate_cache_key`.
        query_function : Callable
            Zero-argument callable (sync or async) producing the value.
        strategy : str
            Name of the strategy giving the TTL and invalidation tags.

        Returns
        -------
        CachedResult
            `cached` is True on a hit, with `cache_expiry` set to the entry's
            actual expiry time (UTC).

        Raises
        ------
        UnknownStrategyError
            If `strategy` is not registered.
        """

        ttl, tags = self.strategy(strategy)

        if self.enabled:
            entry = self.cache.get_entry(cache_key)
            if entry is not None:
                expiry = datetime.fromtimestamp(entry.expiry / 1000, tz=timezone.utc)
                return CachedResult(entry.data, True, expiry)

        data = query_function()
        if inspect.isawaitable(data):
            data = await data

        if self.enabled:
            self.cache.set(cache_key, data, ttl, tags)
        return CachedResult(data, False)

    def with_cache(self, strategy: str):
        """Decorate a query taking a params mapping so that it goes through the cache.

        The wrapped coroutine has the signature ``(params, user_id=None)`` and
        returns a `CachedResult`.
        """

        self.strategy(strategy)
        endpoint = strategy.replace("_", "-")

        def decorator(query_function: Callable[[Mapping[str, Any]], Any]):
            @functools.wraps(query_function)
            async def wrapper(params: Mapping[str, Any], user_id: Optional[int] = None) -> CachedResult:
                cache_key = generate_cache_key(endpoint, params, user_id)
                return await self.get_cached_data(cache_key, lambda: query_function(params), strategy)

            return wrapper

        return decorator

    def invalidate(self, tags: Union[str, Iterable[str]]) -> int:
        """Drop every entry carrying any of `tags`. Returns the number removed."""

        tag_list: List[str] = [tags] if isinstance(tags, str) else list(tags)
        removed = sum(self.cache.invalidate_by_tag(tag) for tag in tag_list)
        log.info("Cache invalidated for tags: %s (%d entries)", ", ".join(tag_list), removed)
        return removed

    def invalidate_after_sale(self) -> int:
        """Drop reads depending on sales, products or customers."""

        return self.invalidate(["sales", "products", "customers"])

    def invalidate_after_product(self) -> int:
        """Drop reads depending on products or inventory."""

        return self.invalidate(["products", "inventory"])

    def invalidate_after_inventory(self) -> int:
        """Drop reads depending on inventory."""

        return self.invalidate(["inventory"])

    def invalidate_after_customer(self) -> int:
        """Drop reads depending on customers."""

        return self.invalidate(["customers"])

    def clear_all(self) -> None:
        """Remove every cached read."""

        self.cache.clear()
        log.info("Dashboard cache cleared")

    def stats(self) -> Dict[str, Any]:
        """Occupancy snapshot.

        Returns
        -------
        Dict[str, Any]
            ``size`` (expired entries included), ``strategies`` (names),
            ``uptime`` (seconds since this layer was built) and ``enabled``.
        """

        return {
            "size": self.cache.size(),
            "strategies": list(self.strategies),
            "uptime": time.monotonic() - self._started,
            "enabled": self.enabled,
        }

    def config(self) -> Dict[str, Any]:
        """The enabled flag and each strategy's TTL and tags."""

        return {
            "enabled": self.enabled,
            "strategies": {name: {"ttl": s.ttl, "tags": list(s.tags)} for name, s in self.strategies.items()},
        }

    def health_check(self) -> Dict[str, Any]:
        """Round-trip a probe entry through the cache.

        Returns
        -------
        Dict[str, Any]
            ``healthy``, ``stats`` and ``config``; ``error`` is added when the
            probe raised.
        """

        try:
            probe = {"timestamp": time.time()}
            self.cache.set(HEALTH_CHECK_KEY, probe, 10)
            retrieved = self.cache.get(HEALTH_CHECK_KEY, _MISSING)
            self.cache.delete(HEALTH_CHECK_KEY)
            healthy = retrieved is not _MISSING and retrieved["timestamp"] == probe["timestamp"]
            if not healthy:
                log.warning("Cache health probe could not be read back")
            return {"healthy": healthy, "stats": self.stats(), "config": self.config()}
        except Exception as e:
            log.exception("Cache health check failed")
            return {"healthy": False, "error": str(e), "stats": self.stats(), "config": self.config()}
