import math
import threading
import time
from numbers import Real
from typing import Any, Callable, Dict, FrozenSet, Generic, Iterable, NamedTuple, Optional, TypeVar, Union, overload

from .errors import InvalidKeyError, InvalidTTLError

T = TypeVar("T")
D = TypeVar("D")


def _now_ms() -> int:
    return int(time.time() * 1000)


class CacheEntry(NamedTuple, Generic[T]):
    data: T
    expiry: int
    tags: FrozenSet[str]


class TaggedTTLCache(Generic[T]):
    """In-memory key-value cache with per-entry TTL and tag invalidation.

    Parameters
    ----------
    clock : Optional[Callable[[], int]]
        Zero-argument callable returning "now" in epoch milliseconds.
        Defaults to the wall clock.

    Notes
    -----
    - An entry is expired once ``now >= expiry``. The same boundary is used
      by `get`, `get_entry`, ``in`` and `cleanup`.
    - Expiration is lazy on reads; `cleanup` sweeps everything at once.
    - `invalidate_by_tag` is a linear scan, there is no tag index.
    - Payloads are stored by reference and never copied.
    """

    def __init__(self, clock: Optional[Callable[[], int]] = None):
        self._clock = clock or _now_ms
        self._store: Dict[str, CacheEntry[T]] = {}
        self._lock = threading.Lock()

    def set(self, key: str, data: T, ttl_seconds: float, tags: Iterable[str] = ()) -> None:
        """Insert or replace the entry for `key`.

        Parameters
        ----------
        key : str
            Non-empty cache key.
        data : T
            Value to store.
        ttl_seconds : float
            Time-to-live in seconds. Zero or negative values produce an
            entry that is already expired.
        tags : Iterable[str]
            Labels used by `invalidate_by_tag`. Replaces any previous tags.

        Raises
        ------
        InvalidKeyError
            If `key` is not a non-empty string.
        InvalidTTLError
            If `ttl_seconds` is not a finite real number.
        """

        _check_key(key)
        _check_ttl(ttl_seconds)
        tag_set = _freeze_tags(tags)
        with self._lock:
            expiry = self._clock() + round(ttl_seconds * 1000)
            self._store[key] = CacheEntry(data, expiry, tag_set)

    def get_entry(self, key: str) -> Optional[CacheEntry[T]]:
        """Return the live entry for `key`, or `None`. Stale entries are evicted."""

        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            if self._clock() >= entry.expiry:
                del self._store[key]
                return None
            return entry

    @overload
    def get(self, key: str) -> Optional[T]: ...

    @overload
    def get(self, key: str, default: D) -> Union[T, D]: ...

    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value for `key`, or `default` if missing or expired.

        Parameters
        ----------
        key : str
            Cache key.
        default : Any
            Returned when there is no live entry. Pass a sentinel to tell a
            cached `None` apart from a miss.

        Notes
        -----
        - Reading never extends the expiry.
        """

        entry = self.get_entry(key)
        if entry is None:
            return default
        return entry.data

    def __contains__(self, key: object) -> bool:
        """True if `key` has a live entry. Evicts it when stale, like `get`."""

        return isinstance(key, str) and self.get_entry(key) is not None

    def delete(self, key: str) -> None:
        """Remove the entry for `key`; missing keys are ignored."""

        with self._lock:
            self._store.pop(key, None)

    def invalidate_by_tag(self, tag: str) -> int:
        """Remove every entry carrying `tag`, expired or not.

        Returns
        -------
        int
            Number of entries removed.
        """

        with self._lock:
            doomed = [k for k, entry in self._store.items() if tag in entry.tags]
            for k in doomed:
                del self._store[k]
        return len(doomed)

    def clear(self) -> None:
        """Remove all entries from the cache."""

        with self._lock:
            self._store.clear()

    def size(self) -> int:
        """Number of stored entries, including expired ones not yet evicted."""

        with self._lock:
            return len(self._store)

    __len__ = size

    def cleanup(self) -> int:
        """Evict every entry expired as of now. Returns the number removed."""

        with self._lock:
            now = self._clock()
            doomed = [k for k, entry in self._store.items() if now >= entry.expiry]
            for k in doomed:
                del self._store[k]
        return len(doomed)


def _check_key(key: Any) -> None:
    if not isinstance(key, str) or not key:
        raise InvalidKeyError(f"cache key must be a non-empty string, got {key!r}")


def _check_ttl(ttl_seconds: Any) -> None:
    # bool is a Real subclass
    if isinstance(ttl_seconds, bool) or not isinstance(ttl_seconds, Real):
        raise InvalidTTLError(f"ttl_seconds must be a number, got {ttl_seconds!r}")
    if not math.isfinite(ttl_seconds):
        raise InvalidTTLError(f"ttl_seconds must be finite, got {ttl_seconds!r}")


def _freeze_tags(tags: Iterable[str]) -> FrozenSet[str]:
    if isinstance(tags, str):
        return frozenset((tags,))
    tag_set = frozenset(tags)
    for tag in tag_set:
        if not isinstance(tag, str):
            raise TypeError(f"tags must be strings, got {tag!r}")
    return tag_set
