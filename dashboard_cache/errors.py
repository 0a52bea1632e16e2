"""Errors raised on invalid cache input."""


class CacheError(Exception):
    """Base class for cache errors."""


class InvalidKeyError(CacheError, ValueError):
    """Key is empty or not a string."""


class InvalidTTLError(CacheError, ValueError):
    """TTL is not a finite number of seconds."""


class UnknownStrategyError(CacheError, LookupError):
    """No cache strategy registered under the requested name."""
