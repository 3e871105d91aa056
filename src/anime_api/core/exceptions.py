"""Core exceptions shared by the cache, storage and configuration layers.

A cache miss is not an exception: the cache layers return the ``MISS``
sentinel from :mod:`anime_api.services.cache.kv_store` instead.
"""


class ConfigurationError(Exception):
    """Raised when configuration loading or parsing fails."""

    def __init__(self, message: str, config_path: str | None = None) -> None:
        """Initialize the configuration error.

        Args:
            message: Error description
            config_path: Path to the config file that caused the error

        """
        super().__init__(message)
        self.config_path = config_path


class CacheError(Exception):
    """Base exception for cache-layer failures."""

    def __init__(self, message: str, key: str | None = None) -> None:
        """Initialize the cache error.

        Args:
            message: Error description
            key: Cache key (or pattern) involved in the failed operation

        """
        super().__init__(message)
        self.key = key


class CacheDecodeError(CacheError):
    """Raised when cached bytes are not valid JSON or do not match the target shape."""


class CacheEncodeError(CacheError):
    """Raised when a value cannot be serialized to JSON for caching."""


class CacheTransportError(CacheError):
    """Raised when a round trip to the key-value store fails."""

    def __init__(self, message: str, operation: str, key: str | None = None) -> None:
        """Initialize the transport error.

        Args:
            message: Error description
            operation: Store operation that failed (get, set, delete, ...)
            key: Cache key (or pattern) involved in the failed operation

        """
        super().__init__(message, key)
        self.operation = operation


class InvalidTTLError(CacheError, ValueError):
    """Raised when an entry would be stored without a positive TTL."""


class ParseError(ValueError):
    """Base exception for domain string parsing failures."""


class SeasonParseError(ParseError):
    """Raised when a season string does not match ``<SEASON>_<YEAR>``."""

    def __init__(self, value: str) -> None:
        """Initialize the season parse error.

        Args:
            value: The rejected season string

        """
        super().__init__(f"invalid season year format: {value} (expected format: SPRING_2024)")
        self.value = value


class InvariantViolationError(RuntimeError):
    """Raised when an internal invariant does not hold (a programming error)."""
