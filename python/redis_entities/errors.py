"""Error types raised by redis-entities."""

from __future__ import annotations


class RedisEntityError(Exception):
    """Base class for every error raised by redis-entities."""


class ConfigurationError(RedisEntityError):
    """Raised when a schema, query or sort is declared improperly."""


class ValidationError(RedisEntityError):
    """Raised when a value assigned to an entity field violates its type."""


class DecodeError(RedisEntityError):
    """Raised when data read back from Redis does not match its field type."""


class ConcurrencyError(RedisEntityError):
    """Raised when an atomic Hash write lost a race with another client."""


class QuerySyntaxError(RedisEntityError):
    """Raised when RediSearch rejects a rendered query."""


class ClientNotOpenError(RedisEntityError):
    """Raised when the client is used before a connection is opened."""
