"""redis-entities: typed entities stored in Redis and searched with RediSearch.

Entities are declared with a ``Schema``, stored as Redis hashes or RedisJSON
documents through a ``Repository``, and queried with a fluent search builder
that renders RediSearch query strings.

Example:
    >>> from redis_entities import Client, Schema
    >>>
    >>> schema = Schema(
    ...     "Bigfoot",
    ...     {
    ...         "title": {"type": "text"},
    ...         "state": {"type": "string"},
    ...         "temperature": {"type": "number", "sortable": True},
    ...         "location": {"type": "point"},
    ...     },
    ... )
    >>>
    >>> async with Client() as client:
    ...     repository = client.fetch_repository(schema)
    ...     await repository.create_index()
    ...     warm = await (
    ...         repository.search()
    ...         .where("state").eq("OH")
    ...         .and_("temperature").gte(75)
    ...         .all()
    ...     )
"""

from __future__ import annotations

import logging

from redis_entities._fields import FieldCodec, FieldDefinition, Point
from redis_entities._index import Index
from redis_entities.client import Client
from redis_entities.entity import Entity
from redis_entities.errors import (
    ClientNotOpenError,
    ConcurrencyError,
    ConfigurationError,
    DecodeError,
    QuerySyntaxError,
    RedisEntityError,
    ValidationError,
)
from redis_entities.options import (
    SearchLimit,
    SearchOptions,
    SortSpec,
    get_default_page_size,
    get_default_url,
)
from redis_entities.query import Circle, raw
from redis_entities.repository import HashRepository, JsonRepository, Repository
from redis_entities.schema import Schema
from redis_entities.search import RawSearch, Search

__all__ = [
    # Schema and entities
    "Schema",
    "FieldDefinition",
    "FieldCodec",
    "Entity",
    "Point",
    # Storage
    "Client",
    "Repository",
    "HashRepository",
    "JsonRepository",
    "Index",
    # Searching
    "Search",
    "RawSearch",
    "Circle",
    "raw",
    # Option classes
    "SearchOptions",
    "SearchLimit",
    "SortSpec",
    # Environment defaults
    "get_default_url",
    "get_default_page_size",
    # Errors
    "RedisEntityError",
    "ConfigurationError",
    "ValidationError",
    "DecodeError",
    "ConcurrencyError",
    "QuerySyntaxError",
    "ClientNotOpenError",
    # Version
    "__version__",
]

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())
