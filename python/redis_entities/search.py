"""Searching entities with RediSearch.

``Search`` builds a query with the fluent ``where``/``and_``/``or_`` chain
(see ``query.py``); ``RawSearch`` takes a query string as-is. Both share the
paging and sorting operations of ``AbstractSearch``.

Example:
    >>> sightings = await (
    ...     repository.search()
    ...     .where("state").eq("OH")
    ...     .and_("temperature").gte(60)
    ...     .sort_by("temperature", "DESC")
    ...     .all()
    ... )
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Callable, Optional, Union

from redis.exceptions import ResponseError

from redis_entities.entity import Entity
from redis_entities.errors import ConfigurationError, DecodeError, QuerySyntaxError
from redis_entities.options import (
    SearchLimit,
    SearchOptions,
    SortOrder,
    SortSpec,
    get_default_page_size,
)
from redis_entities.query import (
    Where,
    WhereAnd,
    WhereDate,
    WhereField,
    WhereHashBoolean,
    WhereJsonBoolean,
    WhereNumber,
    WhereOr,
    WherePoint,
    WhereString,
    WhereStringArray,
    WhereText,
)

if TYPE_CHECKING:
    import polars as pl

    from redis_entities.client import Client
    from redis_entities.schema import Schema

log = logging.getLogger(__name__)

UNSORTABLE_TYPES = ("point", "string[]")
JSON_SORTABLE_TYPES = ("number", "text", "date")
HASH_SORTABLE_TYPES = ("string", "boolean", "number", "text", "date")

STOP_WORDS_URL = "https://github.com/RediSearch/RediSearch/blob/master/src/stopwords.h"


# =============================================================================
# Reply conversion
# =============================================================================


class SearchResultsConverter(ABC):
    """Splits an FT.SEARCH reply into a count, keys and entities.

    A reply is ``[total, key1, fields1, key2, fields2, ...]``.
    """

    def __init__(self, schema: Schema, results: Sequence[Any]):
        self.schema = schema
        self.results = results

    @property
    def count(self) -> int:
        return int(self.results[0])

    @property
    def keys(self) -> list[str]:
        return list(self.results[1::2])

    @property
    def ids(self) -> list[str]:
        return [key_to_entity_id(self.schema, key) for key in self.keys]

    @property
    def values(self) -> list[Sequence[Any]]:
        return list(self.results[2::2])

    @property
    def entities(self) -> list[Entity]:
        return [
            self.array_to_entity(entity_id, array)
            for entity_id, array in zip(self.ids, self.values)
        ]

    @abstractmethod
    def array_to_entity(self, entity_id: str, array: Sequence[Any]) -> Entity:
        ...


class HashSearchResultsConverter(SearchResultsConverter):
    """Field payloads are flat ``[field, value, field, value, ...]`` lists."""

    def array_to_entity(self, entity_id: str, array: Sequence[Any]) -> Entity:
        hash_data = dict(zip(array[0::2], array[1::2]))
        entity = Entity(self.schema, entity_id)
        entity.from_redis_hash(hash_data)
        return entity


class JsonSearchResultsConverter(SearchResultsConverter):
    """The document is the element following the ``$`` marker."""

    def array_to_entity(self, entity_id: str, array: Sequence[Any]) -> Entity:
        items = list(array)
        try:
            json_string = items[items.index("$") + 1]
        except (ValueError, IndexError):
            raise DecodeError(
                f"Search result for '{entity_id}' does not contain a JSON document."
            ) from None
        try:
            json_data = json.loads(json_string)
        except json.JSONDecodeError as e:
            raise DecodeError(f"Search result for '{entity_id}' is not valid JSON: {e}") from e
        entity = Entity(self.schema, entity_id)
        entity.from_redis_json(json_data)
        return entity


def key_to_entity_id(schema: Schema, key: str) -> str:
    """Strip ``<prefix>:`` from a Redis key."""
    prefix = f"{schema.prefix}:"
    if key.startswith(prefix):
        return key[len(prefix) :]
    return key


def _converter_for(schema: Schema, results: Sequence[Any]) -> SearchResultsConverter:
    if schema.data_structure == "JSON":
        return JsonSearchResultsConverter(schema, results)
    return HashSearchResultsConverter(schema, results)


# =============================================================================
# Searches
# =============================================================================


class AbstractSearch(ABC):
    """Paging, sorting and counting over a query.

    Subclasses provide ``query``, the rendered RediSearch query string.

    Args:
        schema: Schema of the entities being searched.
        client: An open ``Client``.
    """

    def __init__(self, schema: Schema, client: Client):
        self.schema = schema
        self.client = client
        self.sort: Optional[SortSpec] = None

    @property
    @abstractmethod
    def query(self) -> str:
        ...

    # -------------------------------------------------------------------------
    # Sorting
    # -------------------------------------------------------------------------

    def sort_by(self, field: str, order: SortOrder = "ASC") -> AbstractSearch:
        """Sort results by a field.

        Args:
            field: Property name of the field.
            order: ``"ASC"`` or ``"DESC"``.

        Raises:
            ConfigurationError: If the field is unknown or cannot be sorted.
        """
        field_def = self.schema.definition.get(field)
        if field_def is None:
            raise ConfigurationError(
                f"'sort_by' was called on field '{field}' which is not defined in the Schema."
            )
        if field_def.type in UNSORTABLE_TYPES:
            raise ConfigurationError(
                f"'sort_by' was called on '{field_def.type}' field '{field}' "
                "which cannot be sorted."
            )
        if order not in ("ASC", "DESC"):
            raise ConfigurationError(f"Sort order must be 'ASC' or 'DESC', got {order!r}.")

        sortable_types = (
            JSON_SORTABLE_TYPES if self.schema.data_structure == "JSON" else HASH_SORTABLE_TYPES
        )
        if field_def.type in sortable_types and not field_def.sortable:
            log.warning(
                "'sort_by' was called on field '%s' which is not marked as sortable in the "
                "Schema. This may result in slower searches. If possible, mark the field as "
                "sortable in the Schema.",
                field,
            )
        elif field_def.type not in sortable_types:
            log.warning(
                "'sort_by' was called on %s field '%s' which RediSearch cannot mark as "
                "sortable in a %s index. This may result in slower searches.",
                field_def.type,
                field,
                self.schema.data_structure,
            )

        self.sort = SortSpec(field=field_def.alias_for(field), order=order)
        return self

    def sort_asc(self, field: str) -> AbstractSearch:
        return self.sort_by(field, "ASC")

    def sort_ascending(self, field: str) -> AbstractSearch:
        return self.sort_by(field, "ASC")

    def sort_desc(self, field: str) -> AbstractSearch:
        return self.sort_by(field, "DESC")

    def sort_descending(self, field: str) -> AbstractSearch:
        return self.sort_by(field, "DESC")

    # -------------------------------------------------------------------------
    # Results
    # -------------------------------------------------------------------------

    async def count(self) -> int:
        """Number of entities matching the query."""
        results = await self._call_search(SearchLimit(0, 0))
        return _converter_for(self.schema, results).count

    async def page(self, offset: int, count: int) -> list[Entity]:
        """One page of matching entities."""
        results = await self._call_search(SearchLimit(offset, count))
        return _converter_for(self.schema, results).entities

    async def page_of_ids(self, offset: int, count: int) -> list[str]:
        keys = await self.page_of_keys(offset, count)
        return [key_to_entity_id(self.schema, key) for key in keys]

    async def page_of_keys(self, offset: int, count: int) -> list[str]:
        results = await self._call_search(SearchLimit(offset, count), keys_only=True)
        return list(results[1:])

    async def first(self) -> Optional[Entity]:
        """The first matching entity, or None."""
        entities = await self.page(0, 1)
        return entities[0] if entities else None

    async def first_id(self) -> Optional[str]:
        key = await self.first_key()
        return None if key is None else key_to_entity_id(self.schema, key)

    async def first_key(self) -> Optional[str]:
        keys = await self.page_of_keys(0, 1)
        return keys[0] if keys else None

    async def min(self, field: str) -> Optional[Entity]:
        """The entity with the smallest value of ``field``."""
        return await self.sort_by(field, "ASC").first()

    async def min_id(self, field: str) -> Optional[str]:
        return await self.sort_by(field, "ASC").first_id()

    async def min_key(self, field: str) -> Optional[str]:
        return await self.sort_by(field, "ASC").first_key()

    async def max(self, field: str) -> Optional[Entity]:
        """The entity with the largest value of ``field``."""
        return await self.sort_by(field, "DESC").first()

    async def max_id(self, field: str) -> Optional[str]:
        return await self.sort_by(field, "DESC").first_id()

    async def max_key(self, field: str) -> Optional[str]:
        return await self.sort_by(field, "DESC").first_key()

    async def all(self, page_size: Optional[int] = None) -> list[Entity]:
        """Every matching entity, fetched one page at a time.

        Paging stops at the first page shorter than ``page_size``. Pages are
        independent queries, so concurrent writes may show up or be missed.

        Args:
            page_size: Entities per request. Defaults to
                ``get_default_page_size()``.
        """
        page_size = _resolve_page_size(page_size)
        entities: list[Entity] = []
        offset = 0
        while True:
            found = await self.page(offset, page_size)
            entities.extend(found)
            if len(found) < page_size:
                break
            offset += page_size
        return entities

    async def all_ids(self, page_size: Optional[int] = None) -> list[str]:
        keys = await self.all_keys(page_size)
        return [key_to_entity_id(self.schema, key) for key in keys]

    async def all_keys(self, page_size: Optional[int] = None) -> list[str]:
        page_size = _resolve_page_size(page_size)
        keys: list[str] = []
        offset = 0
        while True:
            found = await self.page_of_keys(offset, page_size)
            keys.extend(found)
            if len(found) < page_size:
                break
            offset += page_size
        return keys

    async def all_frame(self, page_size: Optional[int] = None) -> pl.DataFrame:
        """Every matching entity as a polars DataFrame.

        The frame has an ``entity_id`` column followed by one column per
        schema field, typed from the field definitions.
        """
        from redis_entities._frame import entities_to_frame

        return entities_to_frame(self.schema, await self.all(page_size))

    async def _call_search(
        self, limit: Optional[SearchLimit] = None, keys_only: bool = False
    ) -> list[Any]:
        options = SearchOptions(
            index_name=self.schema.index_name,
            query=self.query,
            limit=limit or SearchLimit(),
            sort=self.sort,
            keys_only=keys_only,
        )
        try:
            return await self.client.search(options)
        except ResponseError as e:
            message = str(e)
            if message.startswith("Syntax error"):
                raise QuerySyntaxError(
                    f'The query to RediSearch had a syntax error: "{message}".\n'
                    "This is often the result of using a stop word in the query. Either "
                    "change the query to not use a stop word or change the stop words in "
                    "the schema definition. You can check the RediSearch source for the "
                    f"default stop words at: {STOP_WORDS_URL}."
                ) from e
            raise


def _resolve_page_size(page_size: Optional[int]) -> int:
    if page_size is None:
        return get_default_page_size()
    if page_size < 1:
        raise ConfigurationError(f"page_size must be positive, got {page_size}.")
    return page_size


class RawSearch(AbstractSearch):
    """A search with a hand-written RediSearch query.

    Example:
        >>> await repository.search_raw("@state:{OH} @temperature:[60 +inf]").all()
    """

    def __init__(self, schema: Schema, client: Client, query: str = "*"):
        super().__init__(schema, client)
        self.raw_query = query

    @property
    def query(self) -> str:
        return self.raw_query


_WHERE_TYPES: dict[str, type[WhereField]] = {
    "date": WhereDate,
    "number": WhereNumber,
    "point": WherePoint,
    "text": WhereText,
    "string": WhereString,
    "string[]": WhereStringArray,
}

SubSearch = Callable[["Search"], "Search"]


class Search(AbstractSearch):
    """A search built from field predicates.

    ``where`` and ``and_`` combine with AND, ``or_`` with OR. Each call wraps
    everything so far as the left operand, so the chain reads left to right.
    Passing a function instead of a field name groups the predicates it adds.

    Example:
        >>> search.where("state").eq("OH").or_(
        ...     lambda s: s.where("state").eq("PA").and_("temperature").gt(90)
        ... )
    """

    def __init__(self, schema: Schema, client: Client):
        super().__init__(schema, client)
        self.root_where: Optional[Where] = None

    @property
    def query(self) -> str:
        if self.root_where is None:
            return "*"
        return self.root_where.render()

    def where(self, field_or_fn: Union[str, SubSearch]) -> Any:
        """Start (or AND onto) the query with a field predicate or sub-search."""
        return self._any_where(WhereAnd, field_or_fn)

    def and_(self, field_or_fn: Union[str, SubSearch]) -> Any:
        return self._any_where(WhereAnd, field_or_fn)

    def or_(self, field_or_fn: Union[str, SubSearch]) -> Any:
        return self._any_where(WhereOr, field_or_fn)

    def _any_where(self, ctor: type[Union[WhereAnd, WhereOr]], field_or_fn: Any) -> Any:
        if isinstance(field_or_fn, str):
            where = self._create_where(field_or_fn)
            self._attach(ctor, where)
            return where

        sub_search = field_or_fn(Search(self.schema, self.client))
        if sub_search.root_where is None:
            raise ConfigurationError("A sub-search must add at least one predicate.")
        self._attach(ctor, sub_search.root_where)
        return self

    def _attach(self, ctor: type[Union[WhereAnd, WhereOr]], where: Where) -> None:
        if self.root_where is None:
            self.root_where = where
        else:
            self.root_where = ctor(self.root_where, where)

    def _create_where(self, field: str) -> WhereField:
        field_def = self.schema.field_for(field)
        alias = field_def.alias_for(field)
        if field_def.type == "boolean":
            if self.schema.data_structure == "HASH":
                return WhereHashBoolean(self, alias)
            return WhereJsonBoolean(self, alias)
        return _WHERE_TYPES[field_def.type](self, alias)
