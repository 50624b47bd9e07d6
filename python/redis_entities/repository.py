"""Repositories: saving, fetching and searching entities of one schema.

Use ``Client.fetch_repository(schema)`` to get the repository matching the
schema's data structure.

Example:
    >>> repository = client.fetch_repository(schema)
    >>> await repository.create_index()
    >>> sighting = await repository.create_and_save({"title": "Tracks in the snow"})
    >>> fetched = await repository.fetch(sighting.entity_id)
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any, Optional, Union, overload

from redis_entities._index import Index
from redis_entities.entity import Entity
from redis_entities.search import RawSearch, Search

if TYPE_CHECKING:
    from redis_entities.client import Client
    from redis_entities.schema import Schema

log = logging.getLogger(__name__)


class Repository(ABC):
    """Storage operations for entities of a single schema.

    Args:
        schema: Schema of the stored entities.
        client: An open ``Client``.
    """

    def __init__(self, schema: Schema, client: Client):
        self.schema = schema
        self.client = client

    async def create_index(self) -> None:
        """Create the RediSearch index, rebuilding it only if the schema changed.

        The schema's ``index_hash`` is kept at ``schema.index_hash_name``; when it
        matches, nothing is sent.
        """
        current_hash = await self.client.get(self.schema.index_hash_name)
        if current_hash == self.schema.index_hash:
            log.debug("Index %s is up to date", self.schema.index_name)
            return

        log.info("Rebuilding index %s", self.schema.index_name)
        await self.drop_index()
        await Index.from_schema(self.schema).create(self.client)
        await self.client.set(self.schema.index_hash_name, self.schema.index_hash)

    async def drop_index(self) -> None:
        """Drop the index and forget its stored hash. Indexed entities are kept."""
        await self.client.unlink(self.schema.index_hash_name)
        await Index.from_schema(self.schema).drop(self.client)

    def create_entity(
        self, data: Optional[Mapping[str, Any]] = None, entity_id: Optional[str] = None
    ) -> Entity:
        """Create an entity without saving it.

        Args:
            data: Initial field values keyed by property name.
            entity_id: Id to use. Generated by the schema's id strategy if omitted.
        """
        entity_id = entity_id if entity_id is not None else self.schema.generate_id()
        return Entity(self.schema, entity_id, data)

    async def save(self, entity: Entity) -> str:
        """Write the entity, replacing whatever is stored at its key. Returns its id."""
        await self._write_entity(entity)
        return entity.entity_id

    async def create_and_save(
        self, data: Optional[Mapping[str, Any]] = None, entity_id: Optional[str] = None
    ) -> Entity:
        entity = self.create_entity(data, entity_id)
        await self.save(entity)
        return entity

    @overload
    async def fetch(self, ids: str) -> Entity: ...

    @overload
    async def fetch(self, ids: Sequence[str]) -> list[Entity]: ...

    @overload
    async def fetch(self, ids: str, *more_ids: str) -> list[Entity]: ...

    async def fetch(
        self, ids: Union[str, Sequence[str]], *more_ids: str
    ) -> Union[Entity, list[Entity]]:
        """Read entities by id.

        A single id returns one entity; several ids or a list return a list in
        the same order. Ids with nothing stored yield entities whose fields are
        all None.

        Example:
            >>> one = await repository.fetch("01FJYWEYRHYFT8YTEGQBABJ43J")
            >>> many = await repository.fetch(["01FJYWEY...", "01FJYWEZ..."])
        """
        if more_ids:
            return await self._read_entities([ids, *more_ids])  # type: ignore[list-item]
        if isinstance(ids, str):
            entities = await self._read_entities([ids])
            return entities[0]
        return await self._read_entities(list(ids))

    async def remove(self, *ids: Union[str, Sequence[str]]) -> None:
        """Delete entities by id. Accepts ids as arguments or as a list."""
        keys = [self.make_key(entity_id) for entity_id in _flatten_ids(ids)]
        if keys:
            await self.client.unlink(*keys)

    async def expire(self, entity_id: str, ttl_in_seconds: int) -> None:
        """Set a time to live on an entity's key."""
        await self.client.expire(self.make_key(entity_id), ttl_in_seconds)

    def search(self) -> Search:
        """Start a fluent search over this repository's entities."""
        return Search(self.schema, self.client)

    def search_raw(self, query: str = "*") -> RawSearch:
        """Start a search using a RediSearch query string."""
        return RawSearch(self.schema, self.client, query)

    def make_key(self, entity_id: str) -> str:
        return f"{self.schema.prefix}:{entity_id}"

    async def _read_entities(self, ids: list[str]) -> list[Entity]:
        return list(await asyncio.gather(*(self._read_entity(entity_id) for entity_id in ids)))

    @abstractmethod
    async def _write_entity(self, entity: Entity) -> None: ...

    @abstractmethod
    async def _read_entity(self, entity_id: str) -> Entity: ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}(schema={self.schema!r})"


def _flatten_ids(ids: Sequence[Union[str, Sequence[str]]]) -> list[str]:
    flat: list[str] = []
    for item in ids:
        if isinstance(item, str):
            flat.append(item)
        else:
            flat.extend(item)
    return flat


class HashRepository(Repository):
    """Entities stored as Redis hashes."""

    async def _write_entity(self, entity: Entity) -> None:
        data = entity.to_redis_hash()
        if not data:
            await self.client.unlink(entity.key_name)
            return
        await self.client.hsetall(entity.key_name, data)

    async def _read_entity(self, entity_id: str) -> Entity:
        hash_data = await self.client.hgetall(self.make_key(entity_id))
        entity = Entity(self.schema, entity_id)
        entity.from_redis_hash(hash_data)
        return entity


class JsonRepository(Repository):
    """Entities stored as RedisJSON documents."""

    async def _write_entity(self, entity: Entity) -> None:
        await self.client.jsonset(entity.key_name, entity.to_redis_json())

    async def _read_entity(self, entity_id: str) -> Entity:
        json_data = await self.client.jsonget(self.make_key(entity_id))
        entity = Entity(self.schema, entity_id)
        entity.from_redis_json(json_data)
        return entity
