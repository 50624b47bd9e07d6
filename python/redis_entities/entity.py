"""Entities: schema-bound records stored under a single Redis key."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from redis_entities._fields import FieldCodec

if TYPE_CHECKING:
    from redis_entities.schema import Schema

log = logging.getLogger(__name__)


class Entity:
    """A record whose fields are declared by a ``Schema``.

    Each schema field is available as an attribute. Assigning to it validates
    the value right away; assigning ``None`` clears the field.

    Args:
        schema: The entity's schema.
        entity_id: Unique id. The Redis key is ``<prefix>:<entity_id>``.
        data: Initial values keyed by property name.

    Example:
        >>> sighting = Entity(schema, "01FJYWEYRHYFT8YTEGQBABJ43J", {"title": "Bigfoot by the road"})
        >>> sighting.temperature = 87
        >>> sighting.key_name
        'Bigfoot:01FJYWEYRHYFT8YTEGQBABJ43J'
    """

    __slots__ = ("_entity_id", "_schema", "_fields")

    def __init__(self, schema: Schema, entity_id: str, data: Mapping[str, Any] | None = None):
        data = data or {}
        unknown = sorted(set(data) - set(schema.accessors))
        if unknown:
            raise AttributeError(f"Unknown field(s) for schema '{schema.prefix}': {unknown}")

        object.__setattr__(self, "_entity_id", entity_id)
        object.__setattr__(self, "_schema", schema)
        # keyed by the name Redis sees, so wire data maps straight onto codecs
        object.__setattr__(
            self,
            "_fields",
            {
                alias: FieldCodec(name, schema.definition[name], data.get(name))
                for name, alias in schema.accessors.items()
            },
        )

    @property
    def entity_id(self) -> str:
        return self._entity_id

    @property
    def schema(self) -> Schema:
        return self._schema

    @property
    def key_name(self) -> str:
        return f"{self._schema.prefix}:{self._entity_id}"

    def __getattr__(self, name: str) -> Any:
        # slots not yet filled in, e.g. while copy or pickle rebuild the entity
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            alias = self._schema.accessors[name]
        except KeyError:
            raise AttributeError(
                f"'{type(self).__name__}' for schema '{self._schema.prefix}' "
                f"has no field '{name}'"
            ) from None
        return self._fields[alias].value

    def __setattr__(self, name: str, value: Any) -> None:
        if name in Entity.__slots__:
            object.__setattr__(self, name, value)
            return
        alias = self._schema.accessors.get(name)
        if alias is None:
            if name == "entity_id":
                raise AttributeError("entity_id cannot be changed")
            raise AttributeError(
                f"'{type(self).__name__}' for schema '{self._schema.prefix}' "
                f"has no field '{name}'"
            )
        self._fields[alias].value = value

    def to_dict(self) -> dict[str, Any]:
        """The entity id and every field value, keyed by property name."""
        data: dict[str, Any] = {"entity_id": self._entity_id}
        for name, alias in self._schema.accessors.items():
            data[name] = self._fields[alias].value
        return data

    def to_redis_hash(self) -> dict[str, str]:
        data: dict[str, str] = {}
        for field in self._fields.values():
            data.update(field.to_redis_hash())
        return data

    def from_redis_hash(self, data: Mapping[str, str]) -> None:
        for alias, field in self._fields.items():
            field.from_redis_hash(data.get(alias))
        self._log_unknown(data)

    def to_redis_json(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for field in self._fields.values():
            data.update(field.to_redis_json())
        return data

    def from_redis_json(self, data: Mapping[str, Any] | None) -> None:
        data = data or {}
        for alias, field in self._fields.items():
            field.from_redis_json(data.get(alias))
        self._log_unknown(data)

    def _log_unknown(self, data: Mapping[str, Any]) -> None:
        unknown = [key for key in data if key not in self._fields]
        if unknown:
            log.debug("Ignoring fields %s on %s not declared in the schema", unknown, self.key_name)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Entity):
            return NotImplemented
        return self._schema is other._schema and self.to_dict() == other.to_dict()

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        values = ", ".join(f"{k}={v!r}" for k, v in self.to_dict().items())
        return f"Entity({values})"
