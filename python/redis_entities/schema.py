"""Entity schemas.

A ``Schema`` declares the fields of an entity and how the entity is stored and
indexed in Redis.

Example:
    >>> from redis_entities import Schema
    >>>
    >>> schema = Schema(
    ...     "Bigfoot",
    ...     {
    ...         "title": {"type": "text", "sortable": True},
    ...         "state": {"type": "string"},
    ...         "temperature": {"type": "number", "sortable": True},
    ...         "tags": {"type": "string[]"},
    ...     },
    ...     data_structure="HASH",
    ... )
    >>> schema.index_name
    'Bigfoot:index'
"""

from __future__ import annotations

import base64
import hashlib
import json
from collections.abc import Mapping
from typing import Any, Callable, Literal, Optional

from ulid import ULID

from redis_entities._fields import FieldDefinition
from redis_entities.errors import ConfigurationError

DataStructure = Literal["HASH", "JSON"]
StopWordOptions = Literal["OFF", "DEFAULT", "CUSTOM"]

DATA_STRUCTURES = ("HASH", "JSON")
STOP_WORD_OPTIONS = ("OFF", "DEFAULT", "CUSTOM")

# Names an entity uses for itself; fields cannot shadow them.
RESERVED_NAMES = frozenset(
    {
        "entity_id",
        "key_name",
        "schema",
        "to_dict",
        "to_redis_hash",
        "from_redis_hash",
        "to_redis_json",
        "from_redis_json",
    }
)


def ulid_strategy() -> str:
    """Default id strategy: a ULID (timestamp prefix plus randomness)."""
    return str(ULID())


class Schema:
    """Declaration of an entity's fields and storage options.

    Args:
        prefix: Key prefix for entities. Keys are ``<prefix>:<entity_id>``.
        definition: Mapping of property name to ``FieldDefinition`` or dict.
        data_structure: ``"HASH"`` or ``"JSON"`` (default).
        index_name: RediSearch index name. Default ``<prefix>:index``.
        index_hash_name: Key holding the deployed schema's hash. Default
            ``<prefix>:index:hash``.
        use_stop_words: ``"OFF"``, ``"DEFAULT"`` or ``"CUSTOM"``.
        stop_words: Stop words for ``"CUSTOM"``.
        indexed_default: Whether fields are indexed unless they say otherwise.
        id_strategy: Zero-argument callable returning a new entity id.

    Raises:
        ConfigurationError: If any option or field definition is invalid.
    """

    def __init__(
        self,
        prefix: str,
        definition: Mapping[str, FieldDefinition | Mapping[str, Any]],
        *,
        data_structure: DataStructure = "JSON",
        index_name: Optional[str] = None,
        index_hash_name: Optional[str] = None,
        use_stop_words: StopWordOptions = "DEFAULT",
        stop_words: tuple[str, ...] | list[str] = (),
        indexed_default: bool = True,
        id_strategy: Optional[Callable[[], str]] = None,
    ):
        if not isinstance(prefix, str) or prefix == "":
            raise ConfigurationError("Prefix must be a non-empty string.")
        if data_structure not in DATA_STRUCTURES:
            raise ConfigurationError(
                f"'{data_structure}' is an invalid data structure. "
                "Valid data structures are 'HASH' and 'JSON'."
            )
        if use_stop_words not in STOP_WORD_OPTIONS:
            raise ConfigurationError(
                f"'{use_stop_words}' is an invalid value for stop words. "
                "Valid values are 'OFF', 'DEFAULT', and 'CUSTOM'."
            )
        if id_strategy is not None and not callable(id_strategy):
            raise ConfigurationError(
                "ID strategy must be a function that takes no arguments and returns a string."
            )

        self.prefix = prefix
        self.index_name = f"{prefix}:index" if index_name is None else index_name
        self.index_hash_name = (
            f"{prefix}:index:hash" if index_hash_name is None else index_hash_name
        )
        if self.index_name == "":
            raise ConfigurationError("Index name must be a non-empty string.")
        if self.index_hash_name == "":
            raise ConfigurationError("Index hash name must be a non-empty string.")

        self.data_structure: DataStructure = data_structure
        self.use_stop_words: StopWordOptions = use_stop_words
        self.stop_words: tuple[str, ...] = tuple(stop_words)
        self.indexed_default = indexed_default
        self._id_strategy = id_strategy or ulid_strategy

        self.definition: dict[str, FieldDefinition] = {}
        for name, field_def in definition.items():
            if name in RESERVED_NAMES or name.startswith("_"):
                raise ConfigurationError(
                    f"The field name '{name}' is reserved. Use another name and set "
                    f"alias='{name}' if Redis must see that name."
                )
            self.definition[name] = FieldDefinition.coerce(name, field_def)

        # property name -> name in Redis
        self.accessors: dict[str, str] = {
            name: field_def.alias_for(name) for name, field_def in self.definition.items()
        }
        aliases = list(self.accessors.values())
        duplicates = sorted({a for a in aliases if aliases.count(a) > 1})
        if duplicates:
            raise ConfigurationError(f"Fields share the same alias: {duplicates}.")

    @property
    def stop_words_for_index(self) -> list[str] | None:
        """Stop words to send with FT.CREATE, or None for the server default."""
        if self.use_stop_words == "OFF":
            return []
        if self.use_stop_words == "CUSTOM":
            return list(self.stop_words)
        return None

    @property
    def redis_schema(self) -> list[str]:
        """The SCHEMA portion of FT.CREATE for this schema."""
        from redis_entities._index import compile_schema

        return compile_schema(self)

    @property
    def index_hash(self) -> str:
        """Digest of the schema's declarative shape.

        Changes whenever a field definition, the prefix, the index names, the
        data structure or the stop words change.
        """
        data = json.dumps(
            {
                "definition": {
                    name: field_def.to_dict() for name, field_def in self.definition.items()
                },
                "prefix": self.prefix,
                "indexName": self.index_name,
                "indexHashName": self.index_hash_name,
                "dataStructure": self.data_structure,
                "useStopWords": self.use_stop_words,
                "stopWords": list(self.stop_words),
                "indexedDefault": self.indexed_default,
            },
            separators=(",", ":"),
        )
        digest = hashlib.sha1(data.encode("utf-8")).digest()
        return base64.b64encode(digest).decode("ascii")

    def generate_id(self) -> str:
        return self._id_strategy()

    def field_for(self, name: str) -> FieldDefinition:
        """Look up a field definition by property name.

        Raises:
            ConfigurationError: If the field is not part of the schema.
        """
        try:
            return self.definition[name]
        except KeyError:
            raise ConfigurationError(f"The field '{name}' is not part of the schema.") from None

    def __repr__(self) -> str:
        return (
            f"Schema(prefix={self.prefix!r}, data_structure={self.data_structure!r}, "
            f"fields={list(self.definition)})"
        )
