"""RediSearch index definitions for entity schemas.

This module turns a ``Schema`` into the arguments of FT.CREATE, and creates or
drops the index through a ``Client``.

Example:
    >>> from redis_entities import Schema
    >>> from redis_entities._index import Index
    >>>
    >>> schema = Schema(
    ...     "Bigfoot",
    ...     {"title": {"type": "text"}, "temperature": {"type": "number", "sortable": True}},
    ...     data_structure="HASH",
    ... )
    >>> print(Index.from_schema(schema))
    FT.CREATE Bigfoot:index ON HASH PREFIX 1 Bigfoot: SCHEMA title TEXT temperature NUMERIC SORTABLE
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from redis.exceptions import ResponseError

from redis_entities._fields import DEFAULT_SEPARATOR, FieldDefinition
from redis_entities._utils import format_number

if TYPE_CHECKING:
    from redis_entities.client import Client
    from redis_entities.schema import DataStructure, Schema

log = logging.getLogger(__name__)


# =============================================================================
# Field Types
# =============================================================================


class Field(ABC):
    """Base class for RediSearch field types.

    ``path`` is set for JSON indexes, where the field is declared as
    ``<path> AS <name>``.
    """

    _name: str
    path: Optional[str]
    sortable: bool
    noindex: bool

    @abstractmethod
    def _type_args(self) -> list[str]:
        """Field type and its options."""
        ...

    @property
    def name(self) -> str:
        """Field name (the attribute name in the index)."""
        return self._name

    @property
    @abstractmethod
    def field_type(self) -> str:
        """RediSearch field type name."""
        ...

    def to_args(self) -> list[str]:
        """Convert field to FT.CREATE arguments."""
        if self.path is None:
            args = [self._name]
        else:
            args = [self.path, "AS", self._name]
        args.extend(self._type_args())
        if self.noindex:
            args.append("NOINDEX")
        return args


@dataclass
class TextField(Field):
    """A TEXT field for full-text search.

    Args:
        name: Attribute name in the index.
        path: JSONPath to the value, for JSON indexes.
        nostem: Disable stemming for this field.
        phonetic: Phonetic algorithm for fuzzy matching (dm:en, dm:fr, dm:pt, dm:es).
        sortable: Enable sorting on this field.
        unf: Keep the original value for sorting (un-normalized form).
        weight: Relevance weight for scoring.
        noindex: Store field but don't index it.
    """

    _name: str
    path: Optional[str] = None
    nostem: bool = False
    phonetic: Optional[str] = None
    sortable: bool = False
    unf: bool = False
    weight: Optional[float] = None
    noindex: bool = False

    @property
    def field_type(self) -> str:
        return "TEXT"

    def _type_args(self) -> list[str]:
        args = ["TEXT"]
        if self.nostem:
            args.append("NOSTEM")
        if self.phonetic:
            args.extend(["PHONETIC", self.phonetic])
        if self.sortable:
            args.append("SORTABLE")
        if self.unf:
            args.append("UNF")
        if self.weight:
            args.extend(["WEIGHT", format_number(self.weight)])
        return args


@dataclass
class NumericField(Field):
    """A NUMERIC field for numeric and date range queries.

    Args:
        name: Attribute name in the index.
        path: JSONPath to the value, for JSON indexes.
        sortable: Enable sorting on this field.
        noindex: Store field but don't index it.
    """

    _name: str
    path: Optional[str] = None
    sortable: bool = False
    noindex: bool = False

    @property
    def field_type(self) -> str:
        return "NUMERIC"

    def _type_args(self) -> list[str]:
        args = ["NUMERIC"]
        if self.sortable:
            args.append("SORTABLE")
        return args


@dataclass
class TagField(Field):
    """A TAG field for exact-match filtering.

    Used for ``string``, ``string[]`` and ``boolean`` entity fields. Booleans
    carry no separator.

    Args:
        name: Attribute name in the index.
        path: JSONPath to the value, for JSON indexes.
        separator: Character separating multiple values, or None to omit.
        casesensitive: Enable case-sensitive matching.
        sortable: Enable sorting on this field.
        unf: Keep the original value for sorting (un-normalized form).
        noindex: Store field but don't index it.
    """

    _name: str
    path: Optional[str] = None
    separator: Optional[str] = DEFAULT_SEPARATOR
    casesensitive: bool = False
    sortable: bool = False
    unf: bool = False
    noindex: bool = False

    @property
    def field_type(self) -> str:
        return "TAG"

    def _type_args(self) -> list[str]:
        args = ["TAG"]
        if self.casesensitive:
            args.append("CASESENSITIVE")
        if self.separator is not None:
            args.extend(["SEPARATOR", self.separator])
        if self.sortable:
            args.append("SORTABLE")
        if self.unf:
            args.append("UNF")
        return args


@dataclass
class GeoField(Field):
    """A GEO field for radius queries. Values are ``"longitude,latitude"``.

    Args:
        name: Attribute name in the index.
        path: JSONPath to the value, for JSON indexes.
        noindex: Store field but don't index it.
    """

    _name: str
    path: Optional[str] = None
    sortable: bool = field(default=False, init=False)
    noindex: bool = False

    @property
    def field_type(self) -> str:
        return "GEO"

    def _type_args(self) -> list[str]:
        return ["GEO"]


# =============================================================================
# Schema compilation
# =============================================================================


def _warn_unsortable(name: str, field_def: FieldDefinition, reason: str) -> None:
    log.warning(
        "You have marked the %s field '%s' as sortable but %s. Ignored.",
        field_def.type,
        name,
        reason,
    )


def build_field(
    name: str,
    field_def: FieldDefinition,
    data_structure: DataStructure,
    indexed_default: bool = True,
) -> Field:
    """Build the index field for one entity field.

    Args:
        name: Property name of the entity field.
        field_def: Its definition.
        data_structure: ``"HASH"`` or ``"JSON"``.
        indexed_default: Schema-wide default for ``indexed``.
    """
    alias = field_def.alias_for(name)
    is_json = data_structure == "JSON"
    path = None
    if is_json:
        path = f"$.{alias}[*]" if field_def.type == "string[]" else f"$.{alias}"

    indexed = field_def.indexed if field_def.indexed is not None else indexed_default
    noindex = not indexed
    sortable = bool(field_def.sortable)
    unf = field_def.normalized is False

    if field_def.type in ("number", "date"):
        return NumericField(alias, path=path, sortable=sortable, noindex=noindex)

    if field_def.type == "boolean":
        if sortable and is_json:
            _warn_unsortable(
                name, field_def, "RediSearch doesn't support the SORTABLE argument on a TAG for JSON"
            )
            sortable = False
        return TagField(alias, path=path, separator=None, sortable=sortable, noindex=noindex)

    if field_def.type == "point":
        if sortable:
            _warn_unsortable(name, field_def, "RediSearch cannot sort GEO fields")
        return GeoField(alias, path=path, noindex=noindex)

    if field_def.type in ("string", "string[]"):
        if sortable and is_json:
            _warn_unsortable(
                name, field_def, "RediSearch doesn't support the SORTABLE argument on a TAG for JSON"
            )
            sortable = False
        elif sortable and field_def.type == "string[]":
            _warn_unsortable(name, field_def, "multi-value fields cannot be sorted")
            sortable = False
        return TagField(
            alias,
            path=path,
            separator=field_def.effective_separator,
            casesensitive=bool(field_def.case_sensitive),
            sortable=sortable,
            unf=unf,
            noindex=noindex,
        )

    # text
    return TextField(
        alias,
        path=path,
        nostem=field_def.stemming is False,
        phonetic=field_def.matcher,
        sortable=sortable,
        unf=unf,
        weight=field_def.weight,
        noindex=noindex,
    )


def compile_schema(schema: Schema) -> list[str]:
    """Flatten a schema's fields into the SCHEMA arguments of FT.CREATE."""
    args: list[str] = []
    for name, field_def in schema.definition.items():
        args.extend(
            build_field(name, field_def, schema.data_structure, schema.indexed_default).to_args()
        )
    return args


# =============================================================================
# Index Class
# =============================================================================


@dataclass
class Index:
    """A RediSearch index definition.

    Args:
        name: Index name (e.g., "Bigfoot:index").
        prefix: Key prefix to index, including the trailing colon.
        schema: List of field definitions.
        on: Data type to index - "HASH" or "JSON".
        stopwords: Stop words list. Empty list disables stop words; None keeps
            the server default.
    """

    name: str
    prefix: str
    schema: list[Field] = field(default_factory=list)
    on: DataStructure = "JSON"
    stopwords: Optional[list[str]] = None

    @classmethod
    def from_schema(cls, schema: Schema) -> Index:
        """Build the index definition for an entity schema."""
        fields = [
            build_field(name, field_def, schema.data_structure, schema.indexed_default)
            for name, field_def in schema.definition.items()
        ]
        return cls(
            name=schema.index_name,
            prefix=f"{schema.prefix}:",
            schema=fields,
            on=schema.data_structure,
            stopwords=schema.stop_words_for_index,
        )

    def _build_create_args(self) -> list[str]:
        """Build the FT.CREATE command arguments."""
        args = [self.name, "ON", self.on, "PREFIX", "1", self.prefix]

        if self.stopwords is not None:
            args.append("STOPWORDS")
            args.append(str(len(self.stopwords)))
            args.extend(self.stopwords)

        args.append("SCHEMA")
        for f in self.schema:
            args.extend(f.to_args())

        return args

    async def create(self, client: Client) -> None:
        """Create the index in Redis.

        Raises:
            redis.ResponseError: If the index already exists.
        """
        log.debug("Creating index %s", self.name)
        await client.execute(["FT.CREATE", *self._build_create_args()])

    async def drop(self, client: Client) -> None:
        """Drop the index, keeping the indexed documents.

        Dropping an index that does not exist is not an error.
        """
        try:
            await client.execute(["FT.DROPINDEX", self.name])
        except ResponseError as e:
            if "unknown index name" not in str(e).lower():
                raise
            log.debug("Index %s did not exist, nothing to drop", self.name)

    def __str__(self) -> str:
        """String representation showing the FT.CREATE command."""
        args = self._build_create_args()
        return f"FT.CREATE {' '.join(args)}"

    def __repr__(self) -> str:
        """Debug representation."""
        return f"Index(name={self.name!r}, prefix={self.prefix!r}, fields={len(self.schema)})"
