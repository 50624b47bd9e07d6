"""Collecting entities into a polars DataFrame."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

import polars as pl

if TYPE_CHECKING:
    from redis_entities.entity import Entity
    from redis_entities.schema import Schema

_POINT_DTYPE = pl.Struct({"longitude": pl.Float64, "latitude": pl.Float64})

_DTYPE_MAP: dict[str, pl.DataType] = {
    "string": pl.Utf8,
    "text": pl.Utf8,
    "number": pl.Float64,
    "boolean": pl.Boolean,
    "date": pl.Datetime("us", "UTC"),
    "point": _POINT_DTYPE,
    "string[]": pl.List(pl.Utf8),
}


def frame_schema(schema: Schema) -> dict[str, pl.DataType]:
    """Polars dtypes for ``entity_id`` and each field, keyed by property name."""
    dtypes: dict[str, pl.DataType] = {"entity_id": pl.Utf8}
    for name, field_def in schema.definition.items():
        dtypes[name] = _DTYPE_MAP[field_def.type]
    return dtypes


def _column_value(field_type: str, value: Any) -> Any:
    if value is None:
        return None
    if field_type == "number":
        return float(value)
    if field_type == "point":
        return {"longitude": float(value.longitude), "latitude": float(value.latitude)}
    return value


def entities_to_frame(schema: Schema, entities: Sequence[Entity]) -> pl.DataFrame:
    """Build a DataFrame with one row per entity.

    Missing field values become nulls. Numbers are Float64 since a field
    may hold both ints and floats.
    """
    dtypes = frame_schema(schema)
    columns = [pl.Series("entity_id", [e.entity_id for e in entities], dtype=pl.Utf8)]
    for name, field_def in schema.definition.items():
        values = [_column_value(field_def.type, getattr(e, name)) for e in entities]
        columns.append(pl.Series(name, values, dtype=dtypes[name]))
    return pl.DataFrame(columns)
