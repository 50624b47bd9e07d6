"""Field definitions and the per-type field codec.

A ``FieldDefinition`` declares how one entity property is stored and indexed.
A ``FieldCodec`` holds the current value of that property on one entity and
converts it to and from the Redis Hash and RedisJSON representations.

Supported field types:

============  =====================  ====================  ==================
type          Python value           Hash wire form        JSON wire form
============  =====================  ====================  ==================
``string``    ``str``                raw string            raw string
``text``      ``str``                raw string            raw string
``number``    ``int`` / ``float``    ``"42"``, ``"4.5"``   native number
``boolean``   ``bool``               ``"1"`` / ``"0"``     native bool
``date``      aware ``datetime``     epoch seconds         epoch seconds
``point``     ``Point``              ``"lon,lat"``         ``"lon,lat"``
``string[]``  ``list[str]``          joined by separator   native list
============  =====================  ====================  ==================

``None`` means the field is absent: it is never written, and a field missing
from Redis reads back as ``None``.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Mapping, Sequence
from dataclasses import asdict, dataclass, fields
from datetime import date, datetime, timezone
from typing import Any, Callable, Literal, NamedTuple, Optional, Union

from redis_entities._utils import format_number, is_number, parse_number, stringify
from redis_entities.errors import ConfigurationError, DecodeError, ValidationError

log = logging.getLogger(__name__)

FieldType = Literal["string", "text", "number", "boolean", "point", "date", "string[]"]

FIELD_TYPES: tuple[str, ...] = (
    "boolean",
    "date",
    "number",
    "point",
    "string",
    "string[]",
    "text",
)

DEFAULT_SEPARATOR = "|"

# Web Mercator bounds used by Redis GEO commands
MAX_LATITUDE = 85.05112878
MAX_LONGITUDE = 180.0

_COORD_PAIR = re.compile(r"^-?\d+(\.\d*)?,-?\d+(\.\d*)?$")


@dataclass(frozen=True)
class FieldDefinition:
    """Declaration of a single entity field.

    Only ``type`` is required. Options that do not apply to the field's type
    are ignored.

    Args:
        type: One of ``string``, ``text``, ``number``, ``boolean``, ``point``,
            ``date`` or ``string[]``.
        alias: Name of the field in Redis and in the index. Defaults to the
            property name.
        indexed: Whether RediSearch indexes the field. Falls back to the
            schema's ``indexed_default``.
        sortable: Mark the field SORTABLE. Not available for ``point`` and
            ``string[]``, nor for TAG-backed fields on JSON.
        case_sensitive: ``string``/``string[]`` only. Adds CASESENSITIVE.
        stemming: ``text`` only. ``False`` adds NOSTEM.
        normalized: ``string``/``string[]``/``text``. ``False`` adds UNF.
        weight: ``text`` only. Relevance weight.
        matcher: ``text`` only. Phonetic matcher such as ``dm:en``.
        separator: ``string``/``string[]``. TAG separator, default ``|``.

    Example:
        >>> FieldDefinition("text", sortable=True, weight=2)
        >>> FieldDefinition("string[]", separator=",")
    """

    type: FieldType
    alias: Optional[str] = None
    indexed: Optional[bool] = None
    sortable: Optional[bool] = None
    case_sensitive: Optional[bool] = None
    stemming: Optional[bool] = None
    normalized: Optional[bool] = None
    weight: Optional[float] = None
    matcher: Optional[str] = None
    separator: Optional[str] = None

    @classmethod
    def coerce(cls, name: str, value: FieldDefinition | Mapping[str, Any]) -> FieldDefinition:
        """Build a definition from a ``FieldDefinition`` or a plain dict.

        Raises:
            ConfigurationError: On an unknown option or an unknown type.
        """
        if isinstance(value, FieldDefinition):
            definition = value
        elif isinstance(value, Mapping):
            known = {f.name for f in fields(cls)}
            unknown = sorted(set(value) - known)
            if unknown:
                raise ConfigurationError(
                    f"The field '{name}' is configured with unknown option(s) {unknown}. "
                    f"Valid options are {sorted(known)}."
                )
            if "type" not in value:
                raise ConfigurationError(f"The field '{name}' is missing a type.")
            definition = cls(**value)
        else:
            raise ConfigurationError(
                f"The field '{name}' must be defined with a FieldDefinition or a dict, "
                f"got {type(value).__name__}."
            )

        if definition.type not in FIELD_TYPES:
            valid = ", ".join(f"'{t}'" for t in FIELD_TYPES)
            raise ConfigurationError(
                f"The field '{name}' is configured with a type of '{definition.type}'. "
                f"Valid types include {valid}."
            )
        return definition

    def to_dict(self) -> dict[str, Any]:
        """Declared options only, for hashing and display."""
        return {k: v for k, v in asdict(self).items() if v is not None}

    def alias_for(self, name: str) -> str:
        return self.alias or name

    @property
    def effective_separator(self) -> str:
        return self.separator or DEFAULT_SEPARATOR


@dataclass(frozen=True)
class Point:
    """A geographic coordinate."""

    longitude: float
    latitude: float

    def __str__(self) -> str:
        return f"{format_number(self.longitude)},{format_number(self.latitude)}"


FieldValue = Union[str, int, float, bool, datetime, Point, list, None]


# =============================================================================
# Per-type conversions
# =============================================================================


def _describe(value: Any) -> str:
    return f"{value!r} ({type(value).__name__})"


def _is_stringable(value: Any) -> bool:
    return isinstance(value, (str, int, float, bool))


def _convert_string(field: FieldCodec, value: Any) -> str:
    if not _is_stringable(value):
        raise ValidationError(
            f"Expected value with type of '{field.definition.type}' for field "
            f"'{field.name}' but received {_describe(value)}."
        )
    return stringify(value)


def _convert_number(field: FieldCodec, value: Any) -> int | float:
    if not is_number(value) or not math.isfinite(value):
        raise ValidationError(
            f"Expected value with type of 'number' for field '{field.name}' "
            f"but received {_describe(value)}."
        )
    return value


def _convert_boolean(field: FieldCodec, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValidationError(
            f"Expected value with type of 'boolean' for field '{field.name}' "
            f"but received {_describe(value)}."
        )
    return value


def coerce_date(value: Any, name: str) -> datetime:
    """Convert a datetime, date, ISO 8601 string or epoch seconds to UTC.

    Naive datetimes and ISO strings without an offset are taken as UTC.

    Raises:
        ValidationError: If the value cannot be read as a date.
    """
    if isinstance(value, datetime):
        result = value
    elif isinstance(value, date):
        result = datetime(value.year, value.month, value.day)
    elif is_number(value):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as e:
            raise ValidationError(
                f"Expected value with valid 'date' for field '{name}' "
                f"but received {_describe(value)}."
            ) from e
    elif isinstance(value, str):
        text = value[:-1] + "+00:00" if value.endswith("Z") else value
        try:
            result = datetime.fromisoformat(text)
        except ValueError as e:
            raise ValidationError(
                f"Expected an ISO 8601 date for field '{name}' "
                f"but received {_describe(value)}."
            ) from e
    else:
        raise ValidationError(
            f"Expected value with type of 'date' for field '{name}' "
            f"but received {_describe(value)}."
        )
    if result.tzinfo is None:
        return result.replace(tzinfo=timezone.utc)
    return result.astimezone(timezone.utc)


def to_epoch(value: datetime) -> int | float:
    """Epoch seconds, as an int when there is no fractional part."""
    seconds = value.timestamp()
    return int(seconds) if seconds.is_integer() else seconds


def _convert_date(field: FieldCodec, value: Any) -> datetime:
    return coerce_date(value, field.name)


def _convert_point(field: FieldCodec, value: Any) -> Point:
    if isinstance(value, Point):
        point = value
    elif (
        isinstance(value, Mapping)
        and is_number(value.get("longitude"))
        and is_number(value.get("latitude"))
    ):
        point = Point(longitude=value["longitude"], latitude=value["latitude"])
    else:
        raise ValidationError(
            f"Expected value with type of 'point' for field '{field.name}' "
            f"but received {_describe(value)}."
        )
    if abs(point.latitude) > MAX_LATITUDE or abs(point.longitude) > MAX_LONGITUDE:
        raise ValidationError(
            f"Expected value with valid 'point' for field '{field.name}' "
            f"but received '{point.longitude},{point.latitude}'."
        )
    return point


def _convert_string_array(field: FieldCodec, value: Any) -> list[str]:
    if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
        raise ValidationError(
            f"Expected value with type of 'string[]' for field '{field.name}' "
            f"but received {_describe(value)}."
        )
    items = []
    for item in value:
        if not _is_stringable(item):
            raise ValidationError(
                f"Expected only strings in 'string[]' field '{field.name}' "
                f"but received {_describe(item)}."
            )
        items.append(stringify(item))
    return items


def _hash_as_text(field: FieldCodec) -> str:
    return stringify(field.value)


def _hash_boolean(field: FieldCodec) -> str:
    return "1" if field.value else "0"


def _epoch(field: FieldCodec) -> int | float:
    return to_epoch(field.value)


def _hash_date(field: FieldCodec) -> str:
    return format_number(_epoch(field))


def _hash_point(field: FieldCodec) -> str:
    return str(field.value)


def _hash_string_array(field: FieldCodec) -> str:
    return field.separator.join(field.value)


def _parse_string(field: FieldCodec, raw: str) -> str:
    return raw


def _parse_number(field: FieldCodec, raw: str) -> int | float:
    try:
        return parse_number(raw)
    except ValueError as e:
        raise DecodeError(
            f"Non-numeric value of '{raw}' read from Redis for number field '{field.name}'."
        ) from e


def _parse_boolean(field: FieldCodec, raw: str) -> bool:
    if raw == "1":
        return True
    if raw == "0":
        return False
    raise DecodeError(
        f"Non-boolean value of '{raw}' read from Redis for boolean field '{field.name}'."
    )


def _from_epoch(field: FieldCodec, seconds: int | float) -> datetime:
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as e:
        raise DecodeError(
            f"Out of range value of '{seconds}' read from Redis for date field '{field.name}'."
        ) from e


def _parse_date(field: FieldCodec, raw: str) -> datetime:
    try:
        seconds = parse_number(raw)
    except ValueError as e:
        raise DecodeError(
            f"Non-numeric value of '{raw}' read from Redis for date field '{field.name}'."
        ) from e
    return _from_epoch(field, seconds)


def _parse_point(field: FieldCodec, raw: Any) -> Point:
    if not isinstance(raw, str) or not _COORD_PAIR.match(raw):
        raise DecodeError(
            f"Non-point value of '{raw}' read from Redis for point field '{field.name}'."
        )
    longitude, latitude = (parse_number(part) for part in raw.split(","))
    return Point(longitude=longitude, latitude=latitude)


def _parse_string_array(field: FieldCodec, raw: str) -> list[str]:
    if raw == "":
        return []
    return raw.split(field.separator)


def _json_native(field: FieldCodec) -> Any:
    return field.value


def _json_date(field: FieldCodec) -> int | float:
    return _epoch(field)


def _json_point(field: FieldCodec) -> str:
    return str(field.value)


def _json_string_array(field: FieldCodec) -> list[str]:
    return list(field.value)


def _load_string(field: FieldCodec, raw: Any) -> str:
    if not _is_stringable(raw):
        raise DecodeError(
            f"Non-string value of {_describe(raw)} read from Redis for "
            f"{field.definition.type} field '{field.name}'."
        )
    return stringify(raw)


def _load_number(field: FieldCodec, raw: Any) -> int | float:
    if not is_number(raw):
        raise DecodeError(
            f"Non-numeric value of {_describe(raw)} read from Redis for number field "
            f"'{field.name}'."
        )
    return raw


def _load_boolean(field: FieldCodec, raw: Any) -> bool:
    if not isinstance(raw, bool):
        raise DecodeError(
            f"Non-boolean value of {_describe(raw)} read from Redis for boolean field "
            f"'{field.name}'."
        )
    return raw


def _load_date(field: FieldCodec, raw: Any) -> datetime:
    if not is_number(raw):
        raise DecodeError(
            f"Non-numeric value of {_describe(raw)} read from Redis for date field "
            f"'{field.name}'."
        )
    return _from_epoch(field, raw)


def _load_string_array(field: FieldCodec, raw: Any) -> list[str]:
    if not isinstance(raw, list) or not all(isinstance(item, str) for item in raw):
        raise DecodeError(
            f"Non-array value of {_describe(raw)} read from Redis for string[] field "
            f"'{field.name}'."
        )
    return list(raw)


class _TypeCodec(NamedTuple):
    convert: Callable[[FieldCodec, Any], Any]
    to_hash: Callable[[FieldCodec], str]
    from_hash: Callable[[FieldCodec, str], Any]
    to_json: Callable[[FieldCodec], Any]
    from_json: Callable[[FieldCodec, Any], Any]


_STRING_CODEC = _TypeCodec(_convert_string, _hash_as_text, _parse_string, _json_native, _load_string)

_CODECS: dict[str, _TypeCodec] = {
    "string": _STRING_CODEC,
    "text": _STRING_CODEC,
    "number": _TypeCodec(
        _convert_number, _hash_as_text, _parse_number, _json_native, _load_number
    ),
    "boolean": _TypeCodec(
        _convert_boolean, _hash_boolean, _parse_boolean, _json_native, _load_boolean
    ),
    "date": _TypeCodec(_convert_date, _hash_date, _parse_date, _json_date, _load_date),
    "point": _TypeCodec(_convert_point, _hash_point, _parse_point, _json_point, _parse_point),
    "string[]": _TypeCodec(
        _convert_string_array,
        _hash_string_array,
        _parse_string_array,
        _json_string_array,
        _load_string_array,
    ),
}


# =============================================================================
# Field codec
# =============================================================================


class FieldCodec:
    """The value of one field on one entity.

    Every assignment to ``value`` is validated and converted immediately, so a
    bad value fails at the point it is set rather than when the entity is
    saved.

    Args:
        name: Property name of the field.
        definition: The field's declaration.
        value: Initial value, validated like any other assignment.
    """

    def __init__(self, name: str, definition: FieldDefinition, value: Any = None):
        self._name = name
        self.definition = definition
        self._codec = _CODECS[definition.type]
        self._value: Any = None
        self.value = value

    @property
    def name(self) -> str:
        """Name of the field in Redis (the alias, if one is declared)."""
        return self.definition.alias_for(self._name)

    @property
    def property_name(self) -> str:
        return self._name

    @property
    def separator(self) -> str:
        return self.definition.effective_separator

    @property
    def value(self) -> Any:
        return self._value

    @value.setter
    def value(self, value: Any) -> None:
        if value is None:
            self._value = None
            return
        converted = self._codec.convert(self, value)
        if self.definition.type == "string[]":
            self._warn_on_separator(converted)
        self._value = converted

    def _warn_on_separator(self, items: list[str]) -> None:
        separator = self.separator
        if any(separator in item for item in items):
            log.warning(
                "Field '%s' holds a value containing its separator %r; it will not "
                "read back from a Redis Hash as the same list.",
                self.name,
                separator,
            )

    def to_redis_hash(self) -> dict[str, str]:
        if self._value is None:
            return {}
        return {self.name: self._codec.to_hash(self)}

    def from_redis_hash(self, raw: str | None) -> None:
        self._value = None if raw is None else self._codec.from_hash(self, raw)

    def to_redis_json(self) -> dict[str, Any]:
        if self._value is None:
            return {}
        return {self.name: self._codec.to_json(self)}

    def from_redis_json(self, raw: Any) -> None:
        self._value = None if raw is None else self._codec.from_json(self, raw)

    def __repr__(self) -> str:
        return f"FieldCodec({self.name!r}, {self.definition.type!r}, {self._value!r})"
