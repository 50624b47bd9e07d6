"""Query expression tree for RediSearch.

Searches are built with a fluent chain on ``Search`` (see ``search.py``). Each
``where``/``and_``/``or_`` call adds a field predicate to the tree, and the
tree renders to a fully parenthesized RediSearch query string.

Example:
    >>> search = repository.search()
    >>> (
    ...     search.where("state").eq("OH")
    ...     .and_("temperature").gt(75)
    ...     .or_("tags").contains_one_of("creek", "forest")
    ... ).query
    '( ( (@state:{OH}) (@temperature:[(75 +inf]) ) | (@tags:{creek|forest}) )'

Predicate syntax by field type:

- number/date: ``@f:[lower upper]`` with ``(`` marking exclusive bounds and
  ``-inf``/``+inf`` for open ones. Dates become epoch seconds.
- boolean: ``@f:{1}``/``@f:{0}`` on hashes, ``@f:{true}``/``@f:{false}`` on JSON.
- string: ``@f:{value}`` with tag punctuation escaped.
- text: ``@f:'words'`` for a fuzzy match, ``@f:"words"`` for an exact phrase.
- string[]: ``@f:{a|b|c}``.
- point: ``@f:[lon lat radius unit]``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Callable, Literal, Optional, Union

from redis_entities._fields import Point, coerce_date, to_epoch
from redis_entities._utils import Number, format_number, is_number, stringify
from redis_entities.errors import ConfigurationError

if TYPE_CHECKING:
    from redis_entities.search import Search

DateLike = Union[datetime, date, str, int, float]
Units = Literal["m", "km", "ft", "mi"]

TAG_SPECIAL = ",.<>{}[]\"':;!@#$%^&*()-+=~|/\\ "
TEXT_SPECIAL = ",.<>{}[]\"':;!@#$%^&()-+=~|"


def _escape(s: str, special: str) -> str:
    result = []
    for c in s:
        if c in special:
            result.append("\\")
        result.append(c)
    return "".join(result)


def escape_tag(s: str) -> str:
    """Escape special characters in TAG values."""
    return _escape(s, TAG_SPECIAL)


def escape_text(s: str) -> str:
    """Escape special characters in TEXT search. Spaces and slashes are kept."""
    return _escape(s, TEXT_SPECIAL)


# =============================================================================
# Tree nodes
# =============================================================================


class Where(ABC):
    """A node of the query tree."""

    @abstractmethod
    def render(self) -> str:
        """Convert this node to a RediSearch query string."""
        ...

    def __and__(self, other: Where) -> WhereAnd:
        return WhereAnd(self, other)

    def __or__(self, other: Where) -> WhereOr:
        return WhereOr(self, other)

    def __str__(self) -> str:
        return self.render()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.render()!r})"


class WhereAnd(Where):
    """Both children must match. RediSearch ANDs by juxtaposition."""

    def __init__(self, left: Where, right: Where):
        self.left = left
        self.right = right

    def render(self) -> str:
        return f"( {self.left.render()} {self.right.render()} )"


class WhereOr(Where):
    """Either child may match."""

    def __init__(self, left: Where, right: Where):
        self.left = left
        self.right = right

    def render(self) -> str:
        return f"( {self.left.render()} | {self.right.render()} )"


class RawWhere(Where):
    """A literal query string, for RediSearch features the builder lacks."""

    def __init__(self, query: str):
        self.query = query

    def render(self) -> str:
        return self.query


def raw(query: str) -> RawWhere:
    """Create a raw RediSearch query node.

    Example:
        >>> raw("@title:bigfoot*") & raw("@temperature:[70 +inf]")
    """
    return RawWhere(query)


# =============================================================================
# Field predicates
# =============================================================================


class WhereField(Where):
    """Base class for a predicate on one schema field.

    Comparison methods record the operand and return the owning ``Search`` so
    the chain can continue.

    Args:
        search: The search this predicate belongs to.
        field: Attribute name of the field in the index (its alias).
    """

    def __init__(self, search: Search, field: str):
        self.search = search
        self.field = field
        self.negated = False

    @property
    def is_(self) -> WhereField:
        """No-op, for readability: ``where("x").is_.not_().true()``."""
        return self

    @property
    def does(self) -> WhereField:
        """No-op, for readability: ``where("x").does.not_().match("y")``."""
        return self

    def not_(self) -> WhereField:
        """Negate this predicate. Calling it twice cancels out."""
        self.negated = not self.negated
        return self

    def _build_query(self, value_portion: str) -> str:
        negation = "-" if self.negated else ""
        return f"({negation}@{self.field}:{value_portion})"

    def _missing_operand(self) -> ConfigurationError:
        return ConfigurationError(
            f"The predicate on field '{self.field}' was never given a value to compare with."
        )


class _WhereRange(WhereField):
    """Shared interval logic for number and date predicates."""

    def __init__(self, search: Search, field: str):
        super().__init__(search, field)
        self.lower: Number = float("-inf")
        self.upper: Number = float("inf")
        self.lower_exclusive = False
        self.upper_exclusive = False

    def _coerce(self, value: Any) -> Number:
        return value

    def eq(self, value: Any) -> Search:
        self.lower = self.upper = self._coerce(value)
        self.lower_exclusive = self.upper_exclusive = False
        return self.search

    def gt(self, value: Any) -> Search:
        self.lower = self._coerce(value)
        self.lower_exclusive = True
        return self.search

    def gte(self, value: Any) -> Search:
        self.lower = self._coerce(value)
        self.lower_exclusive = False
        return self.search

    def lt(self, value: Any) -> Search:
        self.upper = self._coerce(value)
        self.upper_exclusive = True
        return self.search

    def lte(self, value: Any) -> Search:
        self.upper = self._coerce(value)
        self.upper_exclusive = False
        return self.search

    def between(self, lower: Any, upper: Any) -> Search:
        """Inclusive range: ``between(1, 10)`` renders ``[1 10]``."""
        self.lower = self._coerce(lower)
        self.upper = self._coerce(upper)
        self.lower_exclusive = self.upper_exclusive = False
        return self.search

    def equal(self, value: Any) -> Search:
        return self.eq(value)

    def equals(self, value: Any) -> Search:
        return self.eq(value)

    def equal_to(self, value: Any) -> Search:
        return self.eq(value)

    def greater_than(self, value: Any) -> Search:
        return self.gt(value)

    def greater_than_or_equal_to(self, value: Any) -> Search:
        return self.gte(value)

    def less_than(self, value: Any) -> Search:
        return self.lt(value)

    def less_than_or_equal_to(self, value: Any) -> Search:
        return self.lte(value)

    def _lower_string(self) -> str:
        if self.lower == float("-inf"):
            return "-inf"
        if self.lower_exclusive:
            return f"({format_number(self.lower)}"
        return format_number(self.lower)

    def _upper_string(self) -> str:
        if self.upper == float("inf"):
            return "+inf"
        if self.upper_exclusive:
            return f"({format_number(self.upper)}"
        return format_number(self.upper)

    def render(self) -> str:
        return self._build_query(f"[{self._lower_string()} {self._upper_string()}]")


class WhereNumber(_WhereRange):
    """Predicate on a ``number`` field."""

    def _coerce(self, value: Any) -> Number:
        if not is_number(value):
            raise ConfigurationError(
                f"Expected a number to compare with field '{self.field}' but received {value!r}."
            )
        return value


class WhereDate(_WhereRange):
    """Predicate on a ``date`` field. Accepts datetimes, ISO strings or epoch seconds."""

    def _coerce(self, value: DateLike) -> Number:
        return to_epoch(coerce_date(value, self.field))

    def on(self, value: DateLike) -> Search:
        return self.eq(value)

    def after(self, value: DateLike) -> Search:
        return self.gt(value)

    def before(self, value: DateLike) -> Search:
        return self.lt(value)

    def on_or_after(self, value: DateLike) -> Search:
        return self.gte(value)

    def on_or_before(self, value: DateLike) -> Search:
        return self.lte(value)


class WhereBoolean(WhereField):
    """Predicate on a ``boolean`` field."""

    def __init__(self, search: Search, field: str):
        super().__init__(search, field)
        self.value: Optional[bool] = None

    def eq(self, value: bool) -> Search:
        if not isinstance(value, bool):
            raise ConfigurationError(
                f"Expected a boolean to compare with field '{self.field}' but received {value!r}."
            )
        self.value = value
        return self.search

    def equal(self, value: bool) -> Search:
        return self.eq(value)

    def equals(self, value: bool) -> Search:
        return self.eq(value)

    def equal_to(self, value: bool) -> Search:
        return self.eq(value)

    def true(self) -> Search:
        return self.eq(True)

    def false(self) -> Search:
        return self.eq(False)

    @abstractmethod
    def _literal(self, value: bool) -> str: ...

    def render(self) -> str:
        if self.value is None:
            raise self._missing_operand()
        return self._build_query(f"{{{self._literal(self.value)}}}")


class WhereHashBoolean(WhereBoolean):
    """Booleans are stored as ``1``/``0`` in hashes."""

    def _literal(self, value: bool) -> str:
        return "1" if value else "0"


class WhereJsonBoolean(WhereBoolean):
    """Booleans are native ``true``/``false`` in JSON."""

    def _literal(self, value: bool) -> str:
        return "true" if value else "false"


_STRING_MATCH_ERROR = (
    "Cannot perform full-text search operations like .match on field of type 'string'. "
    "If full-text search is needed on this field, change the type to 'text' in the Schema."
)

_TEXT_EQUALS_ERROR = (
    "Cannot call .equals on a field of type 'text', either use .match to perform "
    "full-text search or change the type to 'string' in the Schema."
)


class WhereString(WhereField):
    """Exact-match predicate on a ``string`` (TAG) field."""

    def __init__(self, search: Search, field: str):
        super().__init__(search, field)
        self.value: Optional[str] = None

    def eq(self, value: Union[str, int, float, bool]) -> Search:
        self.value = stringify(value)
        return self.search

    def equal(self, value: Union[str, int, float, bool]) -> Search:
        return self.eq(value)

    def equals(self, value: Union[str, int, float, bool]) -> Search:
        return self.eq(value)

    def equal_to(self, value: Union[str, int, float, bool]) -> Search:
        return self.eq(value)

    def match(self, value: Any) -> Search:
        raise ConfigurationError(_STRING_MATCH_ERROR)

    def matches(self, value: Any) -> Search:
        raise ConfigurationError(_STRING_MATCH_ERROR)

    def match_exact(self, value: Any) -> Search:
        raise ConfigurationError(_STRING_MATCH_ERROR)

    def match_exactly(self, value: Any) -> Search:
        raise ConfigurationError(_STRING_MATCH_ERROR)

    def matches_exactly(self, value: Any) -> Search:
        raise ConfigurationError(_STRING_MATCH_ERROR)

    def exact(self) -> WhereString:
        raise ConfigurationError(_STRING_MATCH_ERROR)

    def exactly(self) -> WhereString:
        raise ConfigurationError(_STRING_MATCH_ERROR)

    def render(self) -> str:
        if self.value is None:
            raise self._missing_operand()
        return self._build_query(f"{{{escape_tag(self.value)}}}")


class WhereText(WhereField):
    """Full-text predicate on a ``text`` field."""

    def __init__(self, search: Search, field: str):
        super().__init__(search, field)
        self.value: Optional[str] = None
        self.exact_value = False

    def match(self, value: Union[str, int, float, bool]) -> Search:
        self.value = stringify(value)
        return self.search

    def matches(self, value: Union[str, int, float, bool]) -> Search:
        return self.match(value)

    def match_exact(self, value: Union[str, int, float, bool]) -> Search:
        return self.exact().match(value)

    def match_exactly(self, value: Union[str, int, float, bool]) -> Search:
        return self.match_exact(value)

    def matches_exactly(self, value: Union[str, int, float, bool]) -> Search:
        return self.match_exact(value)

    def exact(self) -> WhereText:
        """Match the following value as an exact phrase."""
        self.exact_value = True
        return self

    def exactly(self) -> WhereText:
        return self.exact()

    def eq(self, value: Any) -> Search:
        raise ConfigurationError(_TEXT_EQUALS_ERROR)

    def equal(self, value: Any) -> Search:
        raise ConfigurationError(_TEXT_EQUALS_ERROR)

    def equals(self, value: Any) -> Search:
        raise ConfigurationError(_TEXT_EQUALS_ERROR)

    def equal_to(self, value: Any) -> Search:
        raise ConfigurationError(_TEXT_EQUALS_ERROR)

    def render(self) -> str:
        if self.value is None:
            raise self._missing_operand()
        escaped = escape_text(self.value)
        if self.exact_value:
            return self._build_query(f'"{escaped}"')
        return self._build_query(f"'{escaped}'")


class WhereStringArray(WhereField):
    """Membership predicate on a ``string[]`` field."""

    def __init__(self, search: Search, field: str):
        super().__init__(search, field)
        self.value: Optional[list[str]] = None

    def contain(self, value: Union[str, int, float, bool]) -> Search:
        self.value = [stringify(value)]
        return self.search

    def contains(self, value: Union[str, int, float, bool]) -> Search:
        return self.contain(value)

    def contains_one_of(self, *values: Union[str, int, float, bool]) -> Search:
        if not values:
            raise ConfigurationError(
                f"contains_one_of on field '{self.field}' needs at least one value."
            )
        self.value = [stringify(v) for v in values]
        return self.search

    def contain_one_of(self, *values: Union[str, int, float, bool]) -> Search:
        return self.contains_one_of(*values)

    def render(self) -> str:
        if self.value is None:
            raise self._missing_operand()
        tags = "|".join(escape_tag(v) for v in self.value)
        return self._build_query(f"{{{tags}}}")


class Circle:
    """Builder for a geo radius: origin, radius and unit.

    Defaults to a one meter circle around longitude 0, latitude 0.

    Example:
        >>> circle = Circle().origin(-81.7, 41.5).radius(50).miles()
    """

    def __init__(self) -> None:
        self.longitude_of_origin: Number = 0
        self.latitude_of_origin: Number = 0
        self.size: Number = 1
        self.units: Units = "m"

    def longitude(self, value: Number) -> Circle:
        self.longitude_of_origin = value
        return self

    def latitude(self, value: Number) -> Circle:
        self.latitude_of_origin = value
        return self

    def origin(
        self,
        point_or_longitude: Union[Point, Mapping[str, Number], Number],
        latitude: Optional[Number] = None,
    ) -> Circle:
        """Set the center from a ``Point``/mapping or from longitude and latitude."""
        if is_number(point_or_longitude) and latitude is not None:
            self.longitude_of_origin = point_or_longitude
            self.latitude_of_origin = latitude
        elif isinstance(point_or_longitude, Point):
            self.longitude_of_origin = point_or_longitude.longitude
            self.latitude_of_origin = point_or_longitude.latitude
        elif isinstance(point_or_longitude, Mapping):
            self.longitude_of_origin = point_or_longitude["longitude"]
            self.latitude_of_origin = point_or_longitude["latitude"]
        else:
            raise ConfigurationError(
                "origin() takes a Point, a mapping with longitude and latitude, "
                "or a longitude and a latitude."
            )
        return self

    def radius(self, size: Number) -> Circle:
        self.size = size
        return self

    def meters(self) -> Circle:
        self.units = "m"
        return self

    def kilometers(self) -> Circle:
        self.units = "km"
        return self

    def feet(self) -> Circle:
        self.units = "ft"
        return self

    def miles(self) -> Circle:
        self.units = "mi"
        return self

    m = meter = meters
    km = kilometer = kilometers
    ft = foot = feet
    mi = mile = miles


class WherePoint(WhereField):
    """Geo radius predicate on a ``point`` field."""

    def __init__(self, search: Search, field: str):
        super().__init__(search, field)
        self.circle = Circle()

    def in_circle(self, circle_fn: Callable[[Circle], Circle]) -> Search:
        """Match points inside the circle built by ``circle_fn``.

        Example:
            >>> search.where("location").in_circle(
            ...     lambda circle: circle.origin(-81.7, 41.5).radius(50).miles()
            ... )
        """
        self.circle = circle_fn(self.circle)
        return self.search

    def in_radius(self, circle_fn: Callable[[Circle], Circle]) -> Search:
        return self.in_circle(circle_fn)

    def render(self) -> str:
        c = self.circle
        return self._build_query(
            f"[{format_number(c.longitude_of_origin)} {format_number(c.latitude_of_origin)} "
            f"{format_number(c.size)} {c.units}]"
        )
