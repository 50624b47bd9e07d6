"""Configuration defaults and option classes for redis-entities.

Defaults are read from the environment each time they are requested so that
tests and long-running processes can change them without re-importing:

- ``REDIS_URL``: connection URL used by ``Client.open()`` (default
  ``redis://localhost:6379``).
- ``REDIS_ENTITIES_PAGE_SIZE``: page size used by ``Search.all()`` and
  friends (default 10).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

DEFAULT_URL = "redis://localhost:6379"
DEFAULT_PAGE_SIZE = 10

SortOrder = Literal["ASC", "DESC"]


def get_default_url() -> str:
    """Get the default Redis connection URL."""
    return os.environ.get("REDIS_URL", DEFAULT_URL)


def get_default_page_size() -> int:
    """Get the default page size for unbounded searches.

    Raises:
        ValueError: If ``REDIS_ENTITIES_PAGE_SIZE`` is not a positive integer.
    """
    raw = os.environ.get("REDIS_ENTITIES_PAGE_SIZE")
    if raw is None:
        return DEFAULT_PAGE_SIZE
    page_size = int(raw)
    if page_size < 1:
        raise ValueError(f"REDIS_ENTITIES_PAGE_SIZE must be positive, got {raw!r}")
    return page_size


@dataclass(frozen=True)
class SearchLimit:
    """Offset and count for a single page of search results."""

    offset: int = 0
    count: int = 0


@dataclass(frozen=True)
class SortSpec:
    """Field (by index attribute name) and direction to sort results by."""

    field: str
    order: SortOrder = "ASC"


@dataclass(frozen=True)
class SearchOptions:
    """Everything the client needs to issue one FT.SEARCH call.

    Attributes:
        index_name: RediSearch index to query.
        query: Rendered query string.
        limit: Page to fetch. ``None`` leaves paging to RediSearch.
        sort: Optional sort field and direction.
        keys_only: If True, suppress field payloads (``RETURN 0``).
    """

    index_name: str
    query: str = "*"
    limit: SearchLimit | None = None
    sort: SortSpec | None = None
    keys_only: bool = False

    def to_args(self) -> list[str]:
        """Convert to FT.SEARCH arguments."""
        args = ["FT.SEARCH", self.index_name, self.query]
        if self.limit is not None:
            args.extend(["LIMIT", str(self.limit.offset), str(self.limit.count)])
        if self.sort is not None:
            args.extend(["SORTBY", self.sort.field, self.sort.order])
        if self.keys_only:
            args.extend(["RETURN", "0"])
        return args
