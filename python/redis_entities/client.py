"""Async storage boundary over redis-py.

Everything the repositories and searches send to Redis goes through
``Client``. It wraps a ``redis.asyncio.Redis`` connection opened with
``decode_responses=True``, so replies are ``str`` rather than ``bytes``.

Example:
    >>> from redis_entities import Client
    >>>
    >>> async with Client() as client:
    ...     repository = client.fetch_repository(schema)
    ...     await repository.create_index()
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any, Optional, Union

import redis.asyncio as redis_async
from redis.exceptions import WatchError

from redis_entities.errors import ClientNotOpenError, ConcurrencyError
from redis_entities.options import SearchOptions, get_default_url

if TYPE_CHECKING:
    from redis_entities.repository import Repository
    from redis_entities.schema import Schema

log = logging.getLogger(__name__)

Token = Union[str, int, float, bool]


def _token(arg: Token) -> str:
    if arg is True:
        return "1"
    if arg is False:
        return "0"
    return str(arg)


class Client:
    """A connection to Redis used by repositories and searches.

    Call ``open()`` (or ``use()`` with an existing connection) before anything
    else; every other method raises ``ClientNotOpenError`` until then.
    """

    def __init__(self) -> None:
        self._redis: Optional[redis_async.Redis] = None

    async def __aenter__(self) -> Client:
        return await self.open()

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def open(self, url: Optional[str] = None) -> Client:
        """Connect to Redis. Does nothing if already open.

        Args:
            url: Connection URL. Defaults to ``get_default_url()``.
        """
        if not self.is_open():
            url = url or get_default_url()
            log.debug("Connecting to %s", url)
            self._redis = redis_async.from_url(url, decode_responses=True)
        return self

    async def use(self, connection: redis_async.Redis) -> Client:
        """Switch to an existing connection, closing the current one first.

        The connection should decode responses to ``str``.
        """
        await self.close()
        self._redis = connection
        return self

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
        self._redis = None

    def is_open(self) -> bool:
        return self._redis is not None

    @property
    def redis(self) -> redis_async.Redis:
        """The underlying connection.

        Raises:
            ClientNotOpenError: If the client is not open.
        """
        self._validate_open()
        return self._redis  # type: ignore[return-value]

    def _validate_open(self) -> None:
        if self._redis is None:
            raise ClientNotOpenError("Redis connection needs to be open.")

    def fetch_repository(self, schema: Schema) -> Repository:
        """Get the repository matching the schema's data structure."""
        from redis_entities.repository import HashRepository, JsonRepository

        self._validate_open()
        if schema.data_structure == "JSON":
            return JsonRepository(schema, self)
        return HashRepository(schema, self)

    async def execute(self, command: Sequence[Token]) -> Any:
        """Send a raw command. Booleans become ``"1"``/``"0"``."""
        args = [_token(arg) for arg in command]
        log.debug("Sending %s", args[0] if args else "<empty>")
        return await self.redis.execute_command(*args)

    async def search(self, options: SearchOptions) -> list[Any]:
        """Run FT.SEARCH and return the raw reply."""
        return await self.execute(options.to_args())

    async def get(self, key: str) -> Optional[str]:
        return await self.redis.get(key)

    async def set(self, key: str, value: str) -> None:
        await self.redis.set(key, value)

    async def unlink(self, *keys: str) -> None:
        if keys:
            await self.redis.unlink(*keys)

    async def expire(self, key: str, seconds: int) -> None:
        await self.redis.expire(key, seconds)

    async def hgetall(self, key: str) -> dict[str, str]:
        return await self.redis.hgetall(key)

    async def hsetall(self, key: str, data: Mapping[str, str]) -> None:
        """Replace the whole hash at ``key`` atomically.

        The key is watched, then unlinked and rewritten in one transaction, so
        fields missing from ``data`` are removed. An empty mapping deletes the
        key.

        Raises:
            ConcurrencyError: If the key changed while the transaction was
                being prepared.
        """
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                await pipe.watch(key)
                pipe.multi()
                pipe.unlink(key)
                if data:
                    pipe.hset(key, mapping=dict(data))
                await pipe.execute()
        except WatchError as e:
            raise ConcurrencyError(f"Watch error when setting HASH '{key}'.") from e

    async def jsonget(self, key: str) -> Optional[dict[str, Any]]:
        """Fetch the JSON document at ``key``, or None if there is none."""
        raw = await self.execute(["JSON.GET", key, "."])
        if raw is None:
            return None
        return json.loads(raw)

    async def jsonset(self, key: str, data: Mapping[str, Any]) -> None:
        await self.execute(["JSON.SET", key, ".", json.dumps(data)])
