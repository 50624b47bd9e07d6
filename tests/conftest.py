"""Shared fixtures: schemas and an in-memory stand-in for ``Client``."""

from __future__ import annotations

import json
from typing import Any

import pytest
from redis_entities import Schema
from redis_entities.client import Client, _token
from redis_entities.options import SearchOptions


class FakeClient(Client):
    """Records every call and keeps strings, hashes and documents in dicts.

    Search replies are queued with ``reply_with`` and returned in order.
    """

    def __init__(self) -> None:
        super().__init__()
        self._redis = object()  # type: ignore[assignment]
        self.commands: list[list[str]] = []
        self.searches: list[SearchOptions] = []
        self.strings: dict[str, str] = {}
        self.hashes: dict[str, dict[str, str]] = {}
        self.documents: dict[str, Any] = {}
        self.ttls: dict[str, int] = {}
        self.replies: list[Any] = []
        self.errors: dict[str, Exception] = {}

    def reply_with(self, *replies: Any) -> None:
        self.replies.extend(replies)

    async def close(self) -> None:
        self._redis = None

    async def execute(self, command):
        args = [_token(arg) for arg in command]
        self.commands.append(args)
        if args[0] in self.errors:
            raise self.errors[args[0]]
        if args[0] == "FT.SEARCH":
            return self.replies.pop(0)
        if args[0] == "JSON.GET":
            document = self.documents.get(args[1])
            return None if document is None else json.dumps(document)
        if args[0] == "JSON.SET":
            self.documents[args[1]] = json.loads(args[3])
        return "OK"

    async def search(self, options: SearchOptions) -> list[Any]:
        self._validate_open()
        self.searches.append(options)
        return await self.execute(options.to_args())

    async def get(self, key):
        self._validate_open()
        self.commands.append(["GET", key])
        return self.strings.get(key)

    async def set(self, key, value):
        self._validate_open()
        self.commands.append(["SET", key, value])
        self.strings[key] = value

    async def unlink(self, *keys):
        self._validate_open()
        if keys:
            self.commands.append(["UNLINK", *keys])
        for key in keys:
            self.strings.pop(key, None)
            self.hashes.pop(key, None)
            self.documents.pop(key, None)

    async def expire(self, key, seconds):
        self._validate_open()
        self.commands.append(["EXPIRE", key, str(seconds)])
        self.ttls[key] = seconds

    async def hgetall(self, key):
        self._validate_open()
        self.commands.append(["HGETALL", key])
        return dict(self.hashes.get(key, {}))

    async def hsetall(self, key, data):
        self._validate_open()
        self.commands.append(["HSETALL", key])
        if "HSETALL" in self.errors:
            raise self.errors["HSETALL"]
        if data:
            self.hashes[key] = dict(data)
        else:
            self.hashes.pop(key, None)


@pytest.fixture
def client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def definition() -> dict[str, dict[str, Any]]:
    return {
        "title": {"type": "text", "sortable": True},
        "state": {"type": "string"},
        "temperature": {"type": "number", "sortable": True},
        "observed": {"type": "date"},
        "verified": {"type": "boolean"},
        "location": {"type": "point"},
        "tags": {"type": "string[]"},
    }


@pytest.fixture
def hash_schema(definition) -> Schema:
    return Schema("Bigfoot", definition, data_structure="HASH")


@pytest.fixture
def json_schema(definition) -> Schema:
    return Schema("Bigfoot", definition, data_structure="JSON")


def search_reply(*entries: tuple[str, Any], total: int | None = None) -> list[Any]:
    """Build an FT.SEARCH reply from ``(key, payload)`` pairs."""
    reply: list[Any] = [len(entries) if total is None else total]
    for key, payload in entries:
        reply.append(key)
        reply.append(payload)
    return reply


def keys_reply(*keys: str, total: int | None = None) -> list[Any]:
    """Build an FT.SEARCH ... RETURN 0 reply."""
    return [len(keys) if total is None else total, *keys]


def hash_payload(data: dict[str, str]) -> list[str]:
    payload: list[str] = []
    for field, value in data.items():
        payload.extend([field, value])
    return payload


def json_payload(document: dict[str, Any]) -> list[str]:
    return ["$", json.dumps(document)]
