"""Integration tests for redis-entities (require Redis Stack with RediSearch and RedisJSON)."""

from __future__ import annotations

import asyncio
import os
import subprocess

import pytest
import pytest_asyncio
from redis_entities import Client, Point, Schema


def redis_available() -> bool:
    """Check if Redis is available."""
    try:
        result = subprocess.run(
            ["redis-cli", "PING"], capture_output=True, text=True, timeout=5
        )
        return result.stdout.strip() == "PONG"
    except Exception:
        return False


pytestmark = pytest.mark.skipif(
    not redis_available(),
    reason="Redis not available at localhost:6379",
)

REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379")

DEFINITION = {
    "title": {"type": "text", "sortable": True},
    "state": {"type": "string"},
    "temperature": {"type": "number", "sortable": True},
    "verified": {"type": "boolean"},
    "location": {"type": "point"},
    "tags": {"type": "string[]"},
}

SIGHTINGS = [
    {"title": "Tracks by the creek", "state": "OH", "temperature": 41, "verified": True,
     "location": Point(-81.5, 41.2), "tags": ["creek", "tracks"]},
    {"title": "Howls at night", "state": "OH", "temperature": 55.5, "verified": False,
     "location": Point(-82.9, 40.0), "tags": ["night"]},
    {"title": "Large shape crossing road", "state": "PA", "temperature": 68, "verified": True,
     "location": Point(-77.2, 40.9), "tags": ["road", "night"]},
    {"title": "Smell of wet dog", "state": "WA", "temperature": 50, "verified": False,
     "location": Point(-121.7, 46.8), "tags": ["forest"]},
]


@pytest_asyncio.fixture(params=["HASH", "JSON"])
async def repository(request):
    schema = Schema(f"test:bigfoot:{request.param.lower()}", DEFINITION, data_structure=request.param)
    client = await Client().open(REDIS_URL)
    repository = client.fetch_repository(schema)
    await repository.create_index()
    ids = []
    for n, sighting in enumerate(SIGHTINGS):
        entity = await repository.create_and_save(sighting, str(n))
        ids.append(entity.entity_id)
    try:
        yield repository
    finally:
        await repository.remove(ids)
        await repository.drop_index()
        await client.close()


async def wait_for_index(repository, expected: int) -> None:
    """Indexing is asynchronous; poll until every document is visible."""
    for _ in range(50):
        if await repository.search().count() == expected:
            return
        await asyncio.sleep(0.05)


@pytest.mark.asyncio
async def test_fetch_round_trip(repository):
    entity = await repository.fetch("0")
    assert entity.title == "Tracks by the creek"
    assert entity.temperature == 41
    assert entity.verified is True
    assert entity.location == Point(-81.5, 41.2)
    assert entity.tags == ["creek", "tracks"]


@pytest.mark.asyncio
async def test_search(repository):
    await wait_for_index(repository, len(SIGHTINGS))

    in_ohio = await repository.search().where("state").eq("OH").all_ids()
    assert sorted(in_ohio) == ["0", "1"]

    warm_or_night = await (
        repository.search()
        .where("temperature").gt(60)
        .or_("tags").contains("night")
        .sort_by("temperature")
        .all_ids(page_size=1)
    )
    assert warm_or_night == ["1", "2"]

    near_cleveland = await repository.search().where("location").in_circle(
        lambda circle: circle.origin(-81.7, 41.5).radius(50).miles()
    ).all_ids()
    assert near_cleveland == ["0"]

    assert (await repository.search().max("temperature")).entity_id == "2"
    assert await repository.search().where("verified").true().count() == 2


@pytest.mark.asyncio
async def test_all_frame(repository):
    await wait_for_index(repository, len(SIGHTINGS))
    df = await repository.search().sort_by("temperature").all_frame()
    assert df["entity_id"].to_list() == ["0", "3", "1", "2"]


@pytest.mark.asyncio
async def test_create_index_is_idempotent(repository):
    stored = await repository.client.get(repository.schema.index_hash_name)
    await repository.create_index()
    assert await repository.client.get(repository.schema.index_hash_name) == stored
