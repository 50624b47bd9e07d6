#!/usr/bin/env python3
"""Bigfoot sightings with redis-entities.

This example demonstrates:
1. Declaring a schema for JSON documents
2. Creating the RediSearch index (rebuilt only when the schema changes)
3. Saving and fetching entities
4. Fluent searches with sorting, sub-searches and geo radius queries
5. Collecting search results into a polars DataFrame

Usage:
    python bigfoot.py [--url REDIS_URL]

Prerequisites:
    pip install redis-entities

    docker run -d --name redis -p 6379:6379 redis/redis-stack
"""

from __future__ import annotations

import argparse
import asyncio
from datetime import datetime, timezone

from redis_entities import Client, Point, Schema

SCHEMA = Schema(
    "Bigfoot",
    {
        "title": {"type": "text", "sortable": True},
        "observations": {"type": "text"},
        "state": {"type": "string"},
        "county": {"type": "string"},
        "temperature": {"type": "number", "sortable": True},
        "observed": {"type": "date", "sortable": True},
        "location": {"type": "point"},
        "tags": {"type": "string[]"},
    },
)

SIGHTINGS = [
    {
        "title": "Tracks in the snow near the creek",
        "observations": "Large tracks leading away from the water, about 16 inches long.",
        "state": "OH",
        "county": "Ashtabula",
        "temperature": 28,
        "observed": datetime(2021, 1, 12, tzinfo=timezone.utc),
        "location": Point(-80.8, 41.7),
        "tags": ["tracks", "creek", "winter"],
    },
    {
        "title": "Howls heard while camping",
        "observations": "Three long howls from the ridge, answered by wood knocks.",
        "state": "OH",
        "county": "Hocking",
        "temperature": 61.5,
        "observed": datetime(2021, 6, 3, tzinfo=timezone.utc),
        "location": Point(-82.5, 39.4),
        "tags": ["howls", "knocks", "camping"],
    },
    {
        "title": "Large figure crossing the road",
        "observations": "Driver saw a tall dark figure cross in two strides.",
        "state": "PA",
        "county": "Elk",
        "temperature": 74,
        "observed": datetime(2021, 8, 21, tzinfo=timezone.utc),
        "location": Point(-78.6, 41.4),
        "tags": ["road", "night"],
    },
]


async def main(url: str) -> None:
    async with await Client().open(url) as client:
        repository = client.fetch_repository(SCHEMA)
        await repository.create_index()
        print(f"Index {SCHEMA.index_name} ready")

        ids = []
        for sighting in SIGHTINGS:
            entity = await repository.create_and_save(sighting)
            ids.append(entity.entity_id)
        print(f"Saved {len(ids)} sightings")

        first = await repository.fetch(ids[0])
        print(f"\nFetched {first.key_name}: {first.title} ({first.temperature}F)")

        # Give RediSearch a moment to index the new documents
        await asyncio.sleep(0.5)

        search = (
            repository.search()
            .where("state").eq("OH")
            .and_(lambda s: s.where("temperature").gte(60).or_("tags").contains("tracks"))
            .sort_by("temperature", "DESC")
        )
        print(f"\nQuery: {search.query}")
        for entity in await search.all():
            print(f"  {entity.county}: {entity.title}")

        near_erie = await (
            repository.search()
            .where("location")
            .in_circle(lambda circle: circle.origin(-80.1, 42.1).radius(150).miles())
            .all_ids()
        )
        print(f"\nWithin 150 miles of Erie, PA: {near_erie}")

        summer = await repository.search().where("observed").after("2021-06-01").count()
        print(f"Sightings since June: {summer}")

        df = await repository.search().where("observations").match("figure").all_frame()
        print("\nAs a DataFrame:")
        print(df.select(["entity_id", "state", "temperature", "observed"]))

        await repository.remove(ids)
        print(f"\nRemoved {len(ids)} sightings")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Bigfoot sightings with redis-entities")
    parser.add_argument("--url", default="redis://localhost:6379", help="Redis connection URL")
    args = parser.parse_args()
    asyncio.run(main(args.url))
