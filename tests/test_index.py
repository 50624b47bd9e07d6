"""Tests for compiling schemas into RediSearch index definitions."""

from __future__ import annotations

import logging

import pytest
from redis.exceptions import ResponseError
from redis_entities import Index, Schema
from redis_entities._index import GeoField, NumericField, TagField, TextField


def hash_args(field_def: dict, **schema_options) -> list[str]:
    return Schema("Test", {"aField": field_def}, data_structure="HASH", **schema_options).redis_schema


def json_args(field_def: dict, **schema_options) -> list[str]:
    return Schema("Test", {"aField": field_def}, data_structure="JSON", **schema_options).redis_schema


class TestFieldTypes:
    """Test index field classes."""

    def test_text_field_with_options(self):
        """Test TextField option order."""
        field = TextField("title", nostem=True, phonetic="dm:en", sortable=True, unf=True, weight=2)
        assert field.field_type == "TEXT"
        assert field.to_args() == [
            "title", "TEXT", "NOSTEM", "PHONETIC", "dm:en", "SORTABLE", "UNF", "WEIGHT", "2",
        ]

    def test_numeric_field(self):
        """Test NumericField with sortable and noindex."""
        assert NumericField("age").to_args() == ["age", "NUMERIC"]
        assert NumericField("age", sortable=True, noindex=True).to_args() == [
            "age", "NUMERIC", "SORTABLE", "NOINDEX",
        ]

    def test_tag_field_without_separator(self):
        """Test TagField as used for booleans."""
        assert TagField("flag", separator=None).to_args() == ["flag", "TAG"]

    def test_geo_field_with_path(self):
        """Test a JSON path field."""
        field = GeoField("loc", path="$.loc")
        assert field.field_type == "GEO"
        assert field.to_args() == ["$.loc", "AS", "loc", "GEO"]


class TestHashSchema:
    """Test SCHEMA arguments for hash indexes."""

    def test_string(self):
        assert hash_args({"type": "string"}) == ["aField", "TAG", "SEPARATOR", "|"]

    def test_string_with_options(self):
        assert hash_args(
            {"type": "string", "case_sensitive": True, "separator": ";", "sortable": True, "normalized": False}
        ) == ["aField", "TAG", "CASESENSITIVE", "SEPARATOR", ";", "SORTABLE", "UNF"]

    def test_string_array(self):
        assert hash_args({"type": "string[]"}) == ["aField", "TAG", "SEPARATOR", "|"]

    def test_string_array_sortable_is_dropped(self, caplog):
        with caplog.at_level(logging.WARNING, logger="redis_entities._index"):
            assert hash_args({"type": "string[]", "sortable": True}) == [
                "aField", "TAG", "SEPARATOR", "|",
            ]
        assert "sortable" in caplog.text

    def test_number_and_date(self):
        assert hash_args({"type": "number"}) == ["aField", "NUMERIC"]
        assert hash_args({"type": "date", "sortable": True}) == ["aField", "NUMERIC", "SORTABLE"]

    def test_boolean(self):
        assert hash_args({"type": "boolean"}) == ["aField", "TAG"]
        assert hash_args({"type": "boolean", "sortable": True}) == ["aField", "TAG", "SORTABLE"]

    def test_point(self):
        assert hash_args({"type": "point"}) == ["aField", "GEO"]

    def test_point_sortable_is_dropped(self, caplog):
        with caplog.at_level(logging.WARNING, logger="redis_entities._index"):
            assert hash_args({"type": "point", "sortable": True}) == ["aField", "GEO"]
        assert "GEO" in caplog.text

    def test_text(self):
        assert hash_args({"type": "text"}) == ["aField", "TEXT"]

    def test_text_with_options(self):
        assert hash_args(
            {"type": "text", "stemming": False, "matcher": "dm:fr", "sortable": True, "normalized": False, "weight": 0.5}
        ) == ["aField", "TEXT", "NOSTEM", "PHONETIC", "dm:fr", "SORTABLE", "UNF", "WEIGHT", "0.5"]

    def test_alias(self):
        assert hash_args({"type": "number", "alias": "n"}) == ["n", "NUMERIC"]

    def test_noindex(self):
        assert hash_args({"type": "number", "indexed": False}) == ["aField", "NUMERIC", "NOINDEX"]

    def test_indexed_default(self):
        assert hash_args({"type": "text"}, indexed_default=False) == ["aField", "TEXT", "NOINDEX"]
        assert hash_args({"type": "text", "indexed": True}, indexed_default=False) == [
            "aField", "TEXT",
        ]

    def test_inapplicable_options_are_ignored(self):
        assert hash_args({"type": "number", "weight": 2, "case_sensitive": True}) == [
            "aField", "NUMERIC",
        ]


class TestJsonSchema:
    """Test SCHEMA arguments for JSON indexes."""

    def test_string(self):
        assert json_args({"type": "string"}) == ["$.aField", "AS", "aField", "TAG", "SEPARATOR", "|"]

    def test_string_array_path(self):
        assert json_args({"type": "string[]"}) == [
            "$.aField[*]", "AS", "aField", "TAG", "SEPARATOR", "|",
        ]

    @pytest.mark.parametrize("field_type", ["string", "boolean"])
    def test_tag_sortable_is_dropped(self, field_type, caplog):
        with caplog.at_level(logging.WARNING, logger="redis_entities._index"):
            args = json_args({"type": field_type, "sortable": True})
        assert "SORTABLE" not in args
        assert "JSON" in caplog.text

    def test_number_sortable(self):
        assert json_args({"type": "number", "sortable": True}) == [
            "$.aField", "AS", "aField", "NUMERIC", "SORTABLE",
        ]

    def test_text_sortable(self):
        assert json_args({"type": "text", "sortable": True}) == [
            "$.aField", "AS", "aField", "TEXT", "SORTABLE",
        ]

    def test_alias_in_path(self):
        assert json_args({"type": "point", "alias": "loc"}) == ["$.loc", "AS", "loc", "GEO"]


class TestIndex:
    """Test Index creation arguments."""

    def test_from_schema(self, hash_schema):
        index = Index.from_schema(hash_schema)
        assert index.name == "Bigfoot:index"
        assert index.prefix == "Bigfoot:"
        assert index.on == "HASH"
        assert len(index.schema) == 7

    def test_create_args(self):
        schema = Schema("Bigfoot", {"title": {"type": "text"}}, data_structure="HASH")
        assert Index.from_schema(schema)._build_create_args() == [
            "Bigfoot:index", "ON", "HASH", "PREFIX", "1", "Bigfoot:", "SCHEMA", "title", "TEXT",
        ]

    def test_stop_words_off(self):
        schema = Schema("Bigfoot", {"title": {"type": "text"}}, use_stop_words="OFF")
        args = Index.from_schema(schema)._build_create_args()
        assert args[6:9] == ["STOPWORDS", "0", "SCHEMA"]

    def test_custom_stop_words(self):
        schema = Schema(
            "Bigfoot", {"title": {"type": "text"}}, use_stop_words="CUSTOM", stop_words=["a", "the"]
        )
        args = Index.from_schema(schema)._build_create_args()
        assert args[6:11] == ["STOPWORDS", "2", "a", "the", "SCHEMA"]

    def test_str(self):
        schema = Schema("Bigfoot", {"title": {"type": "text"}}, data_structure="HASH")
        assert str(Index.from_schema(schema)) == (
            "FT.CREATE Bigfoot:index ON HASH PREFIX 1 Bigfoot: SCHEMA title TEXT"
        )

    def test_repr(self, json_schema):
        assert repr(Index.from_schema(json_schema)) == (
            "Index(name='Bigfoot:index', prefix='Bigfoot:', fields=7)"
        )

    @pytest.mark.asyncio
    async def test_create_sends_ft_create(self, client, hash_schema):
        await Index.from_schema(hash_schema).create(client)
        assert client.commands[0][:3] == ["FT.CREATE", "Bigfoot:index", "ON"]

    @pytest.mark.asyncio
    async def test_drop_tolerates_unknown_index(self, client, hash_schema):
        client.errors["FT.DROPINDEX"] = ResponseError("Unknown Index name")
        await Index.from_schema(hash_schema).drop(client)
        assert client.commands == [["FT.DROPINDEX", "Bigfoot:index"]]

    @pytest.mark.asyncio
    async def test_drop_propagates_other_errors(self, client, hash_schema):
        client.errors["FT.DROPINDEX"] = ResponseError("ERR wrong number of arguments")
        with pytest.raises(ResponseError):
            await Index.from_schema(hash_schema).drop(client)
