"""Tests for dot-path extraction from agent outputs."""

from pydantic import BaseModel

from agentdag.kernel.utils import FieldExtractor


class Lead(BaseModel):
    email: str


class TestFieldExtractor:
    def test_empty_path_returns_data(self):
        data = {"a": 1}
        assert FieldExtractor.extract(data, None) is data
        assert FieldExtractor.extract(data, "") is data

    def test_nested_mapping(self):
        assert FieldExtractor.extract({"a": {"b": {"c": 3}}}, "a.b.c") == 3

    def test_missing_key_is_none(self):
        assert FieldExtractor.extract({"a": {}}, "a.b.c") is None

    def test_sequence_index(self):
        assert FieldExtractor.extract({"items": ["x", "y"]}, "items.1") == "y"
        assert FieldExtractor.extract({"items": ["x"]}, "items.5") is None

    def test_attribute_access(self):
        assert FieldExtractor.extract({"lead": Lead(email="a@b.c")}, "lead.email") == "a@b.c"

    def test_strings_are_not_indexed(self):
        assert FieldExtractor.extract({"text": "hello"}, "text.0") is None
