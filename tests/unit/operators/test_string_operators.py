"""Unit tests for pattern operators."""

from __future__ import annotations

import logging
import re

import pytest
from bson.regex import Regex

from ormbridge_mongo.exceptions import MongoQueryError
from ormbridge_mongo.operators import compile_string
from ormbridge_mongo.operators.string import split_regex


class TestSplitRegex:
    def test_plain_string(self):
        assert split_regex("^a") == ("^a", "")

    def test_suffix_flags(self):
        assert split_regex("^a/i") == ("^a", "i")

    def test_literal_form(self):
        assert split_regex("/^a.*b$/im") == ("^a.*b$", "im")

    def test_compiled_pattern(self):
        assert split_regex(re.compile("^a", re.IGNORECASE)) == ("^a", "i")

    def test_bson_regex(self):
        assert split_regex(Regex("^a", "m")) == ("^a", "m")

    def test_non_string_raises(self):
        with pytest.raises(MongoQueryError):
            split_regex(12)


class TestStringOperators:
    def test_regexp(self):
        result = compile_string("title", "regexp", "^hello/i", {})
        assert result == {"title": {"$regex": "^hello", "$options": "i"}}

    def test_regexp_global_flag_is_dropped_with_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="ormbridge.mongo.query"):
            result = compile_string("title", "regexp", "/^hello/gi", {})
        assert result == {"title": {"$regex": "^hello", "$options": "i"}}
        assert "'g'" in caplog.text

    def test_like_with_options(self):
        result = compile_string("title", "like", "post", {"options": "i"})
        assert result == {"title": {"$regex": "post", "$options": "i"}}

    def test_like_with_pattern_object(self):
        pattern = re.compile("post")
        assert compile_string("title", "like", pattern, {}) == {
            "title": {"$regex": pattern}
        }

    def test_nlike(self):
        result = compile_string("title", "nlike", "post", {"options": "i"})
        negated = result["title"]["$not"]
        assert isinstance(negated, Regex)
        assert negated.pattern == "post"
        assert negated.flags & re.IGNORECASE

    def test_nlike_keeps_server_side_syntax(self):
        result = compile_string("title", "nlike", r"^\p{Lu}", {})
        assert result == {"title": {"$not": Regex(r"^\p{Lu}", "")}}

    def test_not_a_pattern_operator(self):
        assert compile_string("title", "inq", ["a"], {}) is None
