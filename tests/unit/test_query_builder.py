"""Unit tests for the Mongo query builder."""

from __future__ import annotations

import pytest
from bson import ObjectId
from bson.decimal128 import Decimal128
from bson.regex import Regex

from ormbridge_mongo.query_builder import MongoQueryBuilder, id_included
from ormbridge_mongo.schema import ModelDescriptor, ModelSettings
from ormbridge_mongo.settings import ConnectorSettings

HEX_ID = "5f1b2c3d4e5f6a7b8c9d0e1f"
HEX_ID_2 = "5f1b2c3d4e5f6a7b8c9d0e20"


@pytest.fixture
def builder():
    return MongoQueryBuilder()


class TestBuildWhere:
    def test_empty_and_invalid(self, builder, registry):
        post = registry.get("Post")
        assert builder.build_where(post, None) == {}
        assert builder.build_where(post, "title = 1") == {}
        assert builder.build_where(post, {}) == {}

    def test_equality(self, builder, registry):
        assert builder.build_where(registry.get("Post"), {"title": "a"}) == {
            "title": "a"
        }

    def test_id_maps_to_reserved_field(self, builder, registry):
        assert builder.build_where(registry.get("Post"), {"id": HEX_ID}) == {
            "_id": ObjectId(HEX_ID)
        }

    def test_inq_on_id_coerces_each_element(self, builder, registry):
        query = builder.build_where(
            registry.get("Post"), {"id": {"inq": [HEX_ID, HEX_ID_2]}}
        )
        assert query == {"_id": {"$in": [ObjectId(HEX_ID), ObjectId(HEX_ID_2)]}}

    def test_between(self, builder, registry):
        query = builder.build_where(registry.get("Post"), {"rating": {"between": [1, 5]}})
        assert query == {"rating": {"$gte": 1, "$lte": 5}}

    def test_generic_operator_passthrough(self, builder, registry):
        query = builder.build_where(registry.get("Post"), {"rating": {"gt": 3}})
        assert query == {"rating": {"$gt": 3}}

    def test_logical_operators_keep_order(self, builder, registry):
        where = {
            "or": [
                {"title": "a"},
                {"and": [{"rating": {"gt": 3}}, {"rating": {"lt": 5}}]},
            ]
        }
        assert builder.build_where(registry.get("Post"), where) == {
            "$or": [
                {"title": "a"},
                {"$and": [{"rating": {"$gt": 3}}, {"rating": {"$lt": 5}}]},
            ]
        }

    def test_nor(self, builder, registry):
        query = builder.build_where(registry.get("Post"), {"nor": [{"title": "a"}]})
        assert query == {"$nor": [{"title": "a"}]}

    def test_null_is_type_check(self, builder, registry):
        assert builder.build_where(registry.get("Post"), {"title": None}) == {
            "title": {"$type": 10}
        }

    def test_null_as_absent(self, registry):
        builder = MongoQueryBuilder(ConnectorSettings(nullAsAbsent=True))
        assert builder.build_where(registry.get("Post"), {"title": None}) == {
            "title": None
        }

    def test_server_side_code_is_stripped(self, builder, registry):
        where = {"$where": "sleep(100)", "mapReduce": "x", "title": "a"}
        assert builder.build_where(registry.get("Post"), where) == {"title": "a"}
        assert "$where" not in where

    def test_column_mapping(self, builder, registry):
        assert builder.build_where(registry.get("Product"), {"name": "x"}) == {
            "product_name": "x"
        }

    def test_decimal_equality_and_operator(self, builder, registry):
        product = registry.get("Product")
        assert builder.build_where(product, {"tax": "0.0005"}) == {
            "tax": Decimal128("0.0005")
        }
        assert builder.build_where(product, {"tax": {"gt": "1.5"}}) == {
            "tax": {"$gt": Decimal128("1.5")}
        }

    def test_dotted_path_uses_nested_schema(self, builder, registry):
        query = builder.build_where(registry.get("Order"), {"summary.totalValue": "5"})
        assert query == {"summary.totalValue": Decimal128("5")}

    def test_object_property_value_is_a_literal(self, builder, registry):
        query = builder.build_where(
            registry.get("Order"), {"summary": {"totalValue": "1"}}
        )
        assert query == {"summary": {"totalValue": "1"}}

    def test_single_key_dict_on_undeclared_property_is_an_operator(
        self, builder, registry
    ):
        query = builder.build_where(registry.get("Post"), {"meta": {"exists": True}})
        assert query == {"meta": {"$exists": True}}

    def test_near_on_geopoint(self, builder, registry):
        query = builder.build_where(
            registry.get("Product"),
            {"location": {"near": {"lat": 1, "lng": 2}, "maxDistance": 5}},
        )
        assert query == {
            "location": {
                "$near": {
                    "$geometry": {"type": "Point", "coordinates": [2, 1]},
                    "$maxDistance": 5,
                }
            }
        }

    def test_pattern_operands_are_not_coerced(self, builder, registry):
        query = builder.build_where(registry.get("Post"), {"title": {"like": HEX_ID}})
        assert query == {"title": {"$regex": HEX_ID, "$options": ""}}

    def test_nlike_negates_pattern(self, builder, registry):
        query = builder.build_where(registry.get("Post"), {"title": {"nlike": "^a"}})
        assert query["title"]["$not"] == Regex("^a", "")

    def test_compiling_twice_is_stable(self, builder, registry):
        post = registry.get("Post")
        where = {"id": {"inq": [HEX_ID]}, "rating": {"between": [1, 2]}}
        once = builder.build_where(post, where)
        assert builder.build_where(post, dict(once)) == once


class TestStrictCoercion:
    """Entity, then connector, then call option."""

    def test_entity_setting_wins(self, builder, registry):
        bookmark = registry.get("Bookmark")
        assert builder.strict_coercion(bookmark, {"strict_object_id_coercion": False})

    def test_connector_setting(self, registry):
        builder = MongoQueryBuilder(ConnectorSettings(strictObjectIDCoercion=True))
        assert builder.strict_coercion(registry.get("Post"))

    def test_call_option(self, builder, registry):
        post = registry.get("Post")
        assert builder.strict_coercion(post, {"strict_object_id_coercion": True})
        assert not builder.strict_coercion(post)

    def test_strict_leaves_id_strings(self, builder, registry):
        query = builder.build_where(registry.get("Bookmark"), {"id": HEX_ID})
        assert query == {"_id": HEX_ID}


class TestBuildSort:
    def test_string_order(self, builder, registry):
        assert builder.build_sort(registry.get("Post"), "title DESC, rating") == [
            ("title", -1),
            ("rating", 1),
        ]

    def test_list_order_matches_string_order(self, builder, registry):
        post = registry.get("Post")
        assert builder.build_sort(post, ["title desc", "rating ASC"]) == (
            builder.build_sort(post, "title DESC,rating")
        )

    def test_tuple_keys(self, builder, registry):
        assert builder.build_sort(registry.get("Post"), [("title", "desc")]) == [
            ("title", -1)
        ]

    def test_id_and_column_names(self, builder, registry):
        assert builder.build_sort(registry.get("Product"), "id DESC,name") == [
            ("_id", -1),
            ("product_name", 1),
        ]

    def test_default_sort_by_id(self, builder, registry):
        assert builder.build_sort(registry.get("Post"), None) == [("_id", 1)]

    def test_default_sort_disabled_by_call(self, builder, registry):
        post = registry.get("Post")
        assert builder.build_sort(post, None, {"disable_default_sort": True}) == []

    def test_default_sort_disabled_by_connector(self, registry):
        builder = MongoQueryBuilder(ConnectorSettings(disableDefaultSort=True))
        assert builder.build_sort(registry.get("Post"), None) == []

    def test_call_option_overrides_entity(self, builder):
        model = ModelDescriptor("Log", settings=ModelSettings(disable_default_sort=True))
        assert builder.build_sort(model, None) == []
        assert builder.build_sort(model, None, {"disable_default_sort": False}) == [
            ("_id", 1)
        ]


class TestProjection:
    def test_list_form(self, builder, registry):
        assert builder.build_projection(registry.get("Product"), ["id", "name"]) == {
            "_id": 1,
            "product_name": 1,
        }

    def test_dict_form(self, builder, registry):
        assert builder.build_projection(
            registry.get("Post"), {"title": True, "id": False}
        ) == {"title": 1, "_id": 0}

    def test_no_fields(self, builder, registry):
        assert builder.build_projection(registry.get("Post"), None) is None


class TestIdIncluded:
    @pytest.mark.parametrize(
        ("fields", "expected"),
        [
            (None, True),
            (["title"], False),
            (["id", "title"], True),
            ({"id": True}, True),
            ({"id": False, "title": True}, False),
            ({"title": False}, True),
            ({"title": True}, False),
        ],
    )
    def test_projection_decides(self, fields, expected):
        assert id_included(fields, "id") is expected
