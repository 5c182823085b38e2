"""Unit tests for update payload parsing."""

from __future__ import annotations

import pytest
from bson import ObjectId
from bson.decimal128 import Decimal128

from ormbridge_mongo.schema import ModelDescriptor, ModelSettings
from ormbridge_mongo.settings import ConnectorSettings
from ormbridge_mongo.update_builder import (
    extended_operators_enabled,
    parse_update_data,
    update_to_storage,
)

HEX_ID = "5f1b2c3d4e5f6a7b8c9d0e1f"


def _model(allow=None):
    return ModelDescriptor(
        "Counter", settings=ModelSettings(allow_extended_operators=allow)
    )


class TestExtendedOperatorsEnabled:
    @pytest.mark.parametrize(
        ("call", "model", "connector", "expected"),
        [
            (None, None, None, False),
            (True, None, None, True),
            (False, True, True, False),
            (None, True, None, True),
            (None, False, True, False),
            (None, None, True, True),
            (None, True, False, True),
            (True, None, False, True),
        ],
    )
    def test_precedence(self, call, model, connector, expected):
        settings = ConnectorSettings(allowExtendedOperators=connector)
        options = {"allow_extended_operators": call}
        assert extended_operators_enabled(_model(model), settings, options) is expected


class TestParseUpdateData:
    def test_disabled_wraps_in_set(self):
        data = {"$inc": {"count": 1}, "name": "x"}
        result = parse_update_data(_model(), data, ConnectorSettings())
        assert result == {"$set": data}

    def test_enabled_keeps_operators_and_drops_plain_keys(self):
        data = {"$inc": {"count": 1}, "$push": {"tags": "a"}, "name": "x"}
        result = parse_update_data(_model(True), data, ConnectorSettings())
        assert result == {"$inc": {"count": 1}, "$push": {"tags": "a"}}

    def test_enabled_without_operators_wraps_in_set(self):
        result = parse_update_data(_model(True), {"name": "x"}, ConnectorSettings())
        assert result == {"$set": {"name": "x"}}

    def test_empty_operator_is_ignored(self):
        result = parse_update_data(
            _model(True), {"$inc": {}, "name": "x"}, ConnectorSettings()
        )
        assert result == {"$set": {"$inc": {}, "name": "x"}}


class TestUpdateToStorage:
    def test_operator_fields_use_storage_names(self, registry):
        product = registry.get("Product")
        update = {"$set": {"name": "b", "tax": "0.7"}, "$inc": {"price": 1}}

        assert update_to_storage(product, update) == {
            "$set": {"product_name": "b", "tax": Decimal128("0.7")},
            "$inc": {"price": 1},
        }

    def test_dotted_paths_are_coerced(self, registry):
        order = registry.get("Order")
        update = {"$set": {"summary.totalValue": "9.99"}}

        assert update_to_storage(order, update) == {
            "$set": {"summary.totalValue": Decimal128("9.99")}
        }

    def test_pushed_elements_are_coerced(self, registry):
        order = registry.get("Order")
        line = {"unitPrice": "1.25", "productId": HEX_ID}

        pushed = update_to_storage(order, {"$push": {"lines": line}})
        each = update_to_storage(order, {"$push": {"lines": {"$each": [line]}}})

        expected = {"unitPrice": Decimal128("1.25"), "productId": ObjectId(HEX_ID)}
        assert pushed == {"$push": {"lines": expected}}
        assert each == {"$push": {"lines": {"$each": [expected]}}}

    def test_name_operators_only_map_fields(self, registry):
        product = registry.get("Product")
        update = {"$unset": {"name": ""}, "$rename": {"name": "title"}}

        assert update_to_storage(product, update) == {
            "$unset": {"product_name": ""},
            "$rename": {"product_name": "title"},
        }

    def test_id_is_never_updated(self, registry):
        product = registry.get("Product")

        assert update_to_storage(product, {"$set": {"id": HEX_ID, "price": 2}}) == {
            "$set": {"price": 2}
        }
