"""Unit tests for the setting value codec.

Covers:
- Decoding stored strings per data type (including the never-raise contract)
- Encoding values per data type and rejecting ones that do not fit
"""

import math

import pytest

from system_settings.codec import DataType, deserialize, parse_value, serialize

pytestmark = pytest.mark.unit


class TestDeserialize:
    @pytest.mark.parametrize(
        "raw, data_type, expected",
        [
            ("Test Club", "string", "Test Club"),
            ("5", "number", 5),
            ("2.5", "number", 2.5),
            ("-3", "number", -3),
            ("true", "boolean", True),
            ("FALSE", "boolean", False),
            ('{"a": 1}', "json", {"a": 1}),
            ('["en", "sv"]', "array", ["en", "sv"]),
        ],
    )
    def test_decodes_by_data_type(self, raw, data_type, expected):
        assert deserialize(raw, data_type) == expected

    def test_integral_text_decodes_as_int(self):
        assert isinstance(deserialize("10", DataType.NUMBER), int)

    @pytest.mark.parametrize(
        "raw, data_type",
        [
            ("ten", "number"),
            ("yes", "boolean"),
            ("{not json", "json"),
            ('{"a": 1}', "array"),
            ("nan", "number"),
        ],
    )
    def test_unparseable_value_comes_back_raw(self, raw, data_type):
        assert deserialize(raw, data_type, key="broken") == raw

    def test_none_stays_none(self):
        assert deserialize(None, "number") is None

    def test_parse_value_is_strict(self):
        with pytest.raises(ValueError):
            parse_value("ten", "number")


class TestSerialize:
    def test_booleans(self):
        assert serialize(True, "boolean") == "true"
        assert serialize("False", "boolean") == "false"
        assert serialize(1, "boolean") == "true"
        assert serialize(0, "boolean") == "false"

    def test_numbers(self):
        assert serialize(5, "number") == "5"
        assert serialize(2.5, "number") == "2.5"
        assert serialize("7", "number") == "7"

    @pytest.mark.parametrize("value", ["abc", True, None, math.inf, float("nan"), [1]])
    def test_rejects_non_numbers(self, value):
        with pytest.raises(ValueError):
            serialize(value, "number")

    def test_rejects_non_boolean(self):
        with pytest.raises(ValueError):
            serialize("maybe", "boolean")
        with pytest.raises(ValueError):
            serialize(2, "boolean")

    def test_array_needs_a_list(self):
        assert serialize(("en", "sv"), "array") == '["en", "sv"]'
        with pytest.raises(ValueError):
            serialize("en,sv", "array")

    def test_json_must_be_encodable(self):
        assert serialize({"min_length": 10}, "json") == '{"min_length": 10}'
        with pytest.raises(ValueError):
            serialize({"when": object()}, "json")

    def test_string_rejects_none(self):
        assert serialize("Sláinte", "string") == "Sláinte"
        with pytest.raises(ValueError):
            serialize(None, "string")

    def test_unknown_data_type(self):
        with pytest.raises(ValueError):
            serialize("x", "date")
