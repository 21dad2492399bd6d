"""Unit tests for the setting validator."""

import pytest

from system_settings.validator import ValidationRules, validate

pytestmark = pytest.mark.unit


def test_empty_rules_only_check_the_type():
    assert validate("anything", None, "string").valid
    assert validate("anything", {}, "string").valid
    assert not validate(5, None, "string").valid


@pytest.mark.parametrize(
    "value, data_type",
    [("abc", "number"), (True, "number"), ("maybe", "boolean"), (3, "boolean"), (None, "string")],
)
def test_type_mismatch(value, data_type):
    result = validate(value, {}, data_type)
    assert not result.valid
    assert result.message == f"Value must be a {data_type}"


def test_numeric_strings_and_boolean_strings_pass_the_type_check():
    assert validate("12", {"min": 1, "max": 100}, "number").valid
    assert validate("true", None, "boolean").valid


def test_enum_membership():
    rules = {"enum": ["SEK", "EUR"]}
    assert validate("SEK", rules, "string").valid
    result = validate("NOK", rules, "string")
    assert result.message == "Value must be one of: SEK, EUR"


def test_numeric_enum_accepts_numeric_strings():
    assert validate("10", {"enum": [5, 10, 100]}, "number").valid
    assert not validate(7, {"enum": [5, 10, 100]}, "number").valid


def test_numeric_bounds_with_generated_messages():
    rules = {"min": 1, "max": 10}
    assert validate(0, rules, "number").message == "Value must be at least 1"
    assert validate(11, rules, "number").message == "Value must be at most 10"
    assert validate(1, rules, "number").valid
    assert validate(10, rules, "number").valid


def test_custom_messages_win():
    rules = {"min": 3, "min_message": "At least three attempts, please"}
    assert validate(2, rules, "number").message == "At least three attempts, please"


def test_length_and_pattern_only_apply_to_strings():
    rules = {"min_length": 5, "pattern": "^x"}
    # Numbers ignore string rules entirely
    assert validate(1, rules, "number").valid
    assert validate("abc", rules, "string").message == "Value must be at least 5 characters"
    assert validate("abcdef", rules, "string").message == "Value does not match the required format"
    assert validate("xabcde", rules, "string").valid


def test_bounds_only_apply_to_numbers():
    assert validate("z", {"min": 5, "max": 6}, "string").valid


def test_max_length():
    result = validate("toolong", {"max_length": 3}, "string")
    assert result.message == "Value must be at most 3 characters"


def test_rule_order_is_type_enum_range():
    # Fails both enum and max; enum is reported because it runs first
    result = validate(500, {"enum": [5, 10], "max": 100}, "number")
    assert result.message.startswith("Value must be one of")


def test_invalid_regex_is_a_failure_not_an_exception():
    result = validate("abc", {"pattern": "(["}, "string")
    assert not result.valid
    assert result.message == "Setting has an invalid pattern rule"


def test_malformed_rules_are_treated_as_empty():
    assert ValidationRules.parse("not a dict") == ValidationRules()
    assert ValidationRules.parse({"min": "lots"}) == ValidationRules()
    assert validate(50, {"min": "lots"}, "number").valid


def test_unknown_rule_keys_are_ignored():
    assert validate("ok", {"colour": "red"}, "string").valid


def test_validation_is_deterministic():
    args = ("Hello", {"pattern": "^[A-Z]", "max_length": 10}, "string")
    assert validate(*args) == validate(*args)


def test_unknown_data_type():
    assert not validate("x", None, "date").valid
