# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Rule-based validation of candidate setting values.

Rules are the JSON object stored in ``system_settings.validation_rules``::

    {
        "enum": ["SEK", "EUR"],        "enum_message": "...",
        "min": 1,  "min_message": "...",   "max": 100, "max_message": "...",
        "min_length": 3, "min_length_message": "...",
        "max_length": 80, "max_length_message": "...",
        "pattern": "^#[0-9A-Fa-f]{6}$", "pattern_message": "..."
    }

Checks run in a fixed order and stop at the first failure:
type → enum → numeric range → string length → pattern.
Numeric bounds only apply to ``number`` settings; length and pattern only to
``string`` settings.  ``validate`` is a pure function.
"""

import re
from dataclasses import dataclass
from typing import Any, List, Optional

from pydantic import BaseModel, ValidationError

from system_settings.codec import DataType, parse_boolean, parse_number


class ValidationRules(BaseModel):
    enum: Optional[List[Any]] = None
    enum_message: Optional[str] = None
    min: Optional[float] = None
    min_message: Optional[str] = None
    max: Optional[float] = None
    max_message: Optional[str] = None
    min_length: Optional[int] = None
    min_length_message: Optional[str] = None
    max_length: Optional[int] = None
    max_length_message: Optional[str] = None
    pattern: Optional[str] = None
    pattern_message: Optional[str] = None

    model_config = {"extra": "ignore"}

    @classmethod
    def parse(cls, raw) -> "ValidationRules":
        """Accept a rules dict (or an already-built model); anything malformed means no rules."""
        if isinstance(raw, cls):
            return raw
        if not isinstance(raw, dict):
            return cls()
        try:
            return cls.model_validate(raw)
        except ValidationError:
            return cls()


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    message: Optional[str] = None


_OK = ValidationResult(valid=True)


def _fail(custom: Optional[str], default: str) -> ValidationResult:
    return ValidationResult(valid=False, message=custom or default)


def _fmt(number: float) -> str:
    return str(int(number)) if float(number).is_integer() else str(number)


def _coerce(value: Any, data_type: DataType):
    """Type check.  Returns the value in its native form, or raises ``ValueError``."""
    if data_type is DataType.BOOLEAN:
        return parse_boolean(value)
    if data_type is DataType.NUMBER:
        if isinstance(value, bool):
            raise ValueError
        if isinstance(value, (int, float)):
            return value
        if isinstance(value, str):
            return parse_number(value)
        raise ValueError
    if data_type is DataType.STRING:
        if not isinstance(value, str):
            raise ValueError
    return value


def validate(value: Any, rules, data_type) -> ValidationResult:
    """Check *value* against *rules* for a setting of *data_type*."""
    try:
        data_type = DataType(data_type)
    except ValueError:
        return ValidationResult(valid=False, message=f"Unknown data type: {data_type}")

    try:
        value = _coerce(value, data_type)
    except ValueError:
        return ValidationResult(valid=False, message=f"Value must be a {data_type.value}")

    rules = ValidationRules.parse(rules)

    if rules.enum is not None:
        allowed = rules.enum
        if data_type is DataType.NUMBER:
            allowed = [_as_number(item) for item in allowed]
        if value not in allowed:
            return _fail(
                rules.enum_message,
                "Value must be one of: " + ", ".join(str(item) for item in rules.enum),
            )

    if data_type is DataType.NUMBER:
        if rules.min is not None and value < rules.min:
            return _fail(rules.min_message, f"Value must be at least {_fmt(rules.min)}")
        if rules.max is not None and value > rules.max:
            return _fail(rules.max_message, f"Value must be at most {_fmt(rules.max)}")

    if data_type is DataType.STRING:
        if rules.min_length is not None and len(value) < rules.min_length:
            return _fail(
                rules.min_length_message,
                f"Value must be at least {rules.min_length} characters",
            )
        if rules.max_length is not None and len(value) > rules.max_length:
            return _fail(
                rules.max_length_message,
                f"Value must be at most {rules.max_length} characters",
            )
        if rules.pattern is not None:
            try:
                matched = re.search(rules.pattern, value) is not None
            except re.error:
                return ValidationResult(valid=False, message="Setting has an invalid pattern rule")
            if not matched:
                return _fail(rules.pattern_message, "Value does not match the required format")

    return _OK


def _as_number(item):
    try:
        return parse_number(str(item)) if not isinstance(item, (int, float)) else item
    except ValueError:
        return item
