# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
String codec for setting values.

A setting's ``value`` column always holds text; ``data_type`` says how to
read it back.  Two directions:

* ``serialize(value, data_type)``  – strict, raises ``ValueError`` when the
  value cannot be represented as the declared type.
* ``deserialize(raw, data_type)``  – total, never raises: an unparseable
  stored value is logged and handed back as the raw string.
"""

import json
import math
import re
from enum import Enum
from typing import Any, Optional

from core.logger import logger

_INT_RE = re.compile(r"[+-]?\d+")

_TRUE_STRINGS = ("true", "1")
_FALSE_STRINGS = ("false", "0")


class DataType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    JSON = "json"
    ARRAY = "array"


def parse_number(text: str):
    """``"5"`` → 5, ``"2.5"`` → 2.5.  Raises ``ValueError`` for anything else."""
    text = text.strip()
    if _INT_RE.fullmatch(text):
        return int(text)
    number = float(text)
    if not math.isfinite(number):
        raise ValueError(f"{text!r} is not a finite number")
    return number


def parse_boolean(value: Any) -> bool:
    """Accept native booleans and their ``"true"``/``"false"`` string forms."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise ValueError(f"{value!r} is not a boolean")


def parse_value(raw: Optional[str], data_type) -> Any:
    """Strict decode of a stored string.  Raises ``ValueError`` on bad input."""
    if raw is None:
        return None

    data_type = DataType(data_type)
    if data_type is DataType.BOOLEAN:
        return parse_boolean(raw)
    if data_type is DataType.NUMBER:
        return parse_number(raw)
    if data_type is DataType.JSON:
        return json.loads(raw)
    if data_type is DataType.ARRAY:
        decoded = json.loads(raw)
        if not isinstance(decoded, list):
            raise ValueError("array setting does not hold a JSON list")
        return decoded
    return raw


def deserialize(raw: Optional[str], data_type, key: str = "?") -> Any:
    try:
        return parse_value(raw, data_type)
    except ValueError as exc:  # json.JSONDecodeError is a ValueError too
        logger.warning("Setting %s holds a value that is not a valid %s: %s", key, data_type, exc)
        return raw


def serialize(value: Any, data_type) -> str:
    """Encode *value* for storage.  Raises ``ValueError`` if it does not fit *data_type*."""
    data_type = DataType(data_type)

    if data_type is DataType.BOOLEAN:
        if isinstance(value, int) and not isinstance(value, bool) and value in (0, 1):
            value = bool(value)
        return "true" if parse_boolean(value) else "false"

    if data_type is DataType.NUMBER:
        if isinstance(value, bool):
            raise ValueError("a boolean is not a number")
        if isinstance(value, int):
            return str(value)
        if isinstance(value, float):
            if not math.isfinite(value):
                raise ValueError(f"{value!r} is not a finite number")
            return repr(value)
        if isinstance(value, str):
            return str(parse_number(value))
        raise ValueError(f"{type(value).__name__} is not a number")

    if data_type is DataType.ARRAY:
        if not isinstance(value, (list, tuple)):
            raise ValueError("array settings need a list value")
        value = list(value)

    if data_type in (DataType.JSON, DataType.ARRAY):
        try:
            return json.dumps(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"value is not JSON serialisable: {exc}") from exc

    if value is None:
        raise ValueError("string settings need a value")
    return str(value)
