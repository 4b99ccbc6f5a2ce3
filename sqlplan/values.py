"""SQL values, data types and helpers for comparing and formatting them.

Values are plain Python objects: ``None`` is SQL NULL, and ``bool``, ``int``,
``float`` and ``str`` hold booleans, 64-bit integers, floats and strings.
"""

from __future__ import annotations

import math
import struct
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Union

from .errors import InvalidValueError

Value = Union[None, bool, int, float, str]
Row = List[Value]


class DataType(Enum):
    """A column or value data type."""

    BOOLEAN = "BOOLEAN"
    INTEGER = "INTEGER"
    FLOAT = "FLOAT"
    STRING = "STRING"

    def __str__(self) -> str:
        return self.value


_NUMERIC = (DataType.INTEGER, DataType.FLOAT)


@dataclass(frozen=True)
class ResultColumn:
    """A column of a result set."""

    name: Optional[str] = None


def datatype_of(value: Value) -> Optional[DataType]:
    """Return the data type of a value, or None for NULL."""
    if value is None:
        return None
    if isinstance(value, bool):
        return DataType.BOOLEAN
    if isinstance(value, int):
        return DataType.INTEGER
    if isinstance(value, float):
        return DataType.FLOAT
    if isinstance(value, str):
        return DataType.STRING
    raise InvalidValueError(f"Unsupported value {value!r}")


def _format_float(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    text = format(Decimal(repr(value)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def format_value(value: Value) -> str:
    """Format a value for display."""
    kind = datatype_of(value)
    if kind is None:
        return "NULL"
    if kind is DataType.BOOLEAN:
        return "TRUE" if value else "FALSE"
    if kind is DataType.FLOAT:
        return _format_float(value)
    return str(value)


def _debug_value(value: Value) -> str:
    kind = datatype_of(value)
    if kind is None:
        return "Null"
    if kind is DataType.BOOLEAN:
        return f"Boolean({'true' if value else 'false'})"
    if kind is DataType.INTEGER:
        return f"Integer({value})"
    if kind is DataType.FLOAT:
        return f"Float({value!r})"
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'String("{escaped}")'


def compare_values(a: Value, b: Value) -> Optional[int]:
    """Compare two values, returning -1, 0 or 1, or None if incomparable.

    NULL sorts before every other value, and integers compare with floats.
    """
    ka, kb = datatype_of(a), datatype_of(b)
    if ka is None and kb is None:
        return 0
    if ka is None:
        return -1
    if kb is None:
        return 1
    if ka in _NUMERIC and kb in _NUMERIC:
        if ka is DataType.INTEGER and kb is DataType.INTEGER:
            x, y = a, b
        else:
            x, y = float(a), float(b)
    elif ka is kb:
        x, y = a, b
    else:
        return None
    if x < y:
        return -1
    if x > y:
        return 1
    if x == y:
        return 0
    return None


def value_key(value: Value) -> tuple:
    """Return a hashable key that distinguishes values by type as well as content."""
    kind = datatype_of(value)
    if kind is None:
        return (None,)
    if kind is DataType.FLOAT:
        return (kind, struct.pack(">d", value))
    return (kind, value)


def expect_boolean(value: Value) -> bool:
    """Return the value if it is a boolean, else raise."""
    if datatype_of(value) is not DataType.BOOLEAN:
        raise InvalidValueError(f"Not a boolean: {_debug_value(value)}")
    return value


def expect_integer(value: Value) -> int:
    """Return the value if it is an integer, else raise."""
    if datatype_of(value) is not DataType.INTEGER:
        raise InvalidValueError(f"Not an integer: {_debug_value(value)}")
    return value


def expect_float(value: Value) -> float:
    """Return the value if it is a float, else raise."""
    if datatype_of(value) is not DataType.FLOAT:
        raise InvalidValueError(f"Not a float: {_debug_value(value)}")
    return value


def expect_string(value: Value) -> str:
    """Return the value if it is a string, else raise."""
    if datatype_of(value) is not DataType.STRING:
        raise InvalidValueError(f"Not a string: {_debug_value(value)}")
    return value