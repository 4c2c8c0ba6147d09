"""Runtime value model and validators for the Macaroni engine."""

from __future__ import annotations

import math
import numbers
from dataclasses import dataclass
from enum import Enum
from typing import Union

from .errors import MacaroniTypeError


@dataclass(frozen=True)
class Number:
    value: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", float(self.value))


@dataclass(frozen=True)
class Array:
    """Ordered, immutable sequence of values. Strings are arrays of byte codes."""

    items: tuple["Value", ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.items, tuple):
            object.__setattr__(self, "items", tuple(self.items))

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self):
        return iter(self.items)

    def __getitem__(self, index: int) -> "Value":
        return self.items[index]


Value = Union[Number, Array]


@dataclass(frozen=True)
class Slot:
    """Resolved operand: the value plus the variable name it was read from, if any."""

    value: Value
    name: str | None = None


class ValueKind(str, Enum):
    NUMBER = "number"
    ARRAY = "array"


def kind_of(value: Value) -> ValueKind:
    if isinstance(value, Number):
        return ValueKind.NUMBER
    if isinstance(value, Array):
        return ValueKind.ARRAY
    raise TypeError(f"unsupported runtime type {type(value).__name__}")


def validate_value(value: object, *, where: str = "value") -> None:
    if isinstance(value, Number):
        return
    if isinstance(value, Array):
        for idx, item in enumerate(value.items):
            validate_value(item, where=f"{where}[{idx}]")
        return
    raise TypeError(f"{where} has unsupported runtime type {type(value).__name__}")


def is_truthy(value: Value) -> bool:
    if isinstance(value, Array):
        return len(value) > 0
    return value.value != 0


def string_to_array(text: str) -> Array:
    return Array(tuple(Number(ord(ch) & 0xFF) for ch in text))


def _byte_of(code: float) -> int:
    # Saturating float-to-byte conversion.
    if math.isnan(code):
        return 0
    return int(min(255.0, max(0.0, code)))


def array_to_string(value: Value, *, where: str = "value") -> str:
    if not isinstance(value, Array):
        raise MacaroniTypeError(f"{where} requires an Array, got a Number")
    chars: list[str] = []
    for item in value:
        if not isinstance(item, Number):
            raise MacaroniTypeError(f"{where} requires an Array of Numbers, found a nested Array")
        chars.append(chr(_byte_of(item.value)))
    return "".join(chars)


def to_python(value: Value):
    """Convert to plain floats and nested lists."""
    if isinstance(value, Number):
        return value.value
    return [to_python(item) for item in value]


def from_python(obj) -> Value:
    if isinstance(obj, (Number, Array)):
        return obj
    if isinstance(obj, str):
        return string_to_array(obj)
    if isinstance(obj, bool) or isinstance(obj, numbers.Real):
        return Number(float(obj))
    if isinstance(obj, (list, tuple)):
        return Array(tuple(from_python(item) for item in obj))
    raise TypeError(f"cannot convert {type(obj).__name__} to a Macaroni value")


def _format_number(n: float) -> str:
    if math.isnan(n):
        return "NaN"
    if math.isinf(n):
        return "inf" if n > 0 else "-inf"
    if n.is_integer():
        return str(int(n))
    return repr(n)


def format_value(value: Value) -> str:
    if isinstance(value, Number):
        return _format_number(value.value)
    return "[" + ", ".join(format_value(item) for item in value) + "]"
