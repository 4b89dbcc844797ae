"""Dynamically-typed formula values and their coercions.

A formula evaluates to exactly one of four shapes::

    Number(Decimal)   Boolean(bool)   Text(str)   Empty()

Arithmetic and comparison work on ``to_number``; logical negation works on
``to_boolean``.  Numbers are :class:`decimal.Decimal` throughout so that
sums like ``0.1 + 0.2`` stay exact.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Union


@dataclass(frozen=True)
class Number:
    value: Decimal


@dataclass(frozen=True)
class Boolean:
    value: bool


@dataclass(frozen=True)
class Text:
    value: str


@dataclass(frozen=True)
class Empty:
    pass


Value = Union[Number, Boolean, Text, Empty]

EMPTY = Empty()
ZERO = Decimal(0)
ONE = Decimal(1)

# Plain decimal text: optional sign, digits with an optional point.
_NUMERIC_TEXT_RE = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)\s*$")


def to_number(value: Value) -> Decimal:
    """Coerce *value* to a Decimal.  Never fails; unparseable text is 0."""
    if isinstance(value, Number):
        return value.value
    if isinstance(value, Boolean):
        return ONE if value.value else ZERO
    if isinstance(value, Text):
        if _NUMERIC_TEXT_RE.match(value.value):
            return Decimal(value.value.strip())
        return ZERO
    if isinstance(value, Empty):
        return ZERO
    raise TypeError(f"Not a formula value: {value!r}")


def to_boolean(value: Value) -> bool:
    """Coerce *value* to bool: booleans as-is, numbers by non-zero test."""
    if isinstance(value, Boolean):
        return value.value
    if isinstance(value, Number):
        return value.value != 0
    if isinstance(value, (Text, Empty)):
        return False
    raise TypeError(f"Not a formula value: {value!r}")


def from_raw(raw: Any) -> Value:
    """Wrap a plain Python value held by a host grid.

    ``None`` becomes ``Empty``; ``bool`` is checked before ``int``.
    """
    if isinstance(raw, (Number, Boolean, Text, Empty)):
        return raw
    if raw is None:
        return EMPTY
    if isinstance(raw, bool):
        return Boolean(raw)
    if isinstance(raw, Decimal):
        return Number(raw)
    if isinstance(raw, (int, float)):
        return Number(Decimal(str(raw)))
    if isinstance(raw, str):
        return Text(raw)
    raise TypeError(f"Cannot convert {type(raw).__name__} to a formula value")


def display_value(value: Value) -> str:
    """Plain text rendering of a value."""
    if isinstance(value, Number):
        return format(value.value.normalize(), "f")
    if isinstance(value, Boolean):
        return "TRUE" if value.value else "FALSE"
    if isinstance(value, Text):
        return value.value
    if isinstance(value, Empty):
        return ""
    raise TypeError(f"Not a formula value: {value!r}")
