"""
Classification of JSON-like values.

Configuration trees are merged by kind, not by ad hoc isinstance checks
scattered through the merge code. kind_of() classifies a value once and
the merger dispatches on the returned tag.
"""

from __future__ import annotations

import collections.abc as _abc
import enum as _enum
import typing as _typing

JsonScalar: _typing.TypeAlias = str | int | float | bool | None
JsonValue: _typing.TypeAlias = (
    JsonScalar | dict[str, "JsonValue"] | list["JsonValue"]
)


class ValueKind(_enum.Enum):
    """Structural kind of a JSON-like value."""

    OBJECT = "object"
    SEQUENCE = "sequence"
    SCALAR = "scalar"


def kind_of(value: _typing.Any) -> ValueKind:
    """
    Classify a value.

    Strings and bytes are scalars even though they are sequences in Python.
    """
    if isinstance(value, _abc.Mapping):
        return ValueKind.OBJECT
    if isinstance(value, (str, bytes, bytearray)):
        return ValueKind.SCALAR
    if isinstance(value, (list, tuple)):
        return ValueKind.SEQUENCE
    return ValueKind.SCALAR


def copy_value(value: _typing.Any) -> _typing.Any:
    """Deep-copy a JSON-like tree into plain dicts and lists."""
    kind = kind_of(value)
    if kind is ValueKind.OBJECT:
        return {k: copy_value(v) for k, v in value.items()}
    if kind is ValueKind.SEQUENCE:
        return [copy_value(v) for v in value]
    return value


def unique(items: _typing.Iterable[_typing.Any]) -> list[_typing.Any]:
    """
    Drop repeated items by value equality, keeping first occurrences.

    Works for unhashable items (dicts, lists) such as hook definitions.
    """
    result: list[_typing.Any] = []
    seen: set[_typing.Any] = set()
    for item in items:
        # True == 1 in Python but not in JSON
        key = (isinstance(item, bool), item)
        try:
            if key in seen:
                continue
            seen.add(key)
        except TypeError:
            if any(_same(item, existing) for existing in result):
                continue
        result.append(item)
    return result


def _same(a: _typing.Any, b: _typing.Any) -> bool:
    return isinstance(a, bool) == isinstance(b, bool) and a == b
