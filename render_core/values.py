"""
values.py
=========
Closed value model for the open-ended data that flows through a render.

Chart values, ``dict``/``list`` results and everything handed to the
structural serialisers are normalised into exactly one of six kinds:

    Null | Bool | Number | String | Sequence | Mapping

Python's own ``None``/``bool``/``int``/``float``/``str``/``list``/``dict``
carry the payload; ``ValueKind`` is the tag. ``to_value`` is the single
gateway from arbitrary Python objects into that closed set.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any, Union

from jinja2 import Undefined

# Recursive in spirit: sequences and mappings hold Values again.
Value = Union[None, bool, int, float, str, list[Any], dict[str, Any]]


class ValueKind(str, Enum):
    NULL = "null"
    BOOL = "bool"
    NUMBER = "number"
    STRING = "string"
    SEQUENCE = "sequence"
    MAPPING = "mapping"


def kind_of(value: Any) -> ValueKind:
    """
    Return the tag for *value*.

    Jinja's ``Undefined`` (a missing key looked up in a template) is Null.
    Raises ``TypeError`` for anything outside the closed set.
    """
    if value is None or isinstance(value, Undefined):
        return ValueKind.NULL
    # bool before int: bool is an int subclass.
    if isinstance(value, bool):
        return ValueKind.BOOL
    if isinstance(value, (int, float)):
        return ValueKind.NUMBER
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, Mapping):
        return ValueKind.MAPPING
    if isinstance(value, (list, tuple)):
        return ValueKind.SEQUENCE
    raise TypeError(f"unsupported value type: {type(value).__name__}")


def to_value(obj: Any) -> Value:
    """
    Normalise *obj* recursively into the closed value set.

    - ``Undefined`` → ``None``
    - ``tuple`` → ``list``
    - ``bytes`` → ``str`` (UTF-8, undecodable bytes replaced)
    - mapping keys → ``str(key)``

    Raises
    ------
    TypeError
        If *obj* (or anything nested in it) cannot be represented.
    """
    if isinstance(obj, (bytes, bytearray)):
        return bytes(obj).decode("utf-8", errors="replace")

    kind = kind_of(obj)
    if kind is ValueKind.NULL:
        return None
    if kind is ValueKind.SEQUENCE:
        return [to_value(item) for item in obj]
    if kind is ValueKind.MAPPING:
        return {str(k): to_value(v) for k, v in obj.items()}
    return obj


def is_absent(value: Any) -> bool:
    """True for nil/undefined and the empty string: the "unset" test used by default/required/coalesce."""
    return kind_of_or_none(value) is ValueKind.NULL or value == ""


def kind_of_or_none(value: Any) -> ValueKind | None:
    """Like ``kind_of`` but returns None for out-of-set objects instead of raising."""
    try:
        return kind_of(value)
    except TypeError:
        return None
