"""Tests for the closed value model."""
import pytest
from jinja2 import ChainableUndefined

from render_core.values import ValueKind, is_absent, kind_of, to_value


@pytest.mark.parametrize(
    "value, kind",
    [
        (None, ValueKind.NULL),
        (ChainableUndefined(), ValueKind.NULL),
        (True, ValueKind.BOOL),
        (0, ValueKind.NUMBER),
        (1.5, ValueKind.NUMBER),
        ("", ValueKind.STRING),
        ([1], ValueKind.SEQUENCE),
        ((1, 2), ValueKind.SEQUENCE),
        ({"a": 1}, ValueKind.MAPPING),
    ],
)
def test_kind_of(value, kind) -> None:
    assert kind_of(value) is kind


def test_kind_of_rejects_foreign_objects() -> None:
    with pytest.raises(TypeError):
        kind_of(object())


def test_to_value_normalises_nested_structures() -> None:
    raw = {"a": (1, ChainableUndefined()), 2: {"b": b"bytes"}}
    assert to_value(raw) == {"a": [1, None], "2": {"b": "bytes"}}


def test_to_value_rejects_nested_foreign_objects() -> None:
    with pytest.raises(TypeError):
        to_value({"a": [object()]})


def test_is_absent() -> None:
    assert is_absent(None)
    assert is_absent("")
    assert is_absent(ChainableUndefined())
    assert not is_absent(0)
    assert not is_absent(False)
    assert not is_absent([])
