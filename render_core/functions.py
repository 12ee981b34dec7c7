"""
functions.py
============
Pure, deterministic helper functions exposed to chart templates.

Every function is registered twice on the template environment:

- as a global, called with chart-template argument order
  (``{{ default("x", Values.tag) }}``);
- as a filter, where the piped value becomes the LAST argument
  (``{{ Values.tag | default("x") }}``), the way chart pipelines work.

``include`` and ``tpl`` are not here: they need the compiled namespace and
are bound per execution by the compiler.
"""

from __future__ import annotations

import functools
import json
import logging
import re
from typing import Any, Callable

import yaml

from .errors import RenderError
from .values import ValueKind, is_absent, kind_of_or_none, to_value

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Text coercion
# ---------------------------------------------------------------------------


def _plain_repr(value: Any) -> str:
    """Render a value the way chart authors expect to see it in output text."""
    kind = kind_of_or_none(value)
    if kind is ValueKind.NULL:
        return ""
    if kind is ValueKind.BOOL:
        return "true" if value else "false"
    if kind is ValueKind.NUMBER and isinstance(value, float):
        if value.is_integer() and abs(value) < 1e21:
            return str(int(value))
        return repr(value)
    if kind is ValueKind.SEQUENCE:
        return "[" + " ".join(_plain_repr(v) for v in value) + "]"
    if kind is ValueKind.MAPPING:
        return "map[" + " ".join(f"{k}:{_plain_repr(v)}" for k, v in sorted(value.items())) + "]"
    if kind is None:
        raise RenderError(f"cannot render value of type {type(value).__name__}")
    return str(value)


def _text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return _plain_repr(value)


def finalize_output(value: Any) -> Any:
    """Environment ``finalize`` hook: lowercase booleans, blank nil, bracketed containers."""
    if isinstance(value, str):
        return value
    return _plain_repr(value)


# ---------------------------------------------------------------------------
# Defaults and control helpers
# ---------------------------------------------------------------------------


def default(default_value: Any, value: Any) -> Any:
    """*default_value* if *value* is nil or ``""``. Numeric zero and False are kept."""
    return default_value if is_absent(value) else value


def required(message: Any, value: Any) -> Any:
    if is_absent(value):
        raise RenderError(_text(message))
    return value


def ternary(true_value: Any, false_value: Any, condition: Any) -> Any:
    return true_value if condition else false_value


def empty(value: Any) -> bool:
    kind = kind_of_or_none(value)
    if kind is ValueKind.NULL:
        return True
    if kind in (ValueKind.STRING, ValueKind.SEQUENCE, ValueKind.MAPPING):
        return len(value) == 0
    return False


def coalesce(*values: Any) -> Any:
    for value in values:
        if not is_absent(value):
            return value
    return None


def fail(message: Any) -> str:
    raise RenderError(_text(message))


# ---------------------------------------------------------------------------
# Structural conversion
# ---------------------------------------------------------------------------


def _structural(value: Any, func_name: str) -> Any:
    try:
        return to_value(value)
    except TypeError as exc:
        raise RenderError(f"{func_name}: {exc}") from exc


def to_yaml(value: Any) -> str:
    text = yaml.safe_dump(
        _structural(value, "toYaml"),
        default_flow_style=False,
        sort_keys=True,
        allow_unicode=True,
    )
    # Bare scalars come back with an explicit document end marker.
    if text.endswith("\n...\n"):
        text = text[: -len("...\n")]
    return text.removesuffix("\n")


def to_json(value: Any) -> str:
    return json.dumps(
        _structural(value, "toJson"), sort_keys=True, separators=(",", ":"), ensure_ascii=False
    )


def to_pretty_json(value: Any) -> str:
    return json.dumps(
        _structural(value, "toPrettyJson"), sort_keys=True, indent=2, ensure_ascii=False
    )


# ---------------------------------------------------------------------------
# Indentation
# ---------------------------------------------------------------------------


def indent(spaces: int, text: Any) -> str:
    prefix = " " * int(spaces)
    return "\n".join(prefix + line if line else line for line in _text(text).split("\n"))


def nindent(spaces: int, text: Any) -> str:
    return "\n" + indent(spaces, text)


# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------


def list_(*items: Any) -> list:
    return list(items)


def dict_(*pairs: Any) -> dict:
    """
    Build a mapping from alternating keys and values.

    Non-string keys are dropped together with their value, and a dangling
    final key is ignored. Never raises.
    """
    result: dict[str, Any] = {}
    for i in range(0, len(pairs) - 1, 2):
        key = pairs[i]
        if isinstance(key, str):
            result[key] = pairs[i + 1]
        else:
            logger.debug("dict: dropping pair with non-string key %r", key)
    return result


# ---------------------------------------------------------------------------
# Strings
# ---------------------------------------------------------------------------

_WORD_START_RE = re.compile(r"\b(\w)")


def upper(text: Any) -> str:
    return _text(text).upper()


def lower(text: Any) -> str:
    return _text(text).lower()


def title(text: Any) -> str:
    return _WORD_START_RE.sub(lambda m: m.group(1).upper(), _text(text))


def trim(text: Any) -> str:
    return _text(text).strip()


def trim_prefix(prefix: Any, text: Any) -> str:
    return _text(text).removeprefix(_text(prefix))


def trim_suffix(suffix: Any, text: Any) -> str:
    return _text(text).removesuffix(_text(suffix))


def contains(substring: Any, text: Any) -> bool:
    return _text(substring) in _text(text)


def has_prefix(prefix: Any, text: Any) -> bool:
    return _text(text).startswith(_text(prefix))


def has_suffix(suffix: Any, text: Any) -> bool:
    return _text(text).endswith(_text(suffix))


def replace(old: Any, new: Any, text: Any) -> str:
    return _text(text).replace(_text(old), _text(new))


def repeat(count: int, text: Any) -> str:
    return _text(text) * max(int(count), 0)


def join(separator: Any, items: Any) -> str:
    kind = kind_of_or_none(items)
    if kind is ValueKind.NULL:
        return ""
    if kind is ValueKind.STRING:
        return items
    return _text(separator).join(_text(item) for item in items)


def split(separator: Any, text: Any) -> list[str]:
    return _text(text).split(_text(separator))


def quote(text: Any) -> str:
    return json.dumps(_text(text), ensure_ascii=False)


def squote(text: Any) -> str:
    return f"'{_text(text)}'"


# ---------------------------------------------------------------------------
# printf
# ---------------------------------------------------------------------------

_VERB_RE = re.compile(r"%([-+# 0]*)(\d+)?(?:\.(\d+))?([a-zA-Z%])")
_MISSING = object()


def _bad_verb(verb: str, arg: Any) -> str:
    return f"%!{verb}({type(arg).__name__}={_plain_repr(arg)})"


def _format_verb(verb: str, arg: Any, flags: str, precision: str | None) -> str:
    kind = kind_of_or_none(arg)
    is_number = kind is ValueKind.NUMBER

    if verb in ("s", "v"):
        text = _plain_repr(arg) if kind is not ValueKind.NULL else "<nil>"
        return text[: int(precision)] if precision is not None and verb == "s" else text
    if verb == "q":
        return quote(arg)
    if verb == "t":
        return _plain_repr(arg) if kind is ValueKind.BOOL else _bad_verb(verb, arg)
    if verb == "d":
        if is_number and float(arg).is_integer():
            return f"{int(arg):{'+' if '+' in flags else ''}d}"
        return _bad_verb(verb, arg)
    if verb in ("f", "F", "e", "g"):
        if not is_number:
            return _bad_verb(verb, arg)
        digits = 6 if precision is None else int(precision)
        spec = verb.lower() if verb != "g" else "g"
        if verb == "g" and precision is None:
            return _plain_repr(float(arg))
        return f"{float(arg):{'+' if '+' in flags else ''}.{digits}{spec}}"
    if verb in ("x", "X"):
        if is_number and float(arg).is_integer():
            text = format(int(arg), "x")
        elif kind is ValueKind.STRING:
            text = arg.encode("utf-8").hex()
        else:
            return _bad_verb(verb, arg)
        return text.upper() if verb == "X" else text
    return _bad_verb(verb, arg)


def printf(format_string: Any, *args: Any) -> str:
    """
    Formatted printing with ``%v``-family verbs.

    Supports the ``%s %v %q %d %t %f %e %g %x %X %%`` verbs with the ``-``,
    ``+`` and ``0`` flags, width and precision. Missing and surplus arguments
    are reported inline (``%!d(MISSING)``, ``%!(EXTRA ...)``) rather than raised.
    """
    remaining = iter(args)

    def substitute(match: re.Match) -> str:
        flags, width, precision, verb = match.groups()
        if verb == "%":
            return "%"
        arg = next(remaining, _MISSING)
        if arg is _MISSING:
            return f"%!{verb}(MISSING)"
        text = _format_verb(verb, arg, flags, precision)
        if width is None or len(text) >= int(width):
            return text
        if "-" in flags:
            return text.ljust(int(width))
        if "0" in flags and kind_of_or_none(arg) is ValueKind.NUMBER:
            sign = text[0] if text[:1] in ("+", "-") else ""
            return sign + text[len(sign):].rjust(int(width) - len(sign), "0")
        return text.rjust(int(width))

    result = _VERB_RE.sub(substitute, _text(format_string))
    extra = list(remaining)
    if extra:
        result += "%!(EXTRA " + ", ".join(
            f"{type(a).__name__}={_plain_repr(a)}" for a in extra
        ) + ")"
    return result


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

FUNCTIONS: dict[str, Callable[..., Any]] = {
    # strings
    "upper": upper,
    "lower": lower,
    "title": title,
    "trim": trim,
    "trimPrefix": trim_prefix,
    "trimSuffix": trim_suffix,
    "contains": contains,
    "hasPrefix": has_prefix,
    "hasSuffix": has_suffix,
    "replace": replace,
    "repeat": repeat,
    "join": join,
    "split": split,
    "quote": quote,
    "squote": squote,
    "printf": printf,
    # defaults / control
    "default": default,
    "required": required,
    "ternary": ternary,
    "empty": empty,
    "coalesce": coalesce,
    "fail": fail,
    # structural
    "toYaml": to_yaml,
    "toJson": to_json,
    "toPrettyJson": to_pretty_json,
    "indent": indent,
    "nindent": nindent,
    "list": list_,
    "dict": dict_,
}


def piped(func: Callable[..., Any]) -> Callable[..., Any]:
    """Adapt *func* to filter form: ``value | f(a, b)`` calls ``func(a, b, value)``."""

    @functools.wraps(func)
    def as_filter(value: Any, *args: Any) -> Any:
        return func(*args, value)

    return as_filter


def install(environment) -> None:
    """Register the library on a Jinja environment as globals and filters."""
    environment.globals.update(FUNCTIONS)
    environment.filters.update({name: piped(func) for name, func in FUNCTIONS.items()})
