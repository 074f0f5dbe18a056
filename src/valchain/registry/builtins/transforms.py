"""Builtin transforms. String transforms leave non-string values untouched."""

from __future__ import annotations

import copy
import math
from collections.abc import Callable
from typing import Any

from valchain.domain.types import RuleCategory, is_absent
from valchain.registry.factories import RuleFactory

_HTML_ESCAPES = str.maketrans(
    {
        "&": "&amp;",
        "<": "&lt;",
        ">": "&gt;",
        '"': "&quot;",
        "'": "&#x27;",
        "/": "&#x2F;",
    }
)


def _on_strings(fn: Callable[[str], Any]) -> Callable[[Any], Any]:
    def apply(value: Any) -> Any:
        return fn(value) if isinstance(value, str) else value

    return apply


def _transform(fn: Callable[[Any], Any]) -> Callable[[Any], Any]:
    return fn


def _trim() -> Callable[[Any], Any]:
    return _on_strings(str.strip)


def _lowercase() -> Callable[[Any], Any]:
    return _on_strings(str.lower)


def _uppercase() -> Callable[[Any], Any]:
    return _on_strings(str.upper)


def _replace(old: str, new: str, count: int = -1) -> Callable[[Any], Any]:
    return _on_strings(lambda s: s.replace(old, new, count))


def _sanitize() -> Callable[[Any], Any]:
    return _on_strings(lambda s: s.translate(_HTML_ESCAPES))


def _parse_number(s: str) -> Any:
    text = s.strip()
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return s
    return number if math.isfinite(number) else s


def _to_number() -> Callable[[Any], Any]:
    return _on_strings(_parse_number)


def _default_value(default: Any) -> Callable[[Any], Any]:
    def apply(value: Any) -> Any:
        if not is_absent(value):
            return value
        return default() if callable(default) else copy.deepcopy(default)

    return apply


def _transform_factory(name: str, impl: Callable[..., Any]) -> RuleFactory:
    return RuleFactory(name=name, category=RuleCategory.TRANSFORM, impl=impl, code="transform")


TRANSFORM = _transform_factory("transform", _transform)
TRIM = _transform_factory("trim", _trim)
LOWERCASE = _transform_factory("lowercase", _lowercase)
UPPERCASE = _transform_factory("uppercase", _uppercase)
REPLACE = _transform_factory("replace", _replace)
SANITIZE = _transform_factory("sanitize", _sanitize)
TO_NUMBER = _transform_factory("toNumber", _to_number)
DEFAULT_VALUE = _transform_factory("defaultValue", _default_value)

FACTORIES = (TRANSFORM, TRIM, LOWERCASE, UPPERCASE, REPLACE, SANITIZE, TO_NUMBER, DEFAULT_VALUE)
