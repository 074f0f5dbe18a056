"""Implicit type-check rule injected at the head of every field chain.

``None`` and ``MISSING`` pass, so presence rules own those cases.
"""

from __future__ import annotations

import math
import numbers
from collections.abc import Callable, Mapping, Sequence
from datetime import date
from typing import Any

from valchain.domain.rules import Rule, Scope, static_message
from valchain.domain.types import MISSING, RuleCategory, ValueKind

TYPE_CODE = "invalid_type"


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        return False
    return not (isinstance(value, float) and math.isnan(value))


def _is_array(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, str | bytes | bytearray)


_KIND_TESTS: dict[ValueKind, Callable[[Any], bool]] = {
    ValueKind.STRING: lambda value: isinstance(value, str),
    ValueKind.NUMBER: _is_number,
    ValueKind.BOOLEAN: lambda value: isinstance(value, bool),
    ValueKind.ARRAY: _is_array,
    ValueKind.OBJECT: lambda value: isinstance(value, Mapping),
    ValueKind.DATE: lambda value: isinstance(value, date),
}


def type_check_rule(kind: ValueKind) -> Rule | None:
    """Return the type rule for *kind*, or None for ``any``/``union``."""
    test = _KIND_TESTS.get(kind)
    if test is None:
        return None

    def check(value: Any, scope: Scope) -> bool:
        if value is None or value is MISSING:
            return True
        return test(value)

    article = "an" if kind.value[0] in "aeiou" else "a"
    return Rule(
        name=f"type:{kind.value}",
        category=RuleCategory.STANDARD,
        check=check,
        code=TYPE_CODE,
        message=static_message(f"Value must be {article} {kind.value}"),
    )
