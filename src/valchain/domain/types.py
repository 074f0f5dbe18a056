"""Core enums and the absent-value sentinel."""

from __future__ import annotations

from enum import StrEnum
from typing import Any, Final


class RuleCategory(StrEnum):
    """Dispatch tag for rule factories."""

    STANDARD = "standard"
    CONDITIONAL = "conditional"
    FIELD_REFERENCE = "fieldReference"
    MULTI_FIELD_REFERENCE = "multiFieldReference"
    TRANSFORM = "transform"
    ARRAY_ELEMENT = "arrayElement"
    CONTEXT = "context"
    COMPOSABLE = "composable"


class ValueKind(StrEnum):
    """Declared value kind of a field; drives the implicit type check."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"
    DATE = "date"
    ANY = "any"
    UNION = "union"


class Strategy(StrEnum):
    """Execution strategy of a compiled field validator."""

    SKIP_AWARE = "skip_aware"
    FAST_SEPARATED = "fast_separated"


class SkipMode(StrEnum):
    """Short-circuit signal returned by conditional rules."""

    REMAINING_RULES = "remaining_rules"
    ALL = "all"


SELF_TARGET: Final = "self"
EACH_ELEMENT_TARGET: Final = "each-element"

DEFAULT_MAX_DEPTH: Final = 10


class _Missing:
    """Marker for a path with no value (distinct from ``None``)."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"

    def __copy__(self) -> _Missing:
        return self

    def __deepcopy__(self, memo: dict[int, Any]) -> _Missing:
        return self

    def __reduce__(self) -> str:
        return "MISSING"


MISSING: Final = _Missing()


def is_absent(value: Any) -> bool:
    """True for ``None`` and ``MISSING``."""
    return value is None or value is MISSING
