"""Presence, membership and recursion rules shared by every value kind."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any

from valchain.domain.rules import RecursiveSpec
from valchain.domain.types import DEFAULT_MAX_DEPTH, MISSING, SELF_TARGET, RuleCategory
from valchain.registry.factories import RuleFactory


def _required(allow_null: bool = False) -> Callable[[Any], bool]:
    def predicate(value: Any) -> bool:
        if value is MISSING or (isinstance(value, str) and not value):
            return False
        if value is None:
            return allow_null
        return True

    return predicate


def _optional() -> Callable[[Any], bool]:
    return lambda value: value is not None


def _nullable() -> Callable[[Any], bool]:
    return lambda value: True


def _one_of(choices: Iterable[Any]) -> Callable[[Any], bool]:
    allowed = tuple(choices)
    return lambda value: any(value == choice for choice in allowed)


def _literal(expected: Any) -> Callable[[Any], bool]:
    return lambda value: type(value) is type(expected) and value == expected


def _custom(fn: Callable[[Any], bool]) -> Callable[[Any], bool]:
    if not callable(fn):
        msg = "custom() needs a callable predicate"
        raise TypeError(msg)
    return fn


def _recursively(
    target: str = SELF_TARGET,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> Callable[[Any], bool]:
    if max_depth < 1:
        msg = "recursively() needs max_depth >= 1"
        raise ValueError(msg)
    return lambda value: True


def _attach_recursive(params: dict[str, Any]) -> dict[str, Any]:
    return {"recursive": RecursiveSpec(target=params["target"], max_depth=params["max_depth"])}


REQUIRED = RuleFactory(
    name="required",
    category=RuleCategory.STANDARD,
    impl=_required,
    code="required",
    message="Field '{path}' is required",
    handles_missing=True,
)

OPTIONAL = RuleFactory(
    name="optional",
    category=RuleCategory.STANDARD,
    impl=_optional,
    code="optional",
    message="{path} cannot be null (omit the field instead)",
    skip_for_missing=True,
    marks_optional=True,
)

NULLABLE = RuleFactory(
    name="nullable",
    category=RuleCategory.STANDARD,
    impl=_nullable,
    code="nullable",
    skip_for_null=True,
)

ONE_OF = RuleFactory(
    name="oneOf",
    category=RuleCategory.STANDARD,
    impl=_one_of,
    code="one_of",
    message="{path} must be one of {choices}",
)

LITERAL = RuleFactory(
    name="literal",
    category=RuleCategory.STANDARD,
    impl=_literal,
    code="literal",
    message="{path} must be {expected!r}",
)

CUSTOM = RuleFactory(
    name="custom",
    category=RuleCategory.STANDARD,
    impl=_custom,
    code="custom",
    message="{path} failed custom validation",
)

RECURSIVELY = RuleFactory(
    name="recursively",
    category=RuleCategory.STANDARD,
    impl=_recursively,
    code="recursive",
    attach=_attach_recursive,
)

FACTORIES = (REQUIRED, OPTIONAL, NULLABLE, ONE_OF, LITERAL, CUSTOM, RECURSIVELY)
