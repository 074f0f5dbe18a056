"""Array, object and boolean rules."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from typing import Any

from valchain.domain.types import RuleCategory
from valchain.registry.factories import RuleFactory


def _min_length(length: int) -> Callable[[Sequence[Any]], bool]:
    return lambda items: len(items) >= length


def _max_length(length: int) -> Callable[[Sequence[Any]], bool]:
    return lambda items: len(items) <= length


def _unique() -> Callable[[Sequence[Any]], bool]:
    def predicate(items: Sequence[Any]) -> bool:
        seen: list[Any] = []
        for item in items:
            if item in seen:
                return False
            seen.append(item)
        return True

    return predicate


def _includes(item: Any) -> Callable[[Sequence[Any]], bool]:
    return lambda items: item in items


def _contains(match: Callable[[Any], bool]) -> Callable[[Sequence[Any]], bool]:
    return lambda items: any(match(item) for item in items)


def _on_mappings(test: Callable[[Mapping[Any, Any]], bool]) -> Callable[[Any], bool]:
    def predicate(value: Any) -> bool:
        if not isinstance(value, Mapping):
            return True
        return test(value)

    return predicate


def _min_properties(count: int) -> Callable[[Any], bool]:
    return _on_mappings(lambda obj: len(obj) >= count)


def _max_properties(count: int) -> Callable[[Any], bool]:
    return _on_mappings(lambda obj: len(obj) <= count)


def _truthy() -> Callable[[Any], bool]:
    return lambda value: not isinstance(value, bool) or value


def _falsy() -> Callable[[Any], bool]:
    return lambda value: not isinstance(value, bool) or not value


ARRAY_MIN_LENGTH = RuleFactory(
    name="arrayMinLength",
    category=RuleCategory.ARRAY_ELEMENT,
    impl=_min_length,
    code="array_too_short",
    message="{path} must contain at least {length} items",
)

ARRAY_MAX_LENGTH = RuleFactory(
    name="arrayMaxLength",
    category=RuleCategory.ARRAY_ELEMENT,
    impl=_max_length,
    code="array_too_long",
    message="{path} must contain at most {length} items",
)

ARRAY_UNIQUE = RuleFactory(
    name="arrayUnique",
    category=RuleCategory.ARRAY_ELEMENT,
    impl=_unique,
    code="not_unique",
    message="{path} must not contain duplicates",
)

ARRAY_INCLUDES = RuleFactory(
    name="arrayIncludes",
    category=RuleCategory.ARRAY_ELEMENT,
    impl=_includes,
    code="array_missing_item",
    message="{path} must include {item!r}",
)

ARRAY_CONTAINS = RuleFactory(
    name="arrayContains",
    category=RuleCategory.ARRAY_ELEMENT,
    impl=_contains,
    code="array_no_match",
    message="{path} must contain a matching item",
)

OBJECT_MIN_PROPERTIES = RuleFactory(
    name="objectMinProperties",
    category=RuleCategory.STANDARD,
    impl=_min_properties,
    code="too_few_properties",
    message="{path} must have at least {count} properties",
)

OBJECT_MAX_PROPERTIES = RuleFactory(
    name="objectMaxProperties",
    category=RuleCategory.STANDARD,
    impl=_max_properties,
    code="too_many_properties",
    message="{path} must have at most {count} properties",
)

BOOLEAN_TRUTHY = RuleFactory(
    name="booleanTruthy",
    category=RuleCategory.STANDARD,
    impl=_truthy,
    code="not_true",
    message="{path} must be true",
)

BOOLEAN_FALSY = RuleFactory(
    name="booleanFalsy",
    category=RuleCategory.STANDARD,
    impl=_falsy,
    code="not_false",
    message="{path} must be false",
)

FACTORIES = (
    ARRAY_MIN_LENGTH,
    ARRAY_MAX_LENGTH,
    ARRAY_UNIQUE,
    ARRAY_INCLUDES,
    ARRAY_CONTAINS,
    OBJECT_MIN_PROPERTIES,
    OBJECT_MAX_PROPERTIES,
    BOOLEAN_TRUTHY,
    BOOLEAN_FALSY,
)
