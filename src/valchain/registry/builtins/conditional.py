"""Conditional rules: presence and validation that depend on the whole record.

Every condition is a predicate over the record. The short-circuit signal
decides whether the rest of the chain runs:

- ``REMAINING_RULES`` stops the chain; transforms still run in parse mode.
- ``ALL`` stops everything and returns the original value untouched.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from valchain.domain.types import RuleCategory, SkipMode, is_absent
from valchain.registry.factories import ConditionalParts, RuleFactory

Condition = Callable[[Any], bool]


def _blank(value: Any) -> bool:
    return is_absent(value) or (isinstance(value, str) and not value)


def _required_if(condition: Condition) -> ConditionalParts:
    def check(value: Any, record: Any) -> bool:
        return not (condition(record) and _blank(value))

    def short_circuit(value: Any, record: Any) -> SkipMode | None:
        if is_absent(value) and not condition(record):
            return SkipMode.REMAINING_RULES
        return None

    return ConditionalParts(check=check, short_circuit=short_circuit)


def _optional_if(condition: Condition) -> ConditionalParts:
    def check(value: Any, record: Any) -> bool:
        return not (_blank(value) and not condition(record))

    def short_circuit(value: Any, record: Any) -> SkipMode | None:
        if is_absent(value) and condition(record):
            return SkipMode.REMAINING_RULES
        return None

    return ConditionalParts(check=check, short_circuit=short_circuit)


def _skip(condition: Condition) -> ConditionalParts:
    def short_circuit(value: Any, record: Any) -> SkipMode | None:
        return SkipMode.ALL if condition(record) else None

    return ConditionalParts(check=lambda value, record: True, short_circuit=short_circuit)


def _validate_if(condition: Condition) -> ConditionalParts:
    def short_circuit(value: Any, record: Any) -> SkipMode | None:
        return None if condition(record) else SkipMode.REMAINING_RULES

    return ConditionalParts(check=lambda value, record: True, short_circuit=short_circuit)


def _or_fail(condition: Condition) -> ConditionalParts:
    return ConditionalParts(check=lambda value, record: not condition(record))


REQUIRED_IF = RuleFactory(
    name="requiredIf",
    category=RuleCategory.CONDITIONAL,
    impl=_required_if,
    code="required_if",
    message="Field '{path}' is required when condition is met",
    handles_missing=True,
)

OPTIONAL_IF = RuleFactory(
    name="optionalIf",
    category=RuleCategory.CONDITIONAL,
    impl=_optional_if,
    code="optional_if",
    message="Field '{path}' is required unless condition is met",
    handles_missing=True,
)

SKIP = RuleFactory(
    name="skip",
    category=RuleCategory.CONDITIONAL,
    impl=_skip,
    code="skip",
    handles_missing=True,
)

VALIDATE_IF = RuleFactory(
    name="validateIf",
    category=RuleCategory.CONDITIONAL,
    impl=_validate_if,
    code="validate_if",
)

OR_FAIL = RuleFactory(
    name="orFail",
    category=RuleCategory.CONDITIONAL,
    impl=_or_fail,
    code="validation_error",
    message="Validation failed",
)

FACTORIES = (REQUIRED_IF, OPTIONAL_IF, SKIP, VALIDATE_IF, OR_FAIL)
