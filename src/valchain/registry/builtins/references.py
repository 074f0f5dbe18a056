"""Rules that look beyond the field itself: other fields and external context."""

from __future__ import annotations

import operator
from collections.abc import Callable
from typing import Any

from valchain.domain.types import RuleCategory
from valchain.registry.factories import ContextRuleOptions, RuleFactory


def _compare_field(
    value: Any,
    other: Any,
    compare: Callable[[Any, Any], bool] = operator.eq,
) -> bool:
    return bool(compare(value, other))


def _stitch(
    values: dict[str, Any],
    value: Any,
    record: Any,
    validate: Callable[[dict[str, Any], Any, Any], Any],
) -> Any:
    return validate(values, value, record)


def _from_context(
    validate: Callable[[Any, Any, Any], bool] | None = None,
    *,
    required: bool = False,
    fallback_to_valid: bool = True,
) -> ContextRuleOptions:
    return ContextRuleOptions(
        validate=validate,
        required=required,
        fallback_to_valid=fallback_to_valid,
    )


COMPARE_FIELD = RuleFactory(
    name="compareField",
    category=RuleCategory.FIELD_REFERENCE,
    impl=_compare_field,
    code="equals",
    message="Value must be equal to {field}",
)

STITCH = RuleFactory(
    name="stitch",
    category=RuleCategory.MULTI_FIELD_REFERENCE,
    impl=_stitch,
    code="stitch_validation_failed",
    message="Validation failed for fields: {fields}",
)

FROM_CONTEXT = RuleFactory(
    name="fromContext",
    category=RuleCategory.CONTEXT,
    impl=_from_context,
    code="context_validation",
    message="Context validation failed for {path}",
)

FACTORIES = (COMPARE_FIELD, STITCH, FROM_CONTEXT)
