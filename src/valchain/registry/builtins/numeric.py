"""Numeric rules. Only real numbers are checked; booleans are not numbers."""

from __future__ import annotations

import math
import numbers
from collections.abc import Callable
from fractions import Fraction
from typing import Any

from valchain.domain.types import RuleCategory
from valchain.registry.factories import RuleFactory


def is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def _on_numbers(test: Callable[[Any], bool]) -> Callable[[Any], bool]:
    def predicate(value: Any) -> bool:
        if not is_number(value):
            return True
        return test(value)

    return predicate


def _min(minimum: float) -> Callable[[Any], bool]:
    return _on_numbers(lambda n: n >= minimum)


def _max(maximum: float) -> Callable[[Any], bool]:
    return _on_numbers(lambda n: n <= maximum)


def _range(minimum: float, maximum: float) -> Callable[[Any], bool]:
    if minimum > maximum:
        msg = f"Range minimum {minimum} exceeds maximum {maximum}"
        raise ValueError(msg)
    return _on_numbers(lambda n: minimum <= n <= maximum)


def _positive() -> Callable[[Any], bool]:
    return _on_numbers(lambda n: n > 0)


def _negative() -> Callable[[Any], bool]:
    return _on_numbers(lambda n: n < 0)


def _is_finite(n: Any) -> bool:
    # ints and fractions are always finite, even past float range
    return isinstance(n, numbers.Rational) or math.isfinite(n)


def _integer() -> Callable[[Any], bool]:
    def test(n: Any) -> bool:
        if isinstance(n, numbers.Rational):
            return n.denominator == 1
        return math.isfinite(n) and float(n).is_integer()

    return _on_numbers(test)


def _finite() -> Callable[[Any], bool]:
    return _on_numbers(_is_finite)


def _multiple_of(divisor: float) -> Callable[[Any], bool]:
    if divisor == 0 or not _is_finite(divisor):
        msg = f"multipleOf divisor must be finite and non-zero, got {divisor!r}"
        raise ValueError(msg)

    def test(n: Any) -> bool:
        if isinstance(n, numbers.Rational) and isinstance(divisor, numbers.Rational):
            return n % divisor == 0
        if not _is_finite(n):
            return False
        try:
            quotient = n / divisor
        except OverflowError:
            quotient = math.inf
        if math.isfinite(quotient):
            return math.isclose(quotient, round(quotient), abs_tol=1e-9)
        return (Fraction(n) / Fraction(divisor)).denominator == 1

    return _on_numbers(test)


NUMBER_MIN = RuleFactory(
    name="numberMin",
    category=RuleCategory.STANDARD,
    impl=_min,
    code="too_small",
    message="{path} must be at least {minimum}",
)

NUMBER_MAX = RuleFactory(
    name="numberMax",
    category=RuleCategory.STANDARD,
    impl=_max,
    code="too_big",
    message="{path} must be at most {maximum}",
)

NUMBER_RANGE = RuleFactory(
    name="numberRange",
    category=RuleCategory.STANDARD,
    impl=_range,
    code="not_in_range",
    message="{path} must be between {minimum} and {maximum}",
)

NUMBER_POSITIVE = RuleFactory(
    name="numberPositive",
    category=RuleCategory.STANDARD,
    impl=_positive,
    code="not_positive",
    message="{path} must be positive",
)

NUMBER_NEGATIVE = RuleFactory(
    name="numberNegative",
    category=RuleCategory.STANDARD,
    impl=_negative,
    code="not_negative",
    message="{path} must be negative",
)

NUMBER_INTEGER = RuleFactory(
    name="numberInteger",
    category=RuleCategory.STANDARD,
    impl=_integer,
    code="not_integer",
    message="{path} must be an integer",
)

NUMBER_FINITE = RuleFactory(
    name="numberFinite",
    category=RuleCategory.STANDARD,
    impl=_finite,
    code="not_finite",
    message="{path} must be finite",
)

NUMBER_MULTIPLE_OF = RuleFactory(
    name="numberMultipleOf",
    category=RuleCategory.STANDARD,
    impl=_multiple_of,
    code="not_multiple_of",
    message="{path} must be a multiple of {divisor}",
)

RANGE = RuleFactory(
    name="range",
    category=RuleCategory.COMPOSABLE,
    impl=_range,
    code="not_in_range",
    message="{path} must be between {minimum} and {maximum}",
)

FACTORIES = (
    NUMBER_MIN,
    NUMBER_MAX,
    NUMBER_RANGE,
    NUMBER_POSITIVE,
    NUMBER_NEGATIVE,
    NUMBER_INTEGER,
    NUMBER_FINITE,
    NUMBER_MULTIPLE_OF,
    RANGE,
)
