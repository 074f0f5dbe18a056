"""String rules. Non-string values pass; the type check and presence rules own them."""

from __future__ import annotations

import re
from collections.abc import Callable
from datetime import datetime
from typing import Any

from valchain.domain.types import RuleCategory
from valchain.registry.factories import RuleFactory

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_URL_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://[^\s/?#]+[^\s]*$")
_UUID_RE = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)


def _on_strings(test: Callable[[str], bool]) -> Callable[[Any], bool]:
    def predicate(value: Any) -> bool:
        if not isinstance(value, str):
            return True
        return test(value)

    return predicate


def _min(length: int) -> Callable[[Any], bool]:
    return _on_strings(lambda s: len(s) >= length)


def _max(length: int) -> Callable[[Any], bool]:
    return _on_strings(lambda s: len(s) <= length)


def _exact_length(length: int) -> Callable[[Any], bool]:
    return _on_strings(lambda s: len(s) == length)


def _pattern(pattern: str | re.Pattern[str], flags: int = 0) -> Callable[[Any], bool]:
    compiled = re.compile(pattern, flags) if isinstance(pattern, str) else pattern
    return _on_strings(lambda s: compiled.search(s) is not None)


def _email() -> Callable[[Any], bool]:
    return _on_strings(lambda s: _EMAIL_RE.match(s) is not None)


def _url() -> Callable[[Any], bool]:
    return _on_strings(lambda s: _URL_RE.match(s) is not None)


def _alphanumeric(allow_spaces: bool = False) -> Callable[[Any], bool]:
    def test(s: str) -> bool:
        text = s.replace(" ", "") if allow_spaces else s
        return text.isascii() and text.isalnum()

    return _on_strings(test)


def _starts_with(prefix: str) -> Callable[[Any], bool]:
    return _on_strings(lambda s: s.startswith(prefix))


def _ends_with(suffix: str) -> Callable[[Any], bool]:
    return _on_strings(lambda s: s.endswith(suffix))


def _uuid() -> Callable[[Any], bool]:
    return _on_strings(lambda s: _UUID_RE.match(s) is not None)


def _is_iso_datetime(s: str) -> bool:
    try:
        datetime.fromisoformat(s)
    except ValueError:
        return False
    return "T" in s or " " in s


def _datetime() -> Callable[[Any], bool]:
    return _on_strings(_is_iso_datetime)


STRING_MIN = RuleFactory(
    name="stringMin",
    category=RuleCategory.STANDARD,
    impl=_min,
    code="too_short",
    message="{path} must be at least {length} characters",
)

STRING_MAX = RuleFactory(
    name="stringMax",
    category=RuleCategory.STANDARD,
    impl=_max,
    code="too_long",
    message="{path} must be at most {length} characters",
)

STRING_EXACT_LENGTH = RuleFactory(
    name="stringExactLength",
    category=RuleCategory.STANDARD,
    impl=_exact_length,
    code="exact_length",
    message="{path} must be exactly {length} characters",
)

STRING_PATTERN = RuleFactory(
    name="stringPattern",
    category=RuleCategory.STANDARD,
    impl=_pattern,
    code="pattern",
    message="{path} does not match the required pattern",
)

STRING_EMAIL = RuleFactory(
    name="stringEmail",
    category=RuleCategory.STANDARD,
    impl=_email,
    code="invalid_email",
    message="{path} must be a valid email address",
)

STRING_URL = RuleFactory(
    name="stringUrl",
    category=RuleCategory.STANDARD,
    impl=_url,
    code="invalid_url",
    message="{path} must be a valid URL",
)

STRING_ALPHANUMERIC = RuleFactory(
    name="stringAlphanumeric",
    category=RuleCategory.STANDARD,
    impl=_alphanumeric,
    code="not_alphanumeric",
    message="{path} must contain only letters and digits",
)

STRING_STARTS_WITH = RuleFactory(
    name="stringStartsWith",
    category=RuleCategory.STANDARD,
    impl=_starts_with,
    code="invalid_prefix",
    message="{path} must start with {prefix!r}",
)

STRING_ENDS_WITH = RuleFactory(
    name="stringEndsWith",
    category=RuleCategory.STANDARD,
    impl=_ends_with,
    code="invalid_suffix",
    message="{path} must end with {suffix!r}",
)

UUID = RuleFactory(
    name="uuid",
    category=RuleCategory.STANDARD,
    impl=_uuid,
    code="invalid_uuid",
    message="{path} must be a valid UUID",
)

STRING_DATETIME = RuleFactory(
    name="stringDatetime",
    category=RuleCategory.STANDARD,
    impl=_datetime,
    code="invalid_datetime",
    message="{path} must be an ISO 8601 date-time",
)

PATTERN = RuleFactory(
    name="pattern",
    category=RuleCategory.COMPOSABLE,
    impl=_pattern,
    code="pattern",
    message="{path} does not match {pattern}",
)

FACTORIES = (
    STRING_MIN,
    STRING_MAX,
    STRING_EXACT_LENGTH,
    STRING_PATTERN,
    STRING_EMAIL,
    STRING_URL,
    STRING_ALPHANUMERIC,
    STRING_STARTS_WITH,
    STRING_ENDS_WITH,
    UUID,
    STRING_DATETIME,
    PATTERN,
)
