"""Tests for the implicit type-check rule."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

import pytest

from valchain.domain.rules import Scope
from valchain.domain.types import MISSING, ValueKind
from valchain.engine.typecheck import TYPE_CODE, type_check_rule


class TestTypeCheckRule:
    @pytest.mark.parametrize("kind", [ValueKind.ANY, ValueKind.UNION])
    def test_no_rule_for_open_kinds(self, kind: ValueKind) -> None:
        assert type_check_rule(kind) is None

    @pytest.mark.parametrize(
        ("kind", "value", "expected"),
        [
            (ValueKind.STRING, "x", True),
            (ValueKind.STRING, 1, False),
            (ValueKind.NUMBER, 1, True),
            (ValueKind.NUMBER, 1.5, True),
            (ValueKind.NUMBER, True, False),
            (ValueKind.NUMBER, float("nan"), False),
            (ValueKind.NUMBER, "1", False),
            (ValueKind.BOOLEAN, False, True),
            (ValueKind.BOOLEAN, 0, False),
            (ValueKind.ARRAY, [1], True),
            (ValueKind.ARRAY, (1,), True),
            (ValueKind.ARRAY, "ab", False),
            (ValueKind.ARRAY, {"a": 1}, False),
            (ValueKind.OBJECT, {}, True),
            (ValueKind.OBJECT, [], False),
            (ValueKind.DATE, date(2024, 1, 2), True),
            (ValueKind.DATE, datetime(2024, 1, 2, 3, 4), True),
            (ValueKind.DATE, "2024-01-02", False),
        ],
    )
    def test_check(self, kind: ValueKind, value: Any, expected: bool) -> None:
        rule = type_check_rule(kind)
        assert rule is not None
        assert rule.check(value, Scope(record={})) is expected

    @pytest.mark.parametrize("kind", [ValueKind.STRING, ValueKind.NUMBER, ValueKind.OBJECT])
    @pytest.mark.parametrize("value", [None, MISSING])
    def test_absent_values_pass(self, kind: ValueKind, value: Any) -> None:
        rule = type_check_rule(kind)
        assert rule is not None
        assert rule.check(value, Scope(record={}))

    @pytest.mark.parametrize(
        ("kind", "message"),
        [
            (ValueKind.NUMBER, "Value must be a number"),
            (ValueKind.ARRAY, "Value must be an array"),
            (ValueKind.OBJECT, "Value must be an object"),
        ],
    )
    def test_error(self, kind: ValueKind, message: str) -> None:
        rule = type_check_rule(kind)
        assert rule is not None
        error = rule.error("x", "field", Scope(record={}))
        assert error.code == TYPE_CODE == "invalid_type"
        assert error.message == message
        assert not rule.can_short_circuit
