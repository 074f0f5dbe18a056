"""Tests for per-category rule building through the registry."""

from __future__ import annotations

import operator
from typing import Any

import pytest

from valchain.domain.errors import RuleArgumentError, UnknownRuleError
from valchain.domain.rules import Rule, Scope, Transform
from valchain.domain.types import MISSING, RuleCategory, SkipMode
from valchain.registry.factories import (
    MISSING_CONTEXT_CODE,
    MISSING_CONTEXT_MESSAGE,
    Composer,
    ConditionalParts,
    RuleFactory,
)
from valchain.registry.registry import RuleRegistry


class TestStandard:
    def test_check_and_error(self, registry: RuleRegistry, scope: Scope) -> None:
        rule = registry.rule("stringMin", 3)
        assert rule.category is RuleCategory.STANDARD
        assert rule.check("abc", scope)
        assert not rule.check("ab", scope)
        error = rule.error("ab", "name", scope)
        assert error.code == "too_short"
        assert error.message == "name must be at least 3 characters"

    def test_keyword_arguments(self, registry: RuleRegistry, scope: Scope) -> None:
        rule = registry.rule("stringMin", length=2)
        assert not rule.check("a", scope)

    def test_code_and_message_override(self, registry: RuleRegistry, scope: Scope) -> None:
        rule = registry.rule("stringMin", 3, code="short", message="{path} needs {length}")
        error = rule.error("ab", "name", scope)
        assert error.code == "short"
        assert error.message == "name needs 3"

    def test_callable_message(self, registry: RuleRegistry, scope: Scope) -> None:
        rule = registry.rule("stringMin", 3, message=lambda value, path, s: f"{path}={value!r}")
        assert rule.error("ab", "name", scope).message == "name='ab'"

    def test_unknown_template_key_left_verbatim(
        self, registry: RuleRegistry, scope: Scope
    ) -> None:
        rule = registry.rule("stringMin", 1, message="{path} {nope}")
        assert rule.error("x", "name", scope).message == "name {nope}"

    @pytest.mark.parametrize(
        ("args", "kwargs"),
        [((), {}), ((1, 2), {}), ((), {"size": 1})],
    )
    def test_bad_arguments(
        self, registry: RuleRegistry, args: tuple[Any, ...], kwargs: dict[str, Any]
    ) -> None:
        with pytest.raises(RuleArgumentError):
            registry.rule("stringMin", *args, **kwargs)

    def test_unknown_rule(self, registry: RuleRegistry) -> None:
        with pytest.raises(UnknownRuleError):
            registry.rule("noSuchRule")


class TestConditional:
    def test_required_if(self, registry: RuleRegistry) -> None:
        rule = registry.rule("requiredIf", lambda record: record.get("kind") == "company")
        company = Scope(record={"kind": "company"})
        person = Scope(record={"kind": "person"})
        assert not rule.check(MISSING, company)
        assert rule.check(MISSING, person)
        assert rule.short_circuit is not None
        assert rule.short_circuit(MISSING, person) is SkipMode.REMAINING_RULES
        assert rule.short_circuit(MISSING, company) is None
        assert rule.can_short_circuit

    def test_condition_must_be_callable(self, registry: RuleRegistry) -> None:
        with pytest.raises(RuleArgumentError, match="callable condition"):
            registry.rule("requiredIf", True)

    def test_custom_conditional_factory(self) -> None:
        def impl(condition: Any) -> ConditionalParts:
            return ConditionalParts(check=lambda value, record: value == condition(record))

        registry = RuleRegistry(
            [RuleFactory(name="matches", category=RuleCategory.CONDITIONAL, impl=impl)]
        )
        rule = registry.rule("matches", lambda record: record["expected"])
        assert rule.check(1, Scope(record={"expected": 1}))
        assert not rule.check(2, Scope(record={"expected": 1}))
        assert rule.short_circuit is None


class TestFieldReference:
    def test_equals_other_field(self, registry: RuleRegistry) -> None:
        rule = registry.rule("compareField", "password")
        record = Scope(record={"password": "s3cret"})
        assert rule.check("s3cret", record)
        assert not rule.check("other", record)
        error = rule.error("other", "confirm", record)
        assert error.code == "equals"
        assert error.message == "Value must be equal to password"

    def test_custom_comparison(self, registry: RuleRegistry) -> None:
        rule = registry.rule("compareField", "start", operator.gt)
        assert rule.check(5, Scope(record={"start": 1}))
        assert not rule.check(0, Scope(record={"start": 1}))

    def test_nested_reference(self, registry: RuleRegistry) -> None:
        rule = registry.rule("compareField", "limits.max", operator.le)
        assert rule.check(3, Scope(record={"limits": {"max": 5}}))

    @pytest.mark.parametrize("args", [(), (5,)])
    def test_path_required_first(self, registry: RuleRegistry, args: tuple[Any, ...]) -> None:
        with pytest.raises(RuleArgumentError):
            registry.rule("compareField", *args)


class TestMultiFieldReference:
    def test_bool_verdict(self, registry: RuleRegistry) -> None:
        rule = registry.rule(
            "stitch",
            ["low", "high"],
            lambda values, value, record: values["low"] < values["high"],
        )
        assert rule.check(None, Scope(record={"low": 1, "high": 2}))
        failed = Scope(record={"low": 3, "high": 2})
        assert not rule.check(None, failed)
        error = rule.error(None, "range", failed)
        assert error.code == "stitch_validation_failed"
        assert error.message == "Validation failed for fields: low, high"

    def test_tuple_verdict_supplies_message(self, registry: RuleRegistry) -> None:
        rule = registry.rule(
            "stitch",
            ["low", "high"],
            lambda values, value, record: (False, "low must be below high"),
        )
        assert rule.error(None, "range", Scope(record={})).message == "low must be below high"

    def test_mapping_verdict(self, registry: RuleRegistry) -> None:
        rule = registry.rule(
            "stitch",
            ["a"],
            lambda values, value, record: {"valid": values["a"] is MISSING, "message": None},
        )
        assert rule.check(None, Scope(record={}))
        assert not rule.check(None, Scope(record={"a": 1}))

    def test_explicit_message_wins(self, registry: RuleRegistry) -> None:
        rule = registry.rule(
            "stitch",
            ["a"],
            lambda values, value, record: (False, "from validator"),
            message="explicit",
        )
        assert rule.error(None, "x", Scope(record={})).message == "explicit"

    @pytest.mark.parametrize("paths", [[], "ab"])
    def test_paths_required(self, registry: RuleRegistry, paths: Any) -> None:
        with pytest.raises(RuleArgumentError):
            registry.rule("stitch", paths, lambda values, value, record: True)


class TestTransform:
    def test_builds_transform(self, registry: RuleRegistry) -> None:
        trim = registry.transform("trim")
        assert isinstance(trim, Transform)
        assert trim("  x ") == "x"

    def test_not_a_rule(self, registry: RuleRegistry) -> None:
        with pytest.raises(TypeError):
            registry.rule("trim")

    def test_rule_is_not_a_transform(self, registry: RuleRegistry) -> None:
        with pytest.raises(TypeError):
            registry.transform("stringMin", 1)


class TestArrayElement:
    def test_checks_sequences(self, registry: RuleRegistry, scope: Scope) -> None:
        rule = registry.rule("arrayMinLength", 2)
        assert not rule.check([1], scope)
        assert rule.check([1, 2], scope)

    @pytest.mark.parametrize("value", ["abc", 5, None, MISSING, {"a": 1}])
    def test_non_sequences_pass(self, registry: RuleRegistry, scope: Scope, value: Any) -> None:
        assert registry.rule("arrayMinLength", 2).check(value, scope)


class TestContext:
    @staticmethod
    def _allowed(value: Any, context: Any, record: Any) -> bool:
        return value in context["allowed"]

    def test_with_context(self, registry: RuleRegistry) -> None:
        rule = registry.rule("fromContext", self._allowed)
        with_context = Scope(record={}, context={"allowed": ["EUR"]})
        assert rule.check("EUR", with_context)
        assert not rule.check("USD", with_context)
        assert rule.error("USD", "currency", with_context).code == "context_validation"

    def test_falls_back_to_valid(self, registry: RuleRegistry, scope: Scope) -> None:
        assert registry.rule("fromContext", self._allowed).check("USD", scope)

    def test_required_context(self, registry: RuleRegistry, scope: Scope) -> None:
        rule = registry.rule("fromContext", self._allowed, required=True)
        assert not rule.check("USD", scope)
        error = rule.error("USD", "currency", scope)
        assert error.code == MISSING_CONTEXT_CODE
        assert error.message == MISSING_CONTEXT_MESSAGE

    def test_no_fallback(self, registry: RuleRegistry, scope: Scope) -> None:
        rule = registry.rule("fromContext", self._allowed, fallback_to_valid=False)
        assert not rule.check("EUR", scope)
        assert rule.error("EUR", "currency", scope).code == MISSING_CONTEXT_CODE

    def test_presence_only(self, registry: RuleRegistry) -> None:
        rule = registry.rule("fromContext", required=True)
        assert rule.check("x", Scope(record={}, context={}))
        assert not rule.check("x", Scope(record={}))


class TestComposable:
    def test_add_returns_new_composer(self, registry: RuleRegistry) -> None:
        base = registry.composer("range")
        extended = base.add(0, 10)
        assert isinstance(extended, Composer)
        assert len(base) == 0
        assert len(extended) == 1

    def test_one_rule_per_call(self, registry: RuleRegistry, scope: Scope) -> None:
        rules = registry.composer("range").add(0, 10).add(5, 20, code="outer").finalize()
        assert len(rules) == 2
        assert all(isinstance(rule, Rule) for rule in rules)
        assert [rule.code for rule in rules] == ["not_in_range", "outer"]
        assert [rule.check(15, scope) for rule in rules] == [False, True]

    def test_finalize_empty(self, registry: RuleRegistry) -> None:
        with pytest.raises(RuleArgumentError):
            registry.composer("range").finalize()

    def test_arguments_go_through_add(self, registry: RuleRegistry) -> None:
        with pytest.raises(RuleArgumentError):
            registry.create("range", 1, 2)

    def test_not_a_rule(self, registry: RuleRegistry) -> None:
        with pytest.raises(TypeError):
            registry.rule("range")

    def test_pattern_composer(self, registry: RuleRegistry, scope: Scope) -> None:
        rules = registry.composer("pattern").add(r"[A-Z]").add(r"\d").finalize()
        assert [rule.check("Ab", scope) for rule in rules] == [True, False]
        assert rules[1].error("Ab", "pw", scope).message == r"pw does not match \d"
