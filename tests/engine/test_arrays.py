"""Tests for array hierarchy construction and batch processing."""

from __future__ import annotations

import copy
from collections.abc import Sequence
from typing import Any

from valchain.config.models import EngineConfig
from valchain.domain.fields import FieldDefinition
from valchain.domain.rules import Scope
from valchain.engine.arrays import ArrayBatchDescriptor, ArrayBatchProcessor, build_hierarchy
from valchain.engine.compiler import compile_field
from valchain.registry.registry import RuleRegistry


def _processor(
    definitions: Sequence[FieldDefinition],
    root: str,
) -> ArrayBatchProcessor:
    validators = {d.path: compile_field(d, EngineConfig()) for d in definitions}
    (descriptor,) = [d for d in build_hierarchy(definitions) if d.array_path == root]
    return ArrayBatchProcessor(descriptor, validators.__getitem__)


class TestBuildHierarchy:
    def _roots(self) -> dict[str, ArrayBatchDescriptor]:
        definitions = [
            FieldDefinition("title"),
            FieldDefinition("items[*].name"),
            FieldDefinition("orders.*.id"),
            FieldDefinition("orders[*].items[*].sku"),
            FieldDefinition("matrix[*][*]"),
        ]
        return {root.array_path: root for root in build_hierarchy(definitions)}

    def test_roots_in_declaration_order(self) -> None:
        assert list(self._roots()) == ["items", "orders", "matrix"]

    def test_element_fields(self) -> None:
        items = self._roots()["items"]
        assert [e.relative_path for e in items.element_fields] == ["name"]
        assert items.depth == 0
        assert items.parent_path is None
        assert items.child_arrays == ()

    def test_nested_array(self) -> None:
        orders = self._roots()["orders"]
        child = orders.child("items")
        assert child is not None
        assert child.array_path == "orders[*].items"
        assert child.depth == 1
        assert child.parent_path == "orders"
        assert [e.relative_path for e in child.element_fields] == ["sku"]
        assert orders.child("nope") is None

    def test_array_of_arrays(self) -> None:
        matrix = self._roots()["matrix"]
        assert matrix.element_fields == ()
        child = matrix.child("")
        assert child is not None
        assert child.array_path == "matrix[*]"
        assert [e.relative_path for e in child.element_fields] == [""]

    def test_covered_paths(self) -> None:
        orders = self._roots()["orders"]
        assert orders.covered_paths() == ["orders[*].id", "orders[*].items[*].sku"]

    def test_intermediate_arrays_created(self) -> None:
        (root,) = build_hierarchy([FieldDefinition("a[*].b[*].c")])
        assert root.array_path == "a"
        assert root.element_fields == ()
        child = root.child("b")
        assert child is not None
        assert child.covered_paths() == ["a[*].b[*].c"]

    def test_plain_definitions_only(self) -> None:
        assert build_hierarchy([FieldDefinition("a.b")]) == ()


class TestArrayBatchProcessor:
    def test_valid_array(self, registry: RuleRegistry, scope: Scope) -> None:
        definitions = [FieldDefinition.of("items[*].name", "string", registry.rule("stringMin", 1))]
        processor = _processor(definitions, "items")
        assert processor.process([{"name": "a"}, {"name": "b"}], scope) == []

    def test_empty_array(self, scope: Scope) -> None:
        processor = _processor([FieldDefinition.of("items[*].name", "string")], "items")
        assert processor.process([], scope) == []

    def test_missing_element_field(self, scope: Scope) -> None:
        processor = _processor([FieldDefinition.of("items[*].name", "string")], "items")
        errors = processor.process([{"name": "a"}, {}], scope)
        assert [(e.path, e.code) for e in errors] == [("items[1].name", "required")]
        assert errors[0].message == "Field 'items[1].name' is required"

    def test_optional_element_field(self, registry: RuleRegistry, scope: Scope) -> None:
        definitions = [FieldDefinition.of("items[*].name", "string", registry.rule("optional"))]
        processor = _processor(definitions, "items")
        assert processor.process([{}, {"name": "x"}], scope) == []

    def test_abort_early(self, scope: Scope) -> None:
        processor = _processor([FieldDefinition.of("items[*].qty", "number")], "items")
        data = [{"qty": "a"}, {"qty": 1}, {"qty": "b"}]
        assert len(processor.process(data, scope)) == 1
        errors = processor.process(data, scope, abort_early=False)
        assert [e.path for e in errors] == ["items[0].qty", "items[2].qty"]

    def test_index_prefix(self, scope: Scope) -> None:
        processor = _processor([FieldDefinition.of("items[*].qty", "number")], "items")
        errors = processor.process([{"qty": "a"}], scope, index_prefix="cart.items")
        assert errors[0].path == "cart.items[0].qty"

    def test_nested_paths(self, scope: Scope) -> None:
        definitions = [
            FieldDefinition.of("orders[*].id", "number"),
            FieldDefinition.of("orders[*].items[*].sku", "string"),
        ]
        processor = _processor(definitions, "orders")
        data = [
            {"id": 1, "items": [{"sku": "a"}]},
            {"id": 2, "items": [{"sku": 7}, {"sku": "b"}]},
        ]
        errors = processor.process(data, scope, abort_early=False)
        assert [(e.path, e.code) for e in errors] == [("orders[1].items[0].sku", "invalid_type")]

    def test_failed_child_array_field_skips_elements(
        self, registry: RuleRegistry, scope: Scope
    ) -> None:
        definitions = [
            FieldDefinition.of("orders[*].items", "array", registry.rule("arrayMaxLength", 1)),
            FieldDefinition.of("orders[*].items[*].sku", "string"),
        ]
        processor = _processor(definitions, "orders")
        data = [{"items": [{"sku": 1}, {"sku": 2}]}]
        errors = processor.process(data, scope, abort_early=False)
        assert [(e.path, e.code) for e in errors] == [("orders[0].items", "array_too_long")]

    def test_array_of_arrays(self, scope: Scope) -> None:
        processor = _processor([FieldDefinition.of("matrix[*][*]", "number")], "matrix")
        errors = processor.process([[1, 2], [3, "x"]], scope)
        assert [(e.path, e.code) for e in errors] == [("matrix[1][1]", "invalid_type")]

    def test_whole_element_definition(self, registry: RuleRegistry, scope: Scope) -> None:
        definitions = [FieldDefinition.of("tags[*]", "string", registry.rule("stringMin", 2))]
        processor = _processor(definitions, "tags")
        errors = processor.process(["ok", "x"], scope)
        assert [e.path for e in errors] == ["tags[1]"]


class TestArrayParse:
    def test_writes_into_output_copy(self, registry: RuleRegistry, scope: Scope) -> None:
        definitions = [
            FieldDefinition.of("items[*].name", "string", registry.transform("trim")),
        ]
        processor = _processor(definitions, "items")
        data = [{"name": " a "}, {"name": "b "}]
        out: list[Any] = copy.deepcopy(data)
        assert processor.process(data, scope, parse=True, out=out) == []
        assert out == [{"name": "a"}, {"name": "b"}]
        assert data == [{"name": " a "}, {"name": "b "}]

    def test_whole_element_transform(self, registry: RuleRegistry, scope: Scope) -> None:
        definitions = [FieldDefinition.of("tags[*]", "string", registry.transform("uppercase"))]
        processor = _processor(definitions, "tags")
        out = ["a", "b"]
        processor.process(["a", "b"], scope, parse=True, out=out)
        assert out == ["A", "B"]

    def test_nested_transform(self, registry: RuleRegistry, scope: Scope) -> None:
        definitions = [
            FieldDefinition.of("orders[*].items[*].sku", "string", registry.transform("lowercase")),
        ]
        processor = _processor(definitions, "orders")
        data = [{"items": [{"sku": "AB"}]}, {"items": [{"sku": "Cd"}]}]
        out = copy.deepcopy(data)
        processor.process(data, scope, parse=True, out=out)
        assert out == [{"items": [{"sku": "ab"}]}, {"items": [{"sku": "cd"}]}]

    def test_validate_mode_writes_nothing(self, registry: RuleRegistry, scope: Scope) -> None:
        definitions = [FieldDefinition.of("tags[*]", "string", registry.transform("uppercase"))]
        processor = _processor(definitions, "tags")
        out = ["a"]
        processor.process(["a"], scope, out=out)
        assert out == ["a"]

    def test_element_transform_starts_from_output(
        self, registry: RuleRegistry, scope: Scope
    ) -> None:
        def mark(item: dict[str, Any]) -> dict[str, Any]:
            item["seen"] = True
            return item

        definitions = [
            FieldDefinition.of("items[*]", "object", registry.transform("transform", mark)),
        ]
        processor = _processor(definitions, "items")
        data = [{"a": 1}]
        out = copy.deepcopy(data)
        processor.process(data, scope, parse=True, out=out)
        assert out == [{"a": 1, "seen": True}]
        assert data == [{"a": 1}]

    def test_element_transform_keeps_field_transform(
        self, registry: RuleRegistry, scope: Scope
    ) -> None:
        definitions = [
            FieldDefinition.of("items[*].name", "string", registry.transform("trim")),
            FieldDefinition.of(
                "items[*]", "object", registry.transform("transform", lambda d: {**d, "v": 1})
            ),
        ]
        processor = _processor(definitions, "items")
        data = [{"name": "  ada  "}]
        out = copy.deepcopy(data)
        processor.process(data, scope, parse=True, out=out)
        assert out == [{"name": "ada", "v": 1}]
