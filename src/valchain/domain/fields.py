"""FieldDefinition: one path with its rule chain, transforms and presence options."""

from __future__ import annotations

import copy
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from valchain.domain.errors import SchemaError
from valchain.domain.paths import parse_path
from valchain.domain.rules import Rule, Transform
from valchain.domain.types import MISSING, ValueKind


@dataclass(frozen=True)
class FieldDefinition:
    """Declarative description of one field.

    The path is stored in canonical form, so ``items.*.name`` and
    ``items[*].name`` describe the same field.

    Attributes:
        path: Field path, possibly with wildcards.
        kind: Declared value kind; adds an implicit type check.
        rules: Rule chain in declaration order.
        transforms: Parse-mode transforms in declaration order.
        optional: The field may be absent.
        required: The field must be present; overrides rule-level optional
            markers.
        default: Value (or zero-argument callable) used when the field is
            absent. :data:`MISSING` means no default.
        apply_default_to_null: Also apply the default to ``None``.
    """

    path: str
    kind: ValueKind = ValueKind.ANY
    rules: tuple[Rule, ...] = ()
    transforms: tuple[Transform, ...] = ()
    optional: bool = False
    required: bool = False
    default: Any = MISSING
    apply_default_to_null: bool = True

    def __post_init__(self) -> None:
        parsed = parse_path(self.path)
        object.__setattr__(self, "path", parsed.canonical)
        object.__setattr__(self, "kind", ValueKind(self.kind))
        object.__setattr__(self, "rules", tuple(self.rules))
        object.__setattr__(self, "transforms", tuple(self.transforms))
        if self.optional and self.required:
            msg = f"Field {self.path!r} cannot be both optional and required"
            raise SchemaError(msg)
        for rule in self.rules:
            if not isinstance(rule, Rule):
                msg = f"Field {self.path!r} has a non-rule entry {rule!r} in its rule chain"
                raise SchemaError(msg)
        for transform in self.transforms:
            if not isinstance(transform, Transform):
                msg = f"Field {self.path!r} has a non-transform entry {transform!r}"
                raise SchemaError(msg)

    @classmethod
    def of(
        cls,
        path: str,
        kind: ValueKind | str = ValueKind.ANY,
        *steps: Any,
        **options: Any,
    ) -> FieldDefinition:
        """Build a definition from a mixed sequence of rules and transforms.

        Composer results (tuples of rules) are flattened in place.
        """
        rules: list[Rule] = []
        transforms: list[Transform] = []
        for step in _flatten(steps):
            if isinstance(step, Rule):
                rules.append(step)
            elif isinstance(step, Transform):
                transforms.append(step)
            else:
                msg = f"Field {path!r}: expected a Rule or Transform, got {type(step).__name__}"
                raise SchemaError(msg)
        return cls(
            path=path,
            kind=ValueKind(kind),
            rules=tuple(rules),
            transforms=tuple(transforms),
            **options,
        )

    # ------------------------------------------------------------------
    # Derived properties
    # ------------------------------------------------------------------

    @property
    def is_optional(self) -> bool:
        if self.required:
            return False
        return self.optional or any(rule.marks_optional for rule in self.rules)

    @property
    def has_required_rule(self) -> bool:
        """Whether a rule in the chain decides on absent values itself."""
        return any(rule.handles_missing for rule in self.rules)

    @property
    def is_required(self) -> bool:
        return self.required or self.has_required_rule

    @property
    def has_default(self) -> bool:
        return self.default is not MISSING

    @property
    def recursive_rule(self) -> Rule | None:
        for rule in self.rules:
            if rule.recursive is not None:
                return rule
        return None

    @property
    def has_wildcard(self) -> bool:
        return parse_path(self.path).has_wildcard

    def wants_default(self, value: Any) -> bool:
        if not self.has_default:
            return False
        return value is MISSING or (value is None and self.apply_default_to_null)

    def resolve_default(self) -> Any:
        """Return a fresh default value; callables are invoked each time."""
        if callable(self.default):
            return self.default()
        return copy.deepcopy(self.default)


def _flatten(steps: Iterable[Any]) -> Iterable[Any]:
    for step in steps:
        if isinstance(step, tuple | list):
            yield from _flatten(step)
        else:
            yield step
