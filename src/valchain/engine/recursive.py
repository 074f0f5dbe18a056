"""Recursive field validation for self-similar data.

A field carrying a ``recursively`` rule re-applies part of the schema to
the data nested inside it:

- ``self``: the field's value has the same shape as the object holding
  the field. Sibling definitions are applied to the value, then the
  nested occurrence of the field is visited again.
- ``each-element``: as ``self`` for every item of the field's array.
- any other target names a sub-field of the value holding nested nodes
  (one object or an array of them). The field's own sub-definitions are
  applied to every node, then each node's target is visited again.

A visiting set keyed by object identity breaks reference cycles; it is
passed down explicitly and entries are removed on the way back up. Levels
beyond ``max_depth`` are treated as valid. Nested occurrences are
validated, never transformed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import replace
from typing import Any

from valchain.domain.fields import FieldDefinition
from valchain.domain.paths import (
    accessor_for,
    existence_for,
    index_path,
    is_ancestor,
    iter_concrete,
    join_path,
    parse_path,
)
from valchain.domain.result import ValidationError
from valchain.domain.rules import RecursiveSpec, Scope
from valchain.domain.types import EACH_ELEMENT_TARGET, MISSING, SELF_TARGET, Strategy
from valchain.engine.compiler import SAME, FieldValidator, Outcome
from valchain.engine.presence import Presence, required_error, resolve_presence

logger = logging.getLogger(__name__)

BaseLookup = Callable[[str], FieldValidator]


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, str | bytes | bytearray)


def _parent_prefix(path: str) -> str:
    parent = parse_path(path).parent
    return parent.canonical if parent is not None else ""


def _relative(path: str, prefix: str) -> str:
    if not prefix:
        return path
    rest = path[len(prefix) :]
    return rest[1:] if rest.startswith(".") else rest


class _ShapeEntry:
    """One definition re-applied to nested nodes, with precompiled access."""

    def __init__(self, relative: str, definition: FieldDefinition) -> None:
        self.relative = relative
        self.definition = definition
        parsed = parse_path(relative)
        self.wildcard = parsed.has_wildcard
        self._get = accessor_for(parsed.segments)
        self._exists = existence_for(parsed.segments)

    def leaves(self, node: Any) -> list[tuple[str, Any, bool]]:
        """``(relative path, value, present)`` for every leaf under *node*."""
        if self.wildcard:
            return list(iter_concrete(node, self.relative))
        return [(self.relative, self._get(node), self._exists(node))]


class RecursiveValidator(FieldValidator):
    """Wraps a compiled validator with recursive descent.

    Args:
        base: The field's compiled (non-recursive) validator.
        spec: Where and how deep to recurse.
        shape: ``(relative path, definition)`` pairs re-applied per node.
        lookup: Returns the base validator of any definition path.
    """

    def __init__(
        self,
        base: FieldValidator,
        spec: RecursiveSpec,
        shape: Sequence[tuple[str, FieldDefinition]],
        lookup: BaseLookup,
    ) -> None:
        super().__init__(base.definition, base.rules)
        self.base = base
        self.spec = spec
        self.shape = tuple(shape)
        self._lookup = lookup
        self._shape_access = tuple(
            _ShapeEntry(relative, definition) for relative, definition in self.shape
        )
        if spec.target in (SELF_TARGET, EACH_ELEMENT_TARGET):
            own = _relative(self.path, _parent_prefix(self.path))
            self._nested = accessor_for(parse_path(own).segments)
            self._nested_key = own
        else:
            self._nested = accessor_for(parse_path(spec.target).segments)
            self._nested_key = parse_path(spec.target).canonical

    @property
    def strategy(self) -> Strategy:  # type: ignore[override]
        return self.base.strategy

    @classmethod
    def shape_for(
        cls,
        definition: FieldDefinition,
        definitions: Sequence[FieldDefinition],
        spec: RecursiveSpec,
    ) -> list[tuple[str, FieldDefinition]]:
        """Definitions re-applied to each nested node, relative to the node."""
        if spec.target in (SELF_TARGET, EACH_ELEMENT_TARGET):
            prefix = _parent_prefix(definition.path)
            return [
                (_relative(other.path, prefix), other)
                for other in definitions
                if other.path != definition.path
                and not is_ancestor(definition.path, other.path)
                and (not prefix or is_ancestor(prefix, other.path))
            ]
        return [
            (_relative(other.path, definition.path), other)
            for other in definitions
            if is_ancestor(definition.path, other.path)
        ]

    def run(
        self,
        value: Any,
        scope: Scope,
        path: str,
        *,
        abort_early_on_each_field: bool = True,
        parse: bool = False,
        parse_from: Any = SAME,
    ) -> Outcome:
        errors, out = self.base.run(
            value,
            scope,
            path,
            abort_early_on_each_field=abort_early_on_each_field,
            parse=parse,
            parse_from=parse_from,
        )
        if errors:
            return errors, out
        nested_errors = self._descend(value, path, scope, abort_early_on_each_field, 1, set())
        if nested_errors:
            return nested_errors, value
        return [], out

    # ------------------------------------------------------------------
    # Descent
    # ------------------------------------------------------------------

    def _nodes(self, value: Any, path: str) -> list[tuple[Any, str]]:
        if self.spec.target == SELF_TARGET:
            return [(value, path)]
        if self.spec.target == EACH_ELEMENT_TARGET:
            if not _is_sequence(value):
                return []
            return [(item, index_path(path, i)) for i, item in enumerate(value)]
        holder = self._nested(value)
        holder_path = join_path(path, self._nested_key)
        if _is_sequence(holder):
            return [(item, index_path(holder_path, i)) for i, item in enumerate(holder)]
        if holder is None or holder is MISSING:
            return []
        return [(holder, holder_path)]

    def _descend(
        self,
        value: Any,
        path: str,
        scope: Scope,
        abort_each: bool,
        depth: int,
        visiting: set[int],
    ) -> list[ValidationError]:
        if depth > self.spec.max_depth or value is None or value is MISSING:
            return []
        marker = id(value)
        if marker in visiting:
            return []
        visiting.add(marker)
        try:
            errors: list[ValidationError] = []
            for node, node_path in self._nodes(value, path):
                errors.extend(self._apply_shape(node, node_path, scope, abort_each))
                if errors and abort_each:
                    return errors
                errors.extend(self._next_level(node, node_path, scope, abort_each, depth, visiting))
                if errors and abort_each:
                    return errors
            return errors
        finally:
            visiting.discard(marker)

    def _next_level(
        self,
        node: Any,
        node_path: str,
        scope: Scope,
        abort_each: bool,
        depth: int,
        visiting: set[int],
    ) -> list[ValidationError]:
        if self.spec.target not in (SELF_TARGET, EACH_ELEMENT_TARGET):
            return self._descend(node, node_path, scope, abort_each, depth + 1, visiting)

        nested = self._nested(node)
        if nested is None or nested is MISSING or depth + 1 > self.spec.max_depth:
            return []
        nested_path = join_path(node_path, self._nested_key)
        errors, _out = self.base.run(
            nested,
            scope,
            nested_path,
            abort_early_on_each_field=abort_each,
            parse=False,
        )
        if errors:
            return errors
        return self._descend(nested, nested_path, scope, abort_each, depth + 1, visiting)

    def _apply_shape(
        self,
        node: Any,
        node_path: str,
        scope: Scope,
        abort_each: bool,
    ) -> list[ValidationError]:
        errors: list[ValidationError] = []
        for entry in self._shape_access:
            definition = entry.definition
            validator = self._lookup(definition.path)
            for leaf_path, leaf, present in entry.leaves(node):
                concrete = join_path(node_path, leaf_path)
                presence = resolve_presence(definition, present)
                if presence is Presence.SKIP:
                    continue
                if presence is Presence.REQUIRED:
                    errors.append(required_error(concrete))
                else:
                    field_errors, _out = validator.run(
                        leaf,
                        scope,
                        concrete,
                        abort_early_on_each_field=abort_each,
                        parse=False,
                    )
                    errors.extend(field_errors)
                # one failing nested field is enough when aborting per field
                if errors and abort_each:
                    return errors
        return errors


def wrap(
    base: FieldValidator,
    definitions: Sequence[FieldDefinition],
    lookup: BaseLookup,
    max_depth: int | None = None,
) -> FieldValidator:
    """Wrap *base* when its definition carries a recursive rule.

    *max_depth* caps the depth requested by the rule.
    """
    rule = base.definition.recursive_rule
    if rule is None or rule.recursive is None:
        return base
    spec = rule.recursive
    if max_depth is not None and spec.max_depth > max_depth:
        spec = replace(spec, max_depth=max_depth)
    shape = RecursiveValidator.shape_for(base.definition, definitions, spec)
    logger.debug(
        "Recursive field %s: target=%s max_depth=%d, %d definitions per node",
        base.path,
        spec.target,
        spec.max_depth,
        len(shape),
    )
    return RecursiveValidator(base, spec, shape, lookup)
