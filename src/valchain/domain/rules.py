"""Rule and Transform value types consumed by the engine.

Rules are built by the registry factories and are immutable afterwards.
A rule's ``check`` receives the field value (possibly :data:`MISSING`)
and a :class:`Scope` carrying the whole record and the resolved external
context.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from valchain.domain.result import ValidationError
from valchain.domain.types import DEFAULT_MAX_DEPTH, SELF_TARGET, RuleCategory, SkipMode


@dataclass(frozen=True)
class Scope:
    """Read-only view handed to every rule check."""

    record: Any
    context: Any = None


Check = Callable[[Any, Scope], bool]
MessageFn = Callable[[Any, str, Scope], str]
CodeFn = Callable[[Any, Scope], str]
ShortCircuit = Callable[[Any, Scope], SkipMode | None]


@dataclass(frozen=True)
class RecursiveSpec:
    """Where a recursive rule re-applies its field's definitions.

    ``target`` is ``"self"`` (the value nests the same shape),
    ``"each-element"`` (each array item nests it) or a sub-field path.
    """

    target: str = SELF_TARGET
    max_depth: int = DEFAULT_MAX_DEPTH


@dataclass(frozen=True)
class Rule:
    """One predicate in a field's rule chain.

    Attributes:
        name: Registry name of the factory that produced the rule.
        category: Factory category.
        check: Predicate over ``(value, scope)``.
        code: Error code reported on failure.
        message: Produces the error message from ``(value, path, scope)``.
        skip_for_null: A ``None`` value makes the whole field valid.
        skip_for_missing: A missing value makes the whole field valid.
        short_circuit: Optional signal to stop evaluating the chain.
        marks_optional: The field may be absent.
        handles_missing: The rule wants to see absent values, so no
            ``required`` error is synthesized for the field.
        recursive: Present on rules that re-apply the schema to nested data.
        dynamic_code: Overrides ``code`` per failure when set.
    """

    name: str
    category: RuleCategory
    check: Check
    code: str
    message: MessageFn
    skip_for_null: bool = False
    skip_for_missing: bool = False
    short_circuit: ShortCircuit | None = None
    marks_optional: bool = False
    handles_missing: bool = False
    recursive: RecursiveSpec | None = None
    dynamic_code: CodeFn | None = None

    @property
    def can_short_circuit(self) -> bool:
        return self.short_circuit is not None or self.skip_for_null or self.skip_for_missing

    def error(self, value: Any, path: str, scope: Scope) -> ValidationError:
        code = self.dynamic_code(value, scope) if self.dynamic_code else self.code
        return ValidationError(path=path, code=code, message=self.message(value, path, scope))


@dataclass(frozen=True)
class Transform:
    """A value-to-value function applied in parse mode after all rules pass."""

    name: str
    fn: Callable[[Any], Any]

    def __call__(self, value: Any) -> Any:
        return self.fn(value)


def static_message(text: str) -> MessageFn:
    def message(value: Any, path: str, scope: Scope) -> str:
        return text

    return message
