"""Rule factories and the per-category build dispatch table.

A :class:`RuleFactory` is pure data: a name, a category tag, an ``impl``
callable and the default error code and message. Turning a factory plus
call arguments into a :class:`Rule` (or :class:`Transform`, or
:class:`Composer`) is done by the builder registered for its category in
:data:`BUILDERS`. Each category has its own ``impl`` contract:

==================== ===========================================================
standard             ``impl(*args) -> predicate(value)``
conditional          ``impl(condition, *args) -> ConditionalParts``
fieldReference       ``impl(value, other_value, *args) -> bool``
multiFieldReference  ``impl(values, value, record, *args) -> bool | (bool, message)``
transform            ``impl(*args) -> fn(value)``
arrayElement         ``impl(*args) -> predicate(sequence)``
context              ``impl(*args) -> ContextRuleOptions``
composable           ``impl(*args) -> predicate(value)``, one per ``Composer.add``
==================== ===========================================================

Messages are either callables ``(value, path, scope) -> str`` or
``str.format`` templates receiving ``path``, ``value`` and the factory's
bound parameters by name.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, replace
from typing import Any

from valchain.domain.errors import RuleArgumentError, SchemaError
from valchain.domain.paths import compile_accessor
from valchain.domain.rules import MessageFn, Rule, Scope, Transform
from valchain.domain.types import MISSING, RuleCategory, SkipMode

MISSING_CONTEXT_CODE = "missing_context"
MISSING_CONTEXT_MESSAGE = "Context data is required for validation"

Builder = Callable[..., Any]


@dataclass(frozen=True)
class RuleFactory:
    """Registry entry for one named rule or transform.

    Attributes:
        name: Lookup name (e.g. ``"stringMin"``).
        category: Dispatch tag selecting the builder.
        impl: Category-specific implementation callable.
        code: Default error code.
        message: Default message template or callable.
        skip_for_null: Copied onto built rules.
        skip_for_missing: Copied onto built rules.
        marks_optional: Copied onto built rules.
        handles_missing: Copied onto built rules.
        attach: Maps bound parameters to extra :class:`Rule` fields.
    """

    name: str
    category: RuleCategory
    impl: Callable[..., Any]
    code: str = "invalid"
    message: str | MessageFn = "Field '{path}' is invalid"
    skip_for_null: bool = False
    skip_for_missing: bool = False
    marks_optional: bool = False
    handles_missing: bool = False
    attach: Callable[[dict[str, Any]], dict[str, Any]] | None = None

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            msg = "Rule factory name must not be empty"
            raise ValueError(msg)
        object.__setattr__(self, "category", RuleCategory(self.category))
        if not callable(self.impl):
            msg = f"Rule factory {self.name!r} needs a callable impl"
            raise TypeError(msg)


@dataclass(frozen=True)
class ConditionalParts:
    """What a conditional ``impl`` returns.

    ``check`` and ``short_circuit`` both receive ``(value, record)``.
    """

    check: Callable[[Any, Any], bool]
    short_circuit: Callable[[Any, Any], SkipMode | None] | None = None


@dataclass(frozen=True)
class ContextRuleOptions:
    """Options of a context rule.

    Attributes:
        validate: ``(value, context, record) -> bool``; ``None`` only
            asserts the context is available.
        required: Fail with ``missing_context`` when no context was given.
        fallback_to_valid: Pass when no context was given (ignored when
            ``required`` is set).
    """

    validate: Callable[[Any, Any, Any], bool] | None = None
    required: bool = False
    fallback_to_valid: bool = True


@dataclass(frozen=True)
class Composer:
    """Immutable accumulator for composable rules.

    ``add`` returns a new composer; ``finalize`` yields one rule per call.
    """

    factory: RuleFactory
    rules: tuple[Rule, ...] = ()

    def add(
        self,
        *args: Any,
        code: str | None = None,
        message: str | MessageFn | None = None,
        **kwargs: Any,
    ) -> Composer:
        rule = _build_predicate_rule(self.factory, args, kwargs, code, message)
        return replace(self, rules=(*self.rules, rule))

    def finalize(self) -> tuple[Rule, ...]:
        if not self.rules:
            msg = f"Composable rule {self.factory.name!r} finalized with no calls"
            raise RuleArgumentError(msg)
        return self.rules

    def __len__(self) -> int:
        return len(self.rules)


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


class _TemplateParams(dict[str, Any]):
    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


def build_message(template: str | MessageFn, params: Mapping[str, Any]) -> MessageFn:
    """Turn a template or callable into a message producer."""
    if callable(template):
        return template

    def message(value: Any, path: str, scope: Scope) -> str:
        return template.format_map(_TemplateParams(params, path=path, value=value))

    return message


def _bind(
    factory: RuleFactory,
    args: Sequence[Any],
    kwargs: Mapping[str, Any],
    leading: int = 0,
) -> inspect.BoundArguments:
    """Bind call arguments to ``impl``, skipping *leading* runtime parameters."""
    signature = inspect.signature(factory.impl)
    try:
        bound = signature.bind(*([MISSING] * leading), *args, **kwargs)
    except TypeError as exc:
        msg = f"Invalid arguments for rule {factory.name!r}: {exc}"
        raise RuleArgumentError(msg) from exc
    bound.apply_defaults()
    return bound


def _params(bound: inspect.BoundArguments, leading: int = 0) -> dict[str, Any]:
    items = list(bound.arguments.items())[leading:]
    return dict(items)


def _call_args(
    bound: inspect.BoundArguments,
    leading: int = 0,
) -> tuple[tuple[Any, ...], dict[str, Any]]:
    return bound.args[leading:], dict(bound.kwargs)


def _make_rule(
    factory: RuleFactory,
    check: Callable[[Any, Scope], bool],
    params: dict[str, Any],
    code: str | None,
    message: str | MessageFn | None,
    **overrides: Any,
) -> Rule:
    extra = dict(factory.attach(params)) if factory.attach else {}
    extra.update(overrides)
    return Rule(
        name=factory.name,
        category=factory.category,
        check=check,
        code=code or factory.code,
        message=build_message(message or factory.message, params),
        skip_for_null=factory.skip_for_null,
        skip_for_missing=factory.skip_for_missing,
        marks_optional=factory.marks_optional,
        handles_missing=factory.handles_missing,
        **extra,
    )


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, str | bytes | bytearray)


# ---------------------------------------------------------------------------
# Builders, one per category
# ---------------------------------------------------------------------------


def _build_predicate_rule(
    factory: RuleFactory,
    args: Sequence[Any],
    kwargs: Mapping[str, Any],
    code: str | None,
    message: str | MessageFn | None,
) -> Rule:
    bound = _bind(factory, args, kwargs)
    call_args, call_kwargs = _call_args(bound)
    predicate = factory.impl(*call_args, **call_kwargs)

    def check(value: Any, scope: Scope) -> bool:
        return bool(predicate(value))

    return _make_rule(factory, check, _params(bound), code, message)


def build_standard(
    factory: RuleFactory,
    args: Sequence[Any],
    kwargs: Mapping[str, Any],
    code: str | None = None,
    message: str | MessageFn | None = None,
) -> Rule:
    return _build_predicate_rule(factory, args, kwargs, code, message)


def build_conditional(
    factory: RuleFactory,
    args: Sequence[Any],
    kwargs: Mapping[str, Any],
    code: str | None = None,
    message: str | MessageFn | None = None,
) -> Rule:
    bound = _bind(factory, args, kwargs)
    params = _params(bound)
    call_args, call_kwargs = _call_args(bound)
    condition = call_args[0] if call_args else None
    if not callable(condition):
        msg = f"Conditional rule {factory.name!r} needs a callable condition"
        raise RuleArgumentError(msg)
    parts = factory.impl(*call_args, **call_kwargs)
    if not isinstance(parts, ConditionalParts):
        msg = f"Conditional rule {factory.name!r} must return ConditionalParts"
        raise SchemaError(msg)

    def check(value: Any, scope: Scope) -> bool:
        return bool(parts.check(value, scope.record))

    short_circuit = None
    if parts.short_circuit is not None:
        signal = parts.short_circuit

        def short_circuit(value: Any, scope: Scope) -> SkipMode | None:
            return signal(value, scope.record)

    return _make_rule(factory, check, params, code, message, short_circuit=short_circuit)


def build_field_reference(
    factory: RuleFactory,
    args: Sequence[Any],
    kwargs: Mapping[str, Any],
    code: str | None = None,
    message: str | MessageFn | None = None,
) -> Rule:
    if not args or not isinstance(args[0], str):
        msg = f"Field reference rule {factory.name!r} needs the referenced path first"
        raise RuleArgumentError(msg)
    other_path, rest = args[0], args[1:]
    other = compile_accessor(other_path)
    bound = _bind(factory, rest, kwargs, leading=2)
    call_args, call_kwargs = _call_args(bound, leading=2)
    impl = factory.impl

    def check(value: Any, scope: Scope) -> bool:
        return bool(impl(value, other(scope.record), *call_args, **call_kwargs))

    params = {"field": other_path, **_params(bound, leading=2)}
    return _make_rule(factory, check, params, code, message)


def _verdict(outcome: Any) -> tuple[bool, str | None]:
    if isinstance(outcome, tuple):
        ok, text = outcome
        return bool(ok), text
    if isinstance(outcome, Mapping):
        return bool(outcome.get("valid")), outcome.get("message")
    return bool(outcome), None


def build_multi_field_reference(
    factory: RuleFactory,
    args: Sequence[Any],
    kwargs: Mapping[str, Any],
    code: str | None = None,
    message: str | MessageFn | None = None,
) -> Rule:
    if not args or isinstance(args[0], str) or not isinstance(args[0], Sequence) or not args[0]:
        msg = f"Multi-field rule {factory.name!r} needs a non-empty list of paths first"
        raise RuleArgumentError(msg)
    paths = tuple(args[0])
    accessors = tuple((path, compile_accessor(path)) for path in paths)
    bound = _bind(factory, args[1:], kwargs, leading=3)
    call_args, call_kwargs = _call_args(bound, leading=3)
    impl = factory.impl

    def evaluate(value: Any, scope: Scope) -> tuple[bool, str | None]:
        values = {path: get(scope.record) for path, get in accessors}
        return _verdict(impl(values, value, scope.record, *call_args, **call_kwargs))

    def check(value: Any, scope: Scope) -> bool:
        return evaluate(value, scope)[0]

    params = {"fields": ", ".join(paths), **_params(bound, leading=3)}
    fallback = build_message(message or factory.message, params)

    def describe(value: Any, path: str, scope: Scope) -> str:
        if message is None:
            _ok, text = evaluate(value, scope)
            if text:
                return text
        return fallback(value, path, scope)

    return _make_rule(factory, check, params, code, describe)


def build_transform(
    factory: RuleFactory,
    args: Sequence[Any],
    kwargs: Mapping[str, Any],
    code: str | None = None,
    message: str | MessageFn | None = None,
) -> Transform:
    bound = _bind(factory, args, kwargs)
    call_args, call_kwargs = _call_args(bound)
    fn = factory.impl(*call_args, **call_kwargs)
    if not callable(fn):
        msg = f"Transform {factory.name!r} must produce a callable"
        raise SchemaError(msg)
    return Transform(name=factory.name, fn=fn)


def build_array_element(
    factory: RuleFactory,
    args: Sequence[Any],
    kwargs: Mapping[str, Any],
    code: str | None = None,
    message: str | MessageFn | None = None,
) -> Rule:
    bound = _bind(factory, args, kwargs)
    call_args, call_kwargs = _call_args(bound)
    predicate = factory.impl(*call_args, **call_kwargs)

    def check(value: Any, scope: Scope) -> bool:
        if not _is_sequence(value):
            return True
        return bool(predicate(value))

    return _make_rule(factory, check, _params(bound), code, message)


def build_context(
    factory: RuleFactory,
    args: Sequence[Any],
    kwargs: Mapping[str, Any],
    code: str | None = None,
    message: str | MessageFn | None = None,
) -> Rule:
    bound = _bind(factory, args, kwargs)
    call_args, call_kwargs = _call_args(bound)
    options = factory.impl(*call_args, **call_kwargs)
    if not isinstance(options, ContextRuleOptions):
        msg = f"Context rule {factory.name!r} must return ContextRuleOptions"
        raise SchemaError(msg)
    resolved_code = code or factory.code
    on_failure = build_message(message or factory.message, _params(bound))

    def check(value: Any, scope: Scope) -> bool:
        if scope.context is None:
            return options.fallback_to_valid and not options.required
        if options.validate is None:
            return True
        return bool(options.validate(value, scope.context, scope.record))

    def context_code(value: Any, scope: Scope) -> str:
        return MISSING_CONTEXT_CODE if scope.context is None else resolved_code

    def describe(value: Any, path: str, scope: Scope) -> str:
        if scope.context is None:
            return MISSING_CONTEXT_MESSAGE
        return on_failure(value, path, scope)

    return _make_rule(
        factory,
        check,
        _params(bound),
        resolved_code,
        describe,
        dynamic_code=context_code,
    )


def build_composable(
    factory: RuleFactory,
    args: Sequence[Any],
    kwargs: Mapping[str, Any],
    code: str | None = None,
    message: str | MessageFn | None = None,
) -> Composer:
    if args or kwargs:
        msg = f"Composable rule {factory.name!r} takes its arguments through add()"
        raise RuleArgumentError(msg)
    return Composer(factory=factory)


BUILDERS: dict[RuleCategory, Builder] = {
    RuleCategory.STANDARD: build_standard,
    RuleCategory.CONDITIONAL: build_conditional,
    RuleCategory.FIELD_REFERENCE: build_field_reference,
    RuleCategory.MULTI_FIELD_REFERENCE: build_multi_field_reference,
    RuleCategory.TRANSFORM: build_transform,
    RuleCategory.ARRAY_ELEMENT: build_array_element,
    RuleCategory.CONTEXT: build_context,
    RuleCategory.COMPOSABLE: build_composable,
}
