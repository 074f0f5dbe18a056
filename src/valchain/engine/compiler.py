"""Field validator compilation.

Every :class:`FieldDefinition` compiles into one validator object bound to
its rule chain. Two strategies exist and must stay observably identical:

- :class:`SkipAwareValidator` honours short-circuit signals and the
  null/missing skip flags while walking the chain.
- :class:`FastSeparatedValidator` runs every check, then every transform.
  It is only chosen for chains that cannot short-circuit, and is further
  specialized for chains of zero, one and two rules.

Null/missing policy: when a ``skip_for_null`` rule meets ``None`` or a
``skip_for_missing`` rule meets ``MISSING``, the field is valid, no rule
runs, no transform runs and the original value is returned. Transforms
never see ``MISSING``.

In parse mode rules judge ``value`` while transforms start from
``parse_from`` when it is given. The engine passes the field's slot in its
private output copy there, so transforms never touch the caller's data.

Exceptions raised by rule checks or transforms propagate to the caller.
"""

from __future__ import annotations

import copy
import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any, ClassVar, Final

from valchain.config.models import EngineConfig, ValidationOptions
from valchain.domain.fields import FieldDefinition
from valchain.domain.paths import compile_accessor
from valchain.domain.result import Result, ValidationError
from valchain.domain.rules import Rule, Scope
from valchain.domain.types import MISSING, SkipMode, Strategy
from valchain.engine.strategy import select_strategy
from valchain.engine.typecheck import type_check_rule

logger = logging.getLogger(__name__)

Outcome = tuple[list[ValidationError], Any]

# parse_from default: transforms start from the checked value.
SAME: Final = object()


class FieldValidator(ABC):
    """Base class of compiled field validators.

    ``run`` is the engine-facing entry point and returns ``(errors, value)``;
    an empty error list means the field passed. ``validate`` and ``parse``
    wrap it into a :class:`Result` for direct use.
    """

    strategy: ClassVar[Strategy]

    def __init__(self, definition: FieldDefinition, rules: Sequence[Rule]) -> None:
        self.definition = definition
        self.path = definition.path
        self.rules: tuple[Rule, ...] = tuple(rules)
        self.transforms = definition.transforms
        self.accessor = compile_accessor(definition.path)

    @abstractmethod
    def run(
        self,
        value: Any,
        scope: Scope,
        path: str,
        *,
        abort_early_on_each_field: bool = True,
        parse: bool = False,
        parse_from: Any = SAME,
    ) -> Outcome: ...

    def apply_transforms(self, value: Any) -> Any:
        if value is MISSING:
            return value
        for transform in self.transforms:
            value = transform(value)
        return value

    def _finish(
        self,
        errors: list[ValidationError],
        value: Any,
        parse: bool,
        parse_from: Any,
        *,
        transform: bool = True,
    ) -> Outcome:
        if errors or not parse:
            return errors, value
        start = value if parse_from is SAME else parse_from
        if not transform:
            return errors, start
        return errors, self.apply_transforms(start)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def validate(
        self,
        value: Any,
        record: Any = None,
        options: ValidationOptions | None = None,
        *,
        path: str | None = None,
    ) -> Result:
        return self._result(value, record, options, path, parse=False)

    def parse(
        self,
        value: Any,
        record: Any = None,
        options: ValidationOptions | None = None,
        *,
        path: str | None = None,
    ) -> Result:
        return self._result(value, record, options, path, parse=True)

    def _result(
        self,
        value: Any,
        record: Any,
        options: ValidationOptions | None,
        path: str | None,
        *,
        parse: bool,
    ) -> Result:
        opts = options or ValidationOptions()
        scope = Scope(record=record if record is not None else {}, context=opts.context)
        errors, out = self.run(
            value,
            scope,
            path if path is not None else self.path,
            abort_early_on_each_field=opts.abort_early_on_each_field,
            parse=parse,
            parse_from=copy.deepcopy(value) if parse else SAME,
        )
        if errors:
            return Result.failure(errors)
        return Result.success(out)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(path={self.path!r}, rules={len(self.rules)})"


class SkipAwareValidator(FieldValidator):
    """Walks the chain one rule at a time, honouring short-circuit signals."""

    strategy = Strategy.SKIP_AWARE

    def __init__(self, definition: FieldDefinition, rules: Sequence[Rule]) -> None:
        super().__init__(definition, rules)
        self._skip_null = any(rule.skip_for_null for rule in self.rules)
        self._skip_missing = any(rule.skip_for_missing for rule in self.rules)

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
        if (value is None and self._skip_null) or (value is MISSING and self._skip_missing):
            return self._finish([], value, parse, parse_from, transform=False)

        errors: list[ValidationError] = []
        for rule in self.rules:
            if rule.short_circuit is not None:
                signal = rule.short_circuit(value, scope)
                if signal is SkipMode.ALL:
                    return self._finish(errors, value, parse, parse_from, transform=False)
                if signal is SkipMode.REMAINING_RULES:
                    break
            if not rule.check(value, scope):
                errors.append(rule.error(value, path, scope))
                if abort_early_on_each_field:
                    return errors, value

        return self._finish(errors, value, parse, parse_from)


class FastSeparatedValidator(FieldValidator):
    """All checks, then all transforms. Only for chains that cannot short-circuit."""

    strategy = Strategy.FAST_SEPARATED

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
        errors: list[ValidationError] = []
        for rule in self.rules:
            if not rule.check(value, scope):
                errors.append(rule.error(value, path, scope))
                if abort_early_on_each_field:
                    return errors, value
        return self._finish(errors, value, parse, parse_from)


class _NoRuleValidator(FastSeparatedValidator):
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
        return self._finish([], value, parse, parse_from)


class _SingleRuleValidator(FastSeparatedValidator):
    def __init__(self, definition: FieldDefinition, rules: Sequence[Rule]) -> None:
        super().__init__(definition, rules)
        (self._rule,) = self.rules

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
        if not self._rule.check(value, scope):
            return [self._rule.error(value, path, scope)], value
        return self._finish([], value, parse, parse_from)


class _PairRuleValidator(FastSeparatedValidator):
    def __init__(self, definition: FieldDefinition, rules: Sequence[Rule]) -> None:
        super().__init__(definition, rules)
        self._first, self._second = self.rules

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
        errors: list[ValidationError] = []
        if not self._first.check(value, scope):
            errors.append(self._first.error(value, path, scope))
            if abort_early_on_each_field:
                return errors, value
        if not self._second.check(value, scope):
            errors.append(self._second.error(value, path, scope))
        return self._finish(errors, value, parse, parse_from)


_SPECIALIZED: dict[int, type[FastSeparatedValidator]] = {
    0: _NoRuleValidator,
    1: _SingleRuleValidator,
    2: _PairRuleValidator,
}


def chain_for(definition: FieldDefinition) -> tuple[Rule, ...]:
    """The full rule chain: implicit type check first, then declared rules."""
    type_rule = type_check_rule(definition.kind)
    if type_rule is None:
        return definition.rules
    return (type_rule, *definition.rules)


def compile_field(
    definition: FieldDefinition,
    config: EngineConfig | None = None,
) -> FieldValidator:
    """Compile *definition* into the validator its chain and *config* call for."""
    cfg = config or EngineConfig()
    rules = chain_for(definition)
    strategy = select_strategy(rules, cfg.strategy, path=definition.path)
    if strategy is Strategy.SKIP_AWARE:
        validator: FieldValidator = SkipAwareValidator(definition, rules)
    elif cfg.specialize:
        validator = _SPECIALIZED.get(len(rules), FastSeparatedValidator)(definition, rules)
    else:
        validator = FastSeparatedValidator(definition, rules)
    logger.debug(
        "Compiled %s with %s (%d rules, %d transforms)",
        definition.path,
        type(validator).__name__,
        len(rules),
        len(definition.transforms),
    )
    return validator
