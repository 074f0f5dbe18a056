"""Schema: whole-record validate/parse orchestration.

A validate or parse call runs in five steps:

1. ``None``/``MISSING`` input fails with one root ``required`` error.
2. Defaults are written into a private shadow copy used for decisions.
3. Array batches run first. An array path's own definition is checked
   before its elements, and a failure there skips the elements.
4. Every remaining plain field is resolved: absent and optional skips,
   absent without a required-style rule gets a synthesized ``required``
   error, everything else runs its compiled validator. Fields below an
   empty array are skipped.
5. ``abort_early`` returns at the first failing field; otherwise errors
   are aggregated in order.

``validate`` returns the caller's input on success. ``parse`` returns a
new structure with defaults and transformed values written in. Transforms
start from that structure, so the input is never modified.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from valchain.config.models import EngineConfig, ValidationOptions
from valchain.domain.errors import DuplicateFieldError, SchemaError
from valchain.domain.fields import FieldDefinition
from valchain.domain.paths import (
    Segment,
    accessor_for,
    compile_accessor,
    compile_existence_check,
    compile_setter,
    iter_slots,
    normalize_path,
    parse_path,
)
from valchain.domain.result import Result, ValidationError
from valchain.domain.rules import Scope
from valchain.domain.types import MISSING
from valchain.engine.arrays import ArrayBatchDescriptor, ArrayBatchProcessor, build_hierarchy
from valchain.engine.compiler import SAME, FieldValidator, compile_field
from valchain.engine.presence import Presence, required_error, resolve_presence, root_required_error
from valchain.engine.recursive import wrap

logger = logging.getLogger(__name__)


def _is_empty_sequence(value: Any) -> bool:
    return isinstance(value, list | tuple) and not value


@dataclass(frozen=True)
class _PlainField:
    definition: FieldDefinition
    get: Callable[[Any], Any]
    exists: Callable[[Any], bool]
    put: Callable[[Any, Any], None]
    ancestors: tuple[Callable[[Any], Any], ...]

    @classmethod
    def build(cls, definition: FieldDefinition) -> _PlainField:
        segments = parse_path(definition.path).segments
        return cls(
            definition=definition,
            get=compile_accessor(definition.path),
            exists=compile_existence_check(definition.path),
            put=compile_setter(definition.path),
            ancestors=tuple(accessor_for(segments[:n]) for n in range(1, len(segments))),
        )

    def under_empty_array(self, record: Any) -> bool:
        return any(_is_empty_sequence(get(record)) for get in self.ancestors)


@dataclass(frozen=True)
class _Default:
    definition: FieldDefinition
    segments: tuple[Segment, ...]


class Schema:
    """Compiled view over a flat list of field definitions.

    Validators are compiled lazily on first use and cached per path.

    Args:
        definitions: Field definitions; paths must be unique once
            normalized.
        config: Engine configuration; code defaults when omitted.
    """

    def __init__(
        self,
        definitions: Iterable[FieldDefinition],
        *,
        config: EngineConfig | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        by_path: dict[str, FieldDefinition] = {}
        for definition in definitions:
            if not isinstance(definition, FieldDefinition):
                msg = f"Expected FieldDefinition, got {type(definition).__name__}"
                raise SchemaError(msg)
            if definition.path in by_path:
                msg = f"Duplicate field definition for {definition.path!r}"
                raise DuplicateFieldError(msg)
            by_path[definition.path] = definition
        self._definitions = by_path

        self._descriptors = build_hierarchy(d for d in by_path.values() if d.has_wildcard)
        self._array_heads: dict[str, _PlainField | None] = {}
        for descriptor in self._descriptors:
            head = by_path.get(descriptor.array_path)
            self._array_heads[descriptor.array_path] = _PlainField.build(head) if head else None
        self._array_access = {
            descriptor.array_path: compile_accessor(descriptor.array_path)
            for descriptor in self._descriptors
        }
        self._plain = tuple(
            _PlainField.build(d)
            for d in by_path.values()
            if not d.has_wildcard and d.path not in self._array_heads
        )
        self._defaults = tuple(
            sorted(
                (
                    _Default(d, parse_path(d.path).segments)
                    for d in by_path.values()
                    if d.has_default
                ),
                key=lambda entry: len(entry.segments),
            )
        )

        self._base: dict[str, FieldValidator] = {}
        self._compiled: dict[str, FieldValidator] = {}
        self._processors = {
            descriptor.array_path: ArrayBatchProcessor(descriptor, self.validator_for)
            for descriptor in self._descriptors
        }
        logger.debug(
            "Schema built: %d fields, %d array roots, %d defaults",
            len(by_path),
            len(self._descriptors),
            len(self._defaults),
        )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def paths(self) -> list[str]:
        return list(self._definitions)

    @property
    def definitions(self) -> tuple[FieldDefinition, ...]:
        return tuple(self._definitions.values())

    @property
    def descriptors(self) -> tuple[ArrayBatchDescriptor, ...]:
        return self._descriptors

    def definition(self, path: str) -> FieldDefinition:
        canonical = normalize_path(path)
        try:
            return self._definitions[canonical]
        except KeyError:
            msg = f"No field definition for {path!r}"
            raise SchemaError(msg) from None

    # ------------------------------------------------------------------
    # Compilation cache
    # ------------------------------------------------------------------

    def base_validator(self, path: str) -> FieldValidator:
        """Compiled validator of *path* without recursive descent."""
        validator = self._base.get(path)
        if validator is None:
            validator = compile_field(self._definitions[path], self.config)
            self._base[path] = validator
        return validator

    def validator_for(self, path: str) -> FieldValidator:
        """Compiled validator of *path*, recursion included."""
        validator = self._compiled.get(path)
        if validator is None:
            validator = wrap(
                self.base_validator(path),
                self.definitions,
                self.base_validator,
                max_depth=self.config.max_recursion_depth,
            )
            self._compiled[path] = validator
        return validator

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def validate(
        self, value: Any, options: ValidationOptions | None = None, **overrides: Any
    ) -> Result:
        """Check *value*; on success the result carries the input unchanged."""
        return self._execute(value, self._options(options, overrides), parse=False)

    def parse(
        self, value: Any, options: ValidationOptions | None = None, **overrides: Any
    ) -> Result:
        """Check *value*; on success the result carries a transformed copy."""
        return self._execute(value, self._options(options, overrides), parse=True)

    def pick(self, path: str) -> PickedField:
        """Single-field view for validating one value in isolation."""
        definition = self.definition(path)
        return PickedField(self, definition)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _options(
        self, options: ValidationOptions | None, overrides: dict[str, Any]
    ) -> ValidationOptions:
        if options is None:
            return ValidationOptions.from_engine(self.config, **overrides)
        if overrides:
            return options.model_copy(update=overrides)
        return options

    def _with_defaults(self, value: Any) -> Any:
        shadow = copy.deepcopy(value)
        for entry in self._defaults:
            definition = entry.definition
            for container, key in iter_slots(shadow, entry.segments):
                current = _slot_value(container, key)
                if definition.wants_default(current):
                    _put_slot(container, key, definition.resolve_default())
        return shadow

    def _execute(self, value: Any, options: ValidationOptions, *, parse: bool) -> Result:
        if value is None or value is MISSING:
            return Result.failure([root_required_error()])

        shadow = self._with_defaults(value) if self._defaults else value
        output = copy.deepcopy(shadow) if parse else None
        scope = Scope(record=shadow, context=options.context)
        errors: list[ValidationError] = []

        for descriptor in self._descriptors:
            batch_errors = self._run_batch(descriptor, shadow, output, scope, options, parse)
            if batch_errors:
                errors.extend(batch_errors)
                if options.abort_early:
                    return Result.failure(errors)

        for plain in self._plain:
            if plain.under_empty_array(shadow):
                continue
            field_errors = self._run_plain(plain, shadow, output, scope, options, parse)
            if field_errors:
                errors.extend(field_errors)
                if options.abort_early:
                    return Result.failure(errors)

        if errors:
            return Result.failure(errors)
        return Result.success(output if parse else value)

    def _run_plain(
        self,
        plain: _PlainField,
        shadow: Any,
        output: Any,
        scope: Scope,
        options: ValidationOptions,
        parse: bool,
    ) -> list[ValidationError]:
        definition = plain.definition
        presence = resolve_presence(definition, plain.exists(shadow))
        if presence is Presence.SKIP:
            return []
        if presence is Presence.REQUIRED:
            return [required_error(definition.path)]

        value = plain.get(shadow)
        current = plain.get(output) if parse else MISSING
        errors, result = self.validator_for(definition.path).run(
            value,
            scope,
            definition.path,
            abort_early_on_each_field=options.abort_early_on_each_field,
            parse=parse,
            parse_from=current,
        )
        if errors:
            return errors
        if parse and result is not current and result is not MISSING:
            plain.put(output, result)
        return []

    def _run_batch(
        self,
        descriptor: ArrayBatchDescriptor,
        shadow: Any,
        output: Any,
        scope: Scope,
        options: ValidationOptions,
        parse: bool,
    ) -> list[ValidationError]:
        head = self._array_heads.get(descriptor.array_path)
        if head is not None:
            head_errors = self._run_plain(head, shadow, output, scope, options, parse)
            if head_errors:
                return head_errors

        get = self._array_access[descriptor.array_path]
        array = get(shadow)
        if not isinstance(array, Sequence) or isinstance(array, str | bytes) or not array:
            return []
        out = get(output) if parse else None
        return self._processors[descriptor.array_path].process(
            array,
            scope,
            index_prefix=descriptor.array_path,
            abort_early=options.abort_early,
            abort_early_on_each_field=options.abort_early_on_each_field,
            parse=parse,
            out=out,
        )


def _slot_value(container: Any, key: Segment) -> Any:
    if isinstance(container, dict):
        return container.get(key, MISSING)
    if isinstance(container, list) and isinstance(key, int) and 0 <= key < len(container):
        return container[key]
    try:
        return container[key]
    except (KeyError, IndexError, TypeError):
        return MISSING


def _put_slot(container: Any, key: Segment, value: Any) -> None:
    if isinstance(container, list) and isinstance(key, int) and not 0 <= key < len(container):
        return
    container[key] = value


class PickedField:
    """One field of a schema validated on its own.

    ``record`` supplies the surrounding data for conditional and
    reference rules; ``path`` overrides the reported path, which is
    useful for wildcard fields validated one element at a time.
    """

    def __init__(self, schema: Schema, definition: FieldDefinition) -> None:
        self.schema = schema
        self.definition = definition

    @property
    def path(self) -> str:
        return self.definition.path

    def validate(
        self,
        value: Any,
        options: ValidationOptions | None = None,
        *,
        record: Any = None,
        path: str | None = None,
    ) -> Result:
        return self._execute(value, options, record, path, parse=False)

    def parse(
        self,
        value: Any,
        options: ValidationOptions | None = None,
        *,
        record: Any = None,
        path: str | None = None,
    ) -> Result:
        return self._execute(value, options, record, path, parse=True)

    def _execute(
        self,
        value: Any,
        options: ValidationOptions | None,
        record: Any,
        path: str | None,
        *,
        parse: bool,
    ) -> Result:
        opts = self.schema._options(options, {})
        where = path or self.definition.path
        if self.definition.wants_default(value):
            value = self.definition.resolve_default()
        presence = resolve_presence(self.definition, value is not MISSING)
        if presence is Presence.SKIP:
            return Result.success(value)
        if presence is Presence.REQUIRED:
            return Result.failure([required_error(where)])
        errors, out = self.schema.validator_for(self.definition.path).run(
            value,
            Scope(record=record if record is not None else {}, context=opts.context),
            where,
            abort_early_on_each_field=opts.abort_early_on_each_field,
            parse=parse,
            parse_from=copy.deepcopy(value) if parse else SAME,
        )
        if errors:
            return Result.failure(errors)
        return Result.success(out)


def build(
    definitions: Sequence[FieldDefinition] | Iterable[FieldDefinition],
    config: EngineConfig | None = None,
) -> Schema:
    """Shorthand for ``Schema(definitions, config=config)``."""
    return Schema(definitions, config=config)
