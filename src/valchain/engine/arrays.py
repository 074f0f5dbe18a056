"""Array and nested-array batch processing.

Wildcard definitions are grouped by the sequence they iterate. For
``orders[*].items[*].sku`` two arrays exist: ``orders`` (depth 0) and
``orders[*].items`` (depth 1, a child of ``orders``). Each array gets one
:class:`ArrayBatchDescriptor` listing

- its element fields: definitions whose last wildcard iterates this array,
  keyed by the path relative to one element (``""`` is the element itself);
- its child arrays: deeper arrays reached from one element.

The processor walks elements by index and builds concrete error paths
(``orders[2].items[0].sku``) as it descends.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from valchain.domain.fields import FieldDefinition
from valchain.domain.paths import (
    WILDCARD,
    Segment,
    accessor_for,
    existence_for,
    index_path,
    join_path,
    parse_path,
    render_segments,
    setter_for,
)
from valchain.domain.result import ValidationError
from valchain.domain.rules import Scope
from valchain.domain.types import MISSING
from valchain.engine.compiler import FieldValidator
from valchain.engine.presence import Presence, required_error, resolve_presence

logger = logging.getLogger(__name__)

ValidatorLookup = Callable[[str], FieldValidator]


@dataclass(frozen=True)
class ElementField:
    """A definition applied to every element of one array."""

    relative_path: str
    definition: FieldDefinition
    segments: tuple[Segment, ...] = field(repr=False, default=())


@dataclass(frozen=True)
class ArrayBatchDescriptor:
    """Immutable plan for one array level.

    Attributes:
        array_path: Canonical path of the sequence, with ``[*]`` for every
            enclosing array (``orders[*].items``).
        element_fields: Definitions applied per element.
        child_arrays: ``(relative key, descriptor)`` pairs for deeper arrays.
        depth: Number of enclosing arrays.
        parent_path: ``array_path`` of the enclosing array, if any.
    """

    array_path: str
    element_fields: tuple[ElementField, ...] = ()
    child_arrays: tuple[tuple[str, ArrayBatchDescriptor], ...] = ()
    depth: int = 0
    parent_path: str | None = None

    def child(self, key: str) -> ArrayBatchDescriptor | None:
        for child_key, descriptor in self.child_arrays:
            if child_key == key:
                return descriptor
        return None

    def covered_paths(self) -> list[str]:
        """Definition paths handled by this descriptor and its children."""
        paths = [element.definition.path for element in self.element_fields]
        for _key, descriptor in self.child_arrays:
            paths.extend(descriptor.covered_paths())
        return paths


# ---------------------------------------------------------------------------
# Hierarchy construction
# ---------------------------------------------------------------------------


def _split_last_wildcard(
    segments: tuple[Segment, ...],
) -> tuple[tuple[Segment, ...], tuple[Segment, ...]]:
    last = len(segments) - 1 - segments[::-1].index(WILDCARD)
    return segments[:last], segments[last + 1 :]


def build_hierarchy(
    definitions: Iterable[FieldDefinition],
) -> tuple[ArrayBatchDescriptor, ...]:
    """Group wildcard *definitions* into root descriptors, in declaration order.

    Non-wildcard definitions are ignored.
    """
    elements: dict[tuple[Segment, ...], list[ElementField]] = {}
    order: list[tuple[Segment, ...]] = []

    def touch(array_segments: tuple[Segment, ...]) -> None:
        if array_segments not in elements:
            elements[array_segments] = []
            order.append(array_segments)

    for definition in definitions:
        segments = parse_path(definition.path).segments
        if WILDCARD not in segments:
            continue
        for pos, seg in enumerate(segments):
            if seg == WILDCARD:
                touch(segments[:pos])
        array_segments, relative = _split_last_wildcard(segments)
        elements[array_segments].append(
            ElementField(
                relative_path=render_segments(relative),
                definition=definition,
                segments=relative,
            )
        )

    children: dict[tuple[Segment, ...], list[tuple[Segment, ...]]] = {key: [] for key in order}
    for array_segments in order:
        if WILDCARD in array_segments:
            parent, _relative = _split_last_wildcard(array_segments)
            children[parent].append(array_segments)

    built: dict[tuple[Segment, ...], ArrayBatchDescriptor] = {}

    def build(array_segments: tuple[Segment, ...]) -> ArrayBatchDescriptor:
        if array_segments in built:
            return built[array_segments]
        depth = sum(1 for seg in array_segments if seg == WILDCARD)
        parent_path = None
        if depth:
            parent_path = render_segments(_split_last_wildcard(array_segments)[0])
        child_pairs = tuple(
            (render_segments(_split_last_wildcard(child)[1]), build(child))
            for child in children[array_segments]
        )
        descriptor = ArrayBatchDescriptor(
            array_path=render_segments(array_segments),
            element_fields=tuple(elements[array_segments]),
            child_arrays=child_pairs,
            depth=depth,
            parent_path=parent_path,
        )
        built[array_segments] = descriptor
        return descriptor

    roots = tuple(build(key) for key in order if WILDCARD not in key)
    if roots:
        logger.debug(
            "Built array hierarchy: %s",
            ", ".join(f"{root.array_path} ({len(root.covered_paths())} fields)" for root in roots),
        )
    return roots


# ---------------------------------------------------------------------------
# Processing
# ---------------------------------------------------------------------------


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, str | bytes | bytearray)


@dataclass
class _CompiledElement:
    element: ElementField
    get: Callable[[Any], Any]
    exists: Callable[[Any], bool]
    put: Callable[[Any, Any], None] | None


class ArrayBatchProcessor:
    """Validates or parses every element of one array level and its children.

    In parse mode transforms start from the slots of *out*, a structural
    copy of the array supplied by the caller, and their results are written
    back there. The input array is only read.
    """

    def __init__(self, descriptor: ArrayBatchDescriptor, lookup: ValidatorLookup) -> None:
        self.descriptor = descriptor
        self._lookup = lookup
        self._fields = tuple(
            _CompiledElement(
                element=element,
                get=accessor_for(element.segments),
                exists=existence_for(element.segments),
                put=setter_for(element.segments) if element.segments else None,
            )
            for element in descriptor.element_fields
        )
        self._children = tuple(
            (
                key,
                accessor_for(_split_last_wildcard(parse_path(child.array_path).segments)[1]),
                ArrayBatchProcessor(child, lookup),
            )
            for key, child in descriptor.child_arrays
        )

    def process(
        self,
        array: Sequence[Any],
        scope: Scope,
        *,
        index_prefix: str | None = None,
        abort_early: bool = True,
        abort_early_on_each_field: bool = True,
        parse: bool = False,
        out: Any = None,
    ) -> list[ValidationError]:
        """Process *array* located at concrete path *index_prefix*.

        Returns the errors in detection order; an empty array is valid.
        """
        prefix = index_prefix if index_prefix is not None else self.descriptor.array_path
        errors: list[ValidationError] = []
        writable = parse and out is not None
        for index, element in enumerate(array):
            element_path = index_path(prefix, index)
            out_element = _item(out, index) if writable else MISSING
            failed: set[str] = set()

            for compiled in self._fields:
                relative = compiled.element.relative_path
                field_errors = self._run_field(
                    compiled,
                    element,
                    element_path,
                    scope,
                    abort_early_on_each_field=abort_early_on_each_field,
                    parse=parse,
                    out=out,
                    out_element=out_element,
                    index=index,
                )
                if field_errors:
                    failed.add(relative)
                    errors.extend(field_errors)
                    if abort_early:
                        return errors
                elif writable and not relative:
                    out_element = _item(out, index)

            for key, get_child, processor in self._children:
                if key in failed:
                    continue
                child = get_child(element)
                if not _is_sequence(child) or not child:
                    continue
                child_out = get_child(out_element) if writable else None
                child_errors = processor.process(
                    child,
                    scope,
                    index_prefix=join_path(element_path, key),
                    abort_early=abort_early,
                    abort_early_on_each_field=abort_early_on_each_field,
                    parse=parse,
                    out=child_out if _is_sequence(child_out) else None,
                )
                if child_errors:
                    errors.extend(child_errors)
                    if abort_early:
                        return errors
        return errors

    def _run_field(
        self,
        compiled: _CompiledElement,
        element: Any,
        element_path: str,
        scope: Scope,
        *,
        abort_early_on_each_field: bool,
        parse: bool,
        out: Any,
        out_element: Any,
        index: int,
    ) -> list[ValidationError]:
        definition = compiled.element.definition
        field_path = join_path(element_path, compiled.element.relative_path)
        present = compiled.exists(element)
        presence = resolve_presence(definition, present)
        if presence is Presence.SKIP:
            return []
        if presence is Presence.REQUIRED:
            return [required_error(field_path)]

        value = compiled.get(element)
        if compiled.put is None:
            current = _item(out, index)
        else:
            current = compiled.get(out_element) if out_element is not MISSING else MISSING
        validator = self._lookup(definition.path)
        errors, result = validator.run(
            value,
            scope,
            field_path,
            abort_early_on_each_field=abort_early_on_each_field,
            parse=parse,
            parse_from=current,
        )
        if errors:
            return errors
        if not parse or result is current or result is MISSING:
            return []
        if compiled.put is None:
            if hasattr(out, "__setitem__"):
                out[index] = result
        else:
            compiled.put(out_element, result)
        return []


def _item(container: Any, index: int) -> Any:
    if _is_sequence(container) and 0 <= index < len(container):
        return container[index]
    return MISSING

