"""Field path parsing and compiled accessors.

A field path is a chain of keys joined by ``.``. Wildcards mark "every
element of this sequence" and may be written in bracket form
(``items[*].name``, ``matrix[*][*]``) or in the legacy dot-star form
(``items.*.name``). Both spellings normalize to the same canonical bracket
form. Numeric brackets (``items[0]``) address a single element.

Accessors never raise on missing data: any absent or non-container
intermediate yields :data:`MISSING`.
"""

from __future__ import annotations

import re
from collections.abc import (
    Callable,
    Iterator,
    Mapping,
    MutableMapping,
    MutableSequence,
    Sequence,
)
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from valchain.domain.errors import InvalidPathError
from valchain.domain.types import MISSING

WILDCARD = "*"

_BRACKET_RE = re.compile(r"\[(\*|\d+)\]")

Segment = str | int
Accessor = Callable[[Any], Any]
Setter = Callable[[Any, Any], None]
ExistenceCheck = Callable[[Any], bool]


@dataclass(frozen=True)
class ParsedPath:
    """Tokenized field path.

    Attributes:
        segments: Mapping keys (``str``), element indices (``int``) and
            wildcard markers (``"*"``) in order.
        canonical: Normalized spelling with bracketed wildcards.
    """

    segments: tuple[Segment, ...]
    canonical: str

    @property
    def has_wildcard(self) -> bool:
        return WILDCARD in self.segments

    @property
    def wildcard_count(self) -> int:
        return sum(1 for seg in self.segments if seg == WILDCARD)

    @property
    def array_prefix(self) -> str:
        """Canonical path of the sequence reached before the first wildcard."""
        if not self.has_wildcard:
            return self.canonical
        return render_segments(self.segments[: self.segments.index(WILDCARD)])

    @property
    def parent(self) -> ParsedPath | None:
        if len(self.segments) <= 1:
            return None
        parent_segments = self.segments[:-1]
        return ParsedPath(parent_segments, render_segments(parent_segments))


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


@lru_cache(maxsize=1024)
def parse_path(path: str) -> ParsedPath:
    """Tokenize *path*, raising :class:`InvalidPathError` when malformed."""
    if not isinstance(path, str) or not path.strip():
        msg = "Field path must be a non-empty string"
        raise InvalidPathError(msg)

    segments: list[Segment] = []
    for part in path.split("."):
        if part == WILDCARD:
            segments.append(WILDCARD)
            continue
        head, bracket, rest = part.partition("[")
        if not head and not bracket:
            msg = f"Field path {path!r} contains an empty segment"
            raise InvalidPathError(msg)
        if head:
            if "]" in head:
                msg = f"Field path {path!r} has an unbalanced bracket"
                raise InvalidPathError(msg)
            segments.append(head)
        if bracket:
            segments.extend(_parse_brackets(path, bracket + rest))

    if segments[0] == WILDCARD or isinstance(segments[0], int):
        msg = f"Field path {path!r} must start with a key, not an index"
        raise InvalidPathError(msg)

    return ParsedPath(tuple(segments), render_segments(segments))


def _parse_brackets(path: str, text: str) -> list[Segment]:
    found: list[Segment] = []
    pos = 0
    while pos < len(text):
        match = _BRACKET_RE.match(text, pos)
        if match is None:
            msg = f"Field path {path!r} has a malformed index near {text[pos:]!r}"
            raise InvalidPathError(msg)
        token = match.group(1)
        found.append(WILDCARD if token == WILDCARD else int(token))
        pos = match.end()
    return found


def render_segments(segments: Sequence[Segment]) -> str:
    """Canonical spelling of *segments*; a leading index renders as ``[n]``."""
    out: list[str] = []
    for seg in segments:
        if seg == WILDCARD:
            out.append("[*]")
        elif isinstance(seg, int):
            out.append(f"[{seg}]")
        elif out:
            out.append(f".{seg}")
        else:
            out.append(seg)
    return "".join(out)


def normalize_path(path: str) -> str:
    """Return the canonical spelling of *path*."""
    return parse_path(path).canonical


def join_path(prefix: str, rest: str) -> str:
    """Concatenate two concrete path fragments."""
    if not prefix:
        return rest
    if not rest:
        return prefix
    if rest.startswith("["):
        return f"{prefix}{rest}"
    return f"{prefix}.{rest}"


def index_path(prefix: str, index: int) -> str:
    return f"{prefix}[{index}]"


def is_ancestor(ancestor: str, path: str) -> bool:
    """Whether canonical *ancestor* is a strict prefix of canonical *path*."""
    if len(path) <= len(ancestor) or not path.startswith(ancestor):
        return False
    return path[len(ancestor)] in ".["


# ---------------------------------------------------------------------------
# Compiled accessors
# ---------------------------------------------------------------------------


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, str | bytes | bytearray)


def _step(container: Any, segment: Segment) -> Any:
    if isinstance(container, Mapping):
        return container.get(segment, MISSING)
    if _is_sequence(container):
        index = _index_of(segment)
        if 0 <= index < len(container):
            return container[index]
    return MISSING


def _plain_segments(parsed: ParsedPath) -> tuple[Segment, ...]:
    if parsed.has_wildcard:
        return parsed.segments[: parsed.segments.index(WILDCARD)]
    return parsed.segments


def _index_of(segment: Segment) -> int:
    if isinstance(segment, int):
        return segment
    return int(segment) if segment.isdigit() else -1


def accessor_for(segments: Sequence[Segment]) -> Accessor:
    """Getter over already-parsed wildcard-free *segments*.

    An empty segment tuple addresses the value itself.
    """
    segments = tuple(segments)

    if not segments:
        return lambda record: record

    if len(segments) == 1 and isinstance(segments[0], str):
        only = segments[0]

        def get_one(record: Any) -> Any:
            if isinstance(record, Mapping):
                return record.get(only, MISSING)
            return _step(record, only)

        return get_one

    def get(record: Any) -> Any:
        current = record
        for seg in segments:
            if current is None or current is MISSING:
                return MISSING
            current = _step(current, seg)
        return current

    return get


def existence_for(segments: Sequence[Segment]) -> ExistenceCheck:
    """Presence predicate over wildcard-free *segments*; ``None`` counts as present."""
    segments = tuple(segments)
    if not segments:
        return lambda record: record is not MISSING
    parent_get = accessor_for(segments[:-1])
    last = segments[-1]

    def exists(record: Any) -> bool:
        container = parent_get(record)
        if isinstance(container, Mapping):
            return last in container
        if _is_sequence(container):
            return 0 <= _index_of(last) < len(container)
        return False

    return exists


def setter_for(segments: Sequence[Segment]) -> Setter:
    """Writer over wildcard-free *segments* that creates missing intermediate dicts.

    Intermediates that exist but are neither mappings nor sequences are
    left untouched and the write is dropped, since no value can live there.
    """
    segments = tuple(segments)
    if not segments or WILDCARD in segments:
        msg = f"Cannot compile a setter for segments {segments!r}"
        raise InvalidPathError(msg)

    def set_value(record: Any, value: Any) -> None:
        current = record
        for seg in segments[:-1]:
            child = _step(current, seg)
            if child is None or child is MISSING:
                child = {}
                if not _assign(current, seg, child):
                    return
            elif not isinstance(child, MutableMapping | MutableSequence):
                return
            current = child
        _assign(current, segments[-1], value)

    return set_value


def compile_accessor(path: str) -> Accessor:
    """Build a getter for *path*.

    For a wildcard path the getter stops at the sequence before the first
    wildcard; element expansion belongs to the array batch processor.
    """
    return accessor_for(_plain_segments(parse_path(path)))


def compile_existence_check(path: str) -> ExistenceCheck:
    """Build a predicate telling whether the final key of *path* is present."""
    return existence_for(_plain_segments(parse_path(path)))


def compile_setter(path: str) -> Setter:
    """Build a writer for *path*, creating missing intermediate dicts."""
    parsed = parse_path(path)
    if parsed.has_wildcard:
        msg = f"Cannot compile a setter for wildcard path {path!r}"
        raise InvalidPathError(msg)
    return setter_for(parsed.segments)


def _assign(container: Any, segment: Segment, value: Any) -> bool:
    if isinstance(container, MutableMapping):
        container[segment] = value
        return True
    if isinstance(container, MutableSequence):
        index = _index_of(segment)
        if 0 <= index < len(container):
            container[index] = value
            return True
    return False


# ---------------------------------------------------------------------------
# Wildcard expansion
# ---------------------------------------------------------------------------


def iter_concrete(record: Any, path: str) -> Iterator[tuple[str, Any, bool]]:
    """Expand every wildcard in *path* against *record*.

    Yields ``(concrete_path, value, present)`` per leaf. Missing
    intermediates yield a single absent leaf unless a wildcard remains
    below them, in which case there is nothing to expand.
    """
    yield from _expand(record, parse_path(path).segments, "")


def _expand(
    current: Any,
    segments: tuple[Segment, ...],
    prefix: str,
) -> Iterator[tuple[str, Any, bool]]:
    seg, rest = segments[0], segments[1:]
    if seg == WILDCARD:
        if not _is_sequence(current):
            return
        for i, item in enumerate(current):
            item_path = index_path(prefix, i)
            if rest:
                yield from _expand(item, rest, item_path)
            else:
                yield item_path, item, True
        return

    here = index_path(prefix, seg) if isinstance(seg, int) else join_path(prefix, seg)
    present = existence_for((seg,))(current)
    child = _step(current, seg) if present else MISSING
    if not rest:
        yield here, child, present
        return
    if child is None or child is MISSING:
        if WILDCARD not in rest:
            yield join_path(here, render_segments(rest)), MISSING, False
        return
    yield from _expand(child, rest, here)


def iter_slots(record: Any, segments: Sequence[Segment]) -> Iterator[tuple[Any, Segment]]:
    """Yield ``(container, key)`` for every existing parent of the final segment.

    Wildcards fan out over existing sequences (a trailing wildcard yields
    one slot per element); missing intermediates end that branch.
    """
    segments = tuple(segments)
    seg, rest = segments[0], segments[1:]
    if seg == WILDCARD:
        if not _is_sequence(record):
            return
        if not rest:
            for i in range(len(record)):
                yield record, i
            return
        for item in record:
            yield from iter_slots(item, rest)
        return
    if not rest:
        if isinstance(record, MutableMapping | MutableSequence):
            yield record, seg
        return
    child = _step(record, seg)
    if child is None or child is MISSING:
        return
    yield from iter_slots(child, rest)
