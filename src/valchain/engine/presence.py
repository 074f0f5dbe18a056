"""Presence resolution shared by top-level fields, array elements and recursion.

An absent field is skipped when optional, gets a synthesized ``required``
error when nothing in its chain handles absence, and is otherwise handed
to its validator as :data:`MISSING`.
"""

from __future__ import annotations

from enum import StrEnum

from valchain.domain.fields import FieldDefinition
from valchain.domain.result import ValidationError

REQUIRED_CODE = "required"


class Presence(StrEnum):
    RUN = "run"
    SKIP = "skip"
    REQUIRED = "required"


def resolve_presence(definition: FieldDefinition, present: bool) -> Presence:
    if present:
        return Presence.RUN
    if definition.is_optional:
        return Presence.SKIP
    if not definition.has_required_rule:
        return Presence.REQUIRED
    return Presence.RUN


def required_error(path: str) -> ValidationError:
    return ValidationError(path=path, code=REQUIRED_CODE, message=f"Field '{path}' is required")


def root_required_error() -> ValidationError:
    return ValidationError(path="", code=REQUIRED_CODE, message="Value is required")
