"""Builtin rule and transform factories."""

from __future__ import annotations

from valchain.registry.builtins import (
    common,
    conditional,
    containers,
    numeric,
    references,
    strings,
    transforms,
)
from valchain.registry.factories import RuleFactory

BUILTIN_FACTORIES: tuple[RuleFactory, ...] = (
    *common.FACTORIES,
    *conditional.FACTORIES,
    *references.FACTORIES,
    *strings.FACTORIES,
    *numeric.FACTORIES,
    *containers.FACTORIES,
    *transforms.FACTORIES,
)

__all__ = ["BUILTIN_FACTORIES"]
