"""Builtin rules exposed through the plugin hook like any third-party set."""

from __future__ import annotations

import pluggy

from valchain.registry.builtins import BUILTIN_FACTORIES
from valchain.registry.factories import RuleFactory

hookimpl = pluggy.HookimplMarker("valchain")


class BuiltinRulesPlugin:
    """Contributes every builtin factory to the registry."""

    @hookimpl
    def register_rules(self) -> list[RuleFactory]:
        return list(BUILTIN_FACTORIES)
