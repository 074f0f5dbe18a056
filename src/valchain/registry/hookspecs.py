"""Pluggy hook specifications for valchain rule plugins.

One setup-time hook lets a plugin contribute rule factories to a registry.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from valchain.registry.factories import RuleFactory

hookspec = pluggy.HookspecMarker("valchain")


class ValchainHookSpec:
    """Hook specifications for the valchain plugin system."""

    @hookspec
    def register_rules(self) -> list[RuleFactory] | None:
        """Return rule factories to add to the registry."""
