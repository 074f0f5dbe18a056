"""Rule registry, factories and plugin loading.

Discovery: entry_points (``valchain.rules`` group) via pluggy, plus
single-file plugins from a local directory.
INVARIANT: Plugin failures are warnings, never errors.
"""

from valchain.registry.factories import (
    Composer,
    ConditionalParts,
    ContextRuleOptions,
    RuleFactory,
)
from valchain.registry.manager import PluginManager
from valchain.registry.registry import RuleRegistry, default_registry

__all__ = [
    "Composer",
    "ConditionalParts",
    "ContextRuleOptions",
    "PluginManager",
    "RuleFactory",
    "RuleRegistry",
    "default_registry",
]
