"""RuleRegistry: name -> factory lookup with per-category dispatch.

INVARIANT: Unknown names, bad arguments and duplicate registrations raise
at schema-build time. Nothing here runs while validating data.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from typing import Any

from valchain.domain.errors import UnknownRuleError
from valchain.domain.rules import MessageFn, Rule, Transform
from valchain.domain.types import RuleCategory
from valchain.registry.factories import BUILDERS, Composer, RuleFactory

logger = logging.getLogger(__name__)


class RuleRegistry:
    """Holds the named rule factories available to a schema.

    ``create`` looks up a factory by name and hands it to the builder
    registered for the factory's category. The typed shortcuts ``rule``,
    ``transform`` and ``composer`` additionally assert the category.
    """

    def __init__(self, factories: Iterable[RuleFactory] = ()) -> None:
        self._factories: dict[str, RuleFactory] = {}
        for factory in factories:
            self.register(factory)

    def register(self, factory: RuleFactory, *, replace: bool = False) -> None:
        """Add *factory*; duplicate names raise unless *replace* is set."""
        if not isinstance(factory, RuleFactory):
            msg = f"Expected a RuleFactory, got {type(factory).__name__}"
            raise TypeError(msg)
        if factory.category not in BUILDERS:
            msg = f"Rule {factory.name!r} has unsupported category {factory.category!r}"
            raise ValueError(msg)
        if factory.name in self._factories and not replace:
            msg = f"Rule {factory.name!r} is already registered"
            raise ValueError(msg)
        self._factories[factory.name] = factory
        logger.debug("Registered rule %s (%s)", factory.name, factory.category)

    def unregister(self, name: str) -> None:
        self._factories.pop(name, None)

    def get(self, name: str) -> RuleFactory:
        try:
            return self._factories[name]
        except KeyError:
            msg = f"Unknown rule {name!r}"
            raise UnknownRuleError(msg) from None

    def __contains__(self, name: object) -> bool:
        return name in self._factories

    def __iter__(self) -> Iterator[RuleFactory]:
        return iter(self._factories.values())

    def __len__(self) -> int:
        return len(self._factories)

    def names(self, category: RuleCategory | None = None) -> list[str]:
        return sorted(
            name
            for name, factory in self._factories.items()
            if category is None or factory.category == category
        )

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------

    def create(
        self,
        name: str,
        *args: Any,
        code: str | None = None,
        message: str | MessageFn | None = None,
        **kwargs: Any,
    ) -> Rule | Transform | Composer:
        """Build whatever the named factory produces from the call arguments."""
        factory = self.get(name)
        builder = BUILDERS[factory.category]
        return builder(factory, args, kwargs, code, message)

    def rule(
        self,
        name: str,
        *args: Any,
        code: str | None = None,
        message: str | MessageFn | None = None,
        **kwargs: Any,
    ) -> Rule:
        built = self.create(name, *args, code=code, message=message, **kwargs)
        if not isinstance(built, Rule):
            msg = f"{name!r} is a {self.get(name).category} factory, not a rule"
            raise TypeError(msg)
        return built

    def transform(self, name: str, *args: Any, **kwargs: Any) -> Transform:
        built = self.create(name, *args, **kwargs)
        if not isinstance(built, Transform):
            msg = f"{name!r} is a {self.get(name).category} factory, not a transform"
            raise TypeError(msg)
        return built

    def composer(self, name: str) -> Composer:
        built = self.create(name)
        if not isinstance(built, Composer):
            msg = f"{name!r} is a {self.get(name).category} factory, not composable"
            raise TypeError(msg)
        return built


def default_registry() -> RuleRegistry:
    """Registry pre-loaded with the builtin rules (no plugin discovery)."""
    from valchain.registry.builtins import BUILTIN_FACTORIES

    return RuleRegistry(BUILTIN_FACTORIES)
