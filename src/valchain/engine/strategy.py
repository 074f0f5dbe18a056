"""Static strategy selection for a compiled field validator.

Skip-aware evaluation is required whenever a rule can end the chain early
(a short-circuit signal or a null/missing skip flag). Chains without such
rules use the fast-separated strategy: all checks, then all transforms.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from valchain.config.models import StrategyChoice
from valchain.domain.rules import Rule
from valchain.domain.types import Strategy

logger = logging.getLogger(__name__)


def can_short_circuit(rules: Sequence[Rule]) -> bool:
    return any(rule.can_short_circuit for rule in rules)


def select_strategy(
    rules: Sequence[Rule],
    requested: StrategyChoice = "auto",
    *,
    path: str = "",
) -> Strategy:
    """Pick the strategy for *rules*, honouring a forced choice when safe."""
    needs_skip = can_short_circuit(rules)
    if requested == "auto":
        return Strategy.SKIP_AWARE if needs_skip else Strategy.FAST_SEPARATED
    if requested == Strategy.SKIP_AWARE:
        return Strategy.SKIP_AWARE
    if needs_skip:
        logger.warning(
            "Field %s has short-circuiting rules; using skip_aware instead of fast_separated",
            path or "<field>",
        )
        return Strategy.SKIP_AWARE
    return Strategy.FAST_SEPARATED
