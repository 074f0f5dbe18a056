"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, valchain.toml only contains
overrides. The engine receives these models explicitly; it never reads
the environment itself.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field

StrategyChoice = Literal["auto", "skip_aware", "fast_separated"]


class EngineConfig(BaseModel):
    """[engine] section."""

    model_config = {"frozen": True}

    strategy: StrategyChoice = "auto"
    specialize: bool = True
    max_recursion_depth: int = Field(default=10, ge=1)
    abort_early: bool = True
    abort_early_on_each_field: bool = True


class PluginsConfig(BaseModel):
    """[plugins] section."""

    model_config = {"frozen": True}

    entry_points: bool = True
    local_dir: Path | None = None


class LoggingConfig(BaseModel):
    """[logging] section."""

    model_config = {"frozen": True}

    verbose: bool = False
    log_json: bool = False


class ValidationOptions(BaseModel):
    """Per-call options for validate/parse.

    Attributes:
        abort_early: Stop at the first failing field.
        abort_early_on_each_field: Stop each field's chain at its first
            failing rule.
        context: Already-resolved external context for context rules.
    """

    model_config = {"frozen": True, "arbitrary_types_allowed": True}

    abort_early: bool = True
    abort_early_on_each_field: bool = True
    context: Any = None

    @classmethod
    def from_engine(cls, engine: EngineConfig, **overrides: Any) -> ValidationOptions:
        values: dict[str, Any] = {
            "abort_early": engine.abort_early,
            "abort_early_on_each_field": engine.abort_early_on_each_field,
        }
        values.update(overrides)
        return cls(**values)
