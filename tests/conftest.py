"""Shared pytest fixtures for valchain tests."""

from __future__ import annotations

import os

import pytest

from valchain.domain.rules import Scope
from valchain.registry.registry import RuleRegistry, default_registry


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep ambient VALCHAIN_* variables out of every test."""
    for name in list(os.environ):
        if name.startswith("VALCHAIN_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def registry() -> RuleRegistry:
    """Fresh registry loaded with the builtin rules."""
    return default_registry()


@pytest.fixture
def scope() -> Scope:
    return Scope(record={})

