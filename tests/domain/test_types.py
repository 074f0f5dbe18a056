"""Tests for the MISSING sentinel and core enums."""

from __future__ import annotations

import copy
import pickle

from valchain.domain.types import MISSING, RuleCategory, SkipMode, ValueKind, is_absent


class TestMissing:
    def test_falsy(self) -> None:
        assert not MISSING

    def test_repr(self) -> None:
        assert repr(MISSING) == "MISSING"

    def test_distinct_from_none(self) -> None:
        assert MISSING is not None
        assert MISSING != None  # noqa: E711

    def test_copies_are_the_singleton(self) -> None:
        assert copy.copy(MISSING) is MISSING
        assert copy.deepcopy({"a": MISSING})["a"] is MISSING

    def test_pickle_round_trip(self) -> None:
        assert pickle.loads(pickle.dumps(MISSING)) is MISSING

    def test_is_absent(self) -> None:
        assert is_absent(None)
        assert is_absent(MISSING)
        assert not is_absent("")
        assert not is_absent(0)


class TestEnums:
    def test_category_values(self) -> None:
        assert RuleCategory("fieldReference") is RuleCategory.FIELD_REFERENCE
        assert RuleCategory("multiFieldReference") is RuleCategory.MULTI_FIELD_REFERENCE
        assert RuleCategory("arrayElement") is RuleCategory.ARRAY_ELEMENT
        assert len(RuleCategory) == 8

    def test_value_kinds(self) -> None:
        assert {kind.value for kind in ValueKind} == {
            "string",
            "number",
            "boolean",
            "array",
            "object",
            "date",
            "any",
            "union",
        }

    def test_skip_modes(self) -> None:
        assert SkipMode.ALL != SkipMode.REMAINING_RULES
