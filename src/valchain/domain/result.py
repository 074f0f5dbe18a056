"""Result and ValidationError: the return contract of every validate/parse call.

INVARIANT: Data failures are returned as a failed Result, never raised.
Every error path is concrete (wildcards already replaced by indices).
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel


class ValidationError(BaseModel):
    """A single failed check at a concrete path."""

    model_config = {"frozen": True}

    path: str
    code: str
    message: str


class Result(BaseModel):
    """Outcome of validating or parsing a value.

    Attributes:
        ok: Whether every check passed.
        value: The validated input, or the parsed copy in parse mode.
            ``None`` on failure.
        errors: Failures in the order they were detected.
    """

    model_config = {"frozen": True}

    ok: bool
    value: Any = None
    errors: tuple[ValidationError, ...] = ()

    @classmethod
    def success(cls, value: Any) -> Result:
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, errors: Iterable[ValidationError]) -> Result:
        return cls(ok=False, errors=tuple(errors))

    @property
    def valid(self) -> bool:
        return self.ok

    @property
    def codes(self) -> list[str]:
        return [error.code for error in self.errors]

    @property
    def paths(self) -> list[str]:
        return [error.path for error in self.errors]

    def error_dicts(self) -> list[dict[str, str]]:
        """Errors in the plain ``{path, code, message}`` wire shape."""
        return [error.model_dump() for error in self.errors]
