"""valchain: rule-chain validation and parse engine for nested records."""

from valchain.domain.fields import FieldDefinition
from valchain.domain.result import Result, ValidationError
from valchain.domain.types import MISSING
from valchain.engine.schema import Schema, build

__version__ = "0.1.0"

__all__ = [
    "MISSING",
    "FieldDefinition",
    "Result",
    "Schema",
    "ValidationError",
    "build",
]
