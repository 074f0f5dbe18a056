"""Build-time errors raised while assembling a schema.

Data failures never raise; they are returned inside a Result.
"""

from __future__ import annotations


class SchemaError(ValueError):
    """Base class for malformed schema or rule configuration."""


class InvalidPathError(SchemaError):
    """A field path is empty or syntactically malformed."""


class DuplicateFieldError(SchemaError):
    """Two field definitions share the same path."""


class UnknownRuleError(SchemaError):
    """No factory is registered under the requested rule name."""


class RuleArgumentError(SchemaError):
    """Arguments do not bind to the rule factory's parameters."""
