"""Exceptions raised by the change evaluator."""

from __future__ import annotations

from typing import Any, Optional


class LongflagError(ValueError):
    """Base class for evaluation failures."""


class SchemaError(LongflagError):
    """A required field is missing from the input table."""


class TypeCoercionError(LongflagError):
    """A time, value or threshold entry cannot be read as a number."""

    def __init__(self, message: str, *, row: Optional[Any] = None, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.row = row
        self.field = field


class InvalidMethodError(LongflagError):
    """The requested change method is not one of the supported variants."""


class EmptyInputError(LongflagError):
    """The input table has no rows and the caller asked for a hard failure."""
