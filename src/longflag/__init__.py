"""Flag meaningful change across repeated timepoints within subjects."""

from .datasets import load_dataset_ex
from .errors import (
    EmptyInputError,
    InvalidMethodError,
    LongflagError,
    SchemaError,
    TypeCoercionError,
)
from .evaluate import evaluate, flag_changes
from .schema import ChangeMethod, IntervalChange, SubjectChange, validate_results

__all__ = [
    "ChangeMethod",
    "EmptyInputError",
    "IntervalChange",
    "InvalidMethodError",
    "LongflagError",
    "SchemaError",
    "SubjectChange",
    "TypeCoercionError",
    "evaluate",
    "flag_changes",
    "load_dataset_ex",
    "validate_results",
]
