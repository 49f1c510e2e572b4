"""Request and result models for change evaluation."""

from __future__ import annotations

from enum import Enum
import math
from typing import Any, Hashable, List, Optional, Union

import numpy as np
import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import InvalidMethodError, LongflagError, TypeCoercionError


class ChangeMethod(str, Enum):
    """How a subject's change is measured."""

    FIRST_LAST = "first_last"
    MEAN_CHANGE = "mean_change"
    ALL_TIMEPOINTS = "all_timepoints"

    @classmethod
    def parse(cls, method: Union["ChangeMethod", str]) -> "ChangeMethod":
        """Accept a member, its value (``"mean_change"``) or a name such as ``"MeanChange"`` or ``"MEAN_CHANGE"``."""
        if isinstance(method, cls):
            return method
        if isinstance(method, str):
            key = method.strip().replace("-", "_").lower().replace("_", "")
            for member in cls:
                if key == member.value.replace("_", ""):
                    return member
        choices = ", ".join(member.value for member in cls)
        raise InvalidMethodError(f"Unknown method {method!r}; expected one of: {choices}")


ID_COLUMN = "ID"

RESULT_COLUMNS = {
    ChangeMethod.FIRST_LAST: ["first_value", "last_value", "change", "flagged"],
    ChangeMethod.MEAN_CHANGE: ["change", "flagged"],
    ChangeMethod.ALL_TIMEPOINTS: ["from_time", "to_time", "change", "flagged"],
}


class EvaluationRequest(BaseModel):
    """Validated parameters for a single ``evaluate`` call."""

    subject_field: str = Field(..., min_length=1)
    time_field: str = Field(..., min_length=1)
    value_field: str = Field(..., min_length=1)
    threshold: float = Field(..., description="Cutoff compared against the absolute change.")
    method: ChangeMethod = ChangeMethod.FIRST_LAST
    id_column: str = Field(ID_COLUMN, min_length=1, description="Name of the subject column in results.")

    model_config = ConfigDict(extra="forbid", frozen=True)

    @field_validator("threshold", mode="before")
    @staticmethod
    def validate_threshold(value: Any) -> float:
        if isinstance(value, bool) or value is None:
            raise ValueError("threshold must be a real number")
        try:
            number = float(value)
        except (TypeError, ValueError) as exc:
            raise ValueError("threshold must be a real number") from exc
        if not math.isfinite(number):
            raise ValueError("threshold must be finite")
        return number

    @field_validator("method", mode="before")
    @staticmethod
    def validate_method(value: Any) -> ChangeMethod:
        return ChangeMethod.parse(value)

    @classmethod
    def build(cls, **params: Any) -> "EvaluationRequest":
        """Construct a request, mapping validation failures onto evaluator errors."""
        ChangeMethod.parse(params.get("method", ChangeMethod.FIRST_LAST))
        try:
            return cls(**params)
        except ValidationError as exc:
            fields = {str(err["loc"][0]) for err in exc.errors() if err["loc"]}
            if "threshold" in fields:
                raise TypeCoercionError(
                    f"threshold {params.get('threshold')!r} is not a finite number",
                    field="threshold",
                ) from exc
            raise LongflagError(f"Invalid evaluation parameters: {exc}") from exc


class SubjectChange(BaseModel):
    """One subject's summary under ``first_last`` or ``mean_change``."""

    subject: Hashable
    change: float
    flagged: Optional[bool] = Field(None, description="None when change is undefined.")
    first_value: Optional[float] = None
    last_value: Optional[float] = None

    model_config = ConfigDict(extra="forbid", frozen=True, arbitrary_types_allowed=True)


class IntervalChange(BaseModel):
    """Change between two consecutive timepoints of one subject."""

    subject: Hashable
    from_time: float
    to_time: float
    change: float
    flagged: Optional[bool] = None

    model_config = ConfigDict(extra="forbid", frozen=True, arbitrary_types_allowed=True)


def _clean(value: Any) -> Any:
    if value is pd.NA:
        return None
    if isinstance(value, np.generic):
        return value.item()
    return value


def validate_results(
    frame: pd.DataFrame,
    method: Union[ChangeMethod, str],
    id_column: str = ID_COLUMN,
) -> List[Union[SubjectChange, IntervalChange]]:
    """Return the rows of an ``evaluate`` result as frozen records."""
    method = ChangeMethod.parse(method)
    model = IntervalChange if method is ChangeMethod.ALL_TIMEPOINTS else SubjectChange
    records: List[Union[SubjectChange, IntervalChange]] = []
    for payload in frame.to_dict(orient="records"):
        payload = {key: _clean(value) for key, value in payload.items()}
        payload["subject"] = payload.pop(id_column)
        try:
            records.append(model(**payload))
        except ValidationError as exc:
            raise LongflagError(f"Result row failed schema validation: {exc}") from exc
    return records
