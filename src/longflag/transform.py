"""Normalization of long-format tables ahead of change evaluation."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Iterable, Sequence, Union

import numpy as np
import pandas as pd

from .errors import SchemaError, TypeCoercionError

LOGGER = logging.getLogger(__name__)

WORKING_COLUMNS = ["group", "subject", "time", "value"]

Records = Union[pd.DataFrame, Iterable[Mapping]]


def _frame_from_mappings(rows: Sequence[Any], fields: Sequence[str]) -> pd.DataFrame:
    for position, row in enumerate(rows):
        if not isinstance(row, Mapping):
            raise SchemaError(f"Row {position} is not a mapping of field names to values")
        missing = [name for name in fields if name not in row]
        if missing:
            raise SchemaError(f"Row {position} is missing required fields: {missing}")
    return pd.DataFrame(
        {name: pd.Series([row[name] for row in rows], dtype=object) for name in dict.fromkeys(fields)},
        index=pd.RangeIndex(len(rows)),
    ).infer_objects()


def project(records: Records, subject_field: str, time_field: str, value_field: str) -> pd.DataFrame:
    """Return a frame holding only the three named fields, failing fast if any is absent."""
    fields = [subject_field, time_field, value_field]
    if isinstance(records, pd.DataFrame):
        missing = [name for name in dict.fromkeys(fields) if name not in records.columns]
        if missing:
            raise SchemaError(f"Input table missing required columns: {sorted(missing)}")
        return records.loc[:, list(dict.fromkeys(fields))].copy()
    if isinstance(records, (str, bytes)):
        raise SchemaError("Input records must be a table or a sequence of mappings")
    return _frame_from_mappings(list(records), fields)


def _coerce_numeric(column: pd.Series, field: str) -> pd.Series:
    if column.dtype == object:
        column = column.infer_objects()
    coerced = pd.to_numeric(column, errors="coerce")
    unparsable = coerced.isna().to_numpy() & column.notna().to_numpy()
    if unparsable.any():
        position = int(np.flatnonzero(unparsable)[0])
        label = column.index[position]
        raise TypeCoercionError(
            f"Row {label}: field {field!r} value {column.iloc[position]!r} is not numeric",
            row=label,
            field=field,
        )
    return coerced.mask(column.isna()).astype(float)


def _subject_ranks(subjects: pd.Series) -> np.ndarray:
    """Rank each row's subject ascending; mixed identifier types order by type name, then repr."""
    codes, uniques = pd.factorize(subjects, sort=False)
    keys = list(uniques)
    try:
        order = sorted(range(len(keys)), key=lambda idx: keys[idx])
    except TypeError:
        LOGGER.debug("Subject identifiers are not mutually orderable; ordering by type name and repr")
        order = sorted(range(len(keys)), key=lambda idx: (type(keys[idx]).__name__, repr(keys[idx])))
    ranks = np.empty(len(keys), dtype=np.int64)
    ranks[order] = np.arange(len(keys))
    return ranks[codes]


def normalize(records: Records, subject_field: str, time_field: str, value_field: str) -> pd.DataFrame:
    """Project, coerce and order the input into the working table.

    The result has columns ``group`` (integer subject rank), ``subject``, ``time``
    and ``value``. Rows are ordered by subject then ascending time; both sorts are
    stable so rows sharing a timepoint keep their input order. Missing times sort
    last within their subject.
    """

    projected = project(records, subject_field, time_field, value_field)
    subjects = projected[subject_field]
    if isinstance(subjects, pd.DataFrame):
        raise SchemaError(f"Input table has duplicate columns named {subject_field!r}")
    if subjects.isna().any():
        label = subjects.index[int(np.flatnonzero(subjects.isna().to_numpy())[0])]
        raise SchemaError(f"Row {label}: subject field {subject_field!r} is missing")

    working = pd.DataFrame(
        {
            "subject": subjects,
            "time": _coerce_numeric(projected[time_field], time_field),
            "value": _coerce_numeric(projected[value_field], value_field),
        },
        index=projected.index,
    )
    working.insert(0, "group", _subject_ranks(subjects))

    working = working.sort_values("time", kind="mergesort", na_position="last")
    working = working.sort_values("group", kind="mergesort").reset_index(drop=True)

    duplicates = int(working.duplicated(subset=["group", "time"]).sum())
    if duplicates:
        LOGGER.warning(
            "%d rows share a timepoint with an earlier row of the same subject; input order is kept",
            duplicates,
        )
    return working[WORKING_COLUMNS]


def group_boundaries(working: pd.DataFrame) -> tuple[pd.Series, pd.Series]:
    """Return masks marking the first and last row of every subject in the working table."""
    groups = working["group"]
    is_first = groups.ne(groups.shift())
    is_last = groups.ne(groups.shift(-1))
    return is_first, is_last
