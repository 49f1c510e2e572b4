"""Flag meaningful within-subject change in long-format repeated-measures data."""

from __future__ import annotations

import logging
from typing import Callable, Dict, Union

import pandas as pd

from .errors import EmptyInputError
from .schema import ID_COLUMN, RESULT_COLUMNS, ChangeMethod, EvaluationRequest
from .transform import Records, group_boundaries, normalize

LOGGER = logging.getLogger(__name__)


def flag_changes(change: pd.Series, threshold: float) -> pd.Series:
    """Return ``|change| >= threshold`` as a nullable boolean, ``<NA>`` where change is undefined."""
    flagged = change.abs().ge(threshold).astype("boolean")
    return flagged.mask(change.isna())


def _first_last(working: pd.DataFrame) -> pd.DataFrame:
    is_first, is_last = group_boundaries(working)
    first = working.loc[is_first].reset_index(drop=True)
    last = working.loc[is_last].reset_index(drop=True)
    return pd.DataFrame(
        {
            "subject": first["subject"],
            "first_value": first["value"],
            "last_value": last["value"],
            "change": last["value"] - first["value"],
        }
    )


def _mean_change(working: pd.DataFrame) -> pd.DataFrame:
    steps = working.assign(step_change=working.groupby("group", sort=False)["value"].diff())
    steps = steps.dropna(subset=["step_change"])
    summary = steps.groupby("group", sort=True).agg(
        subject=("subject", "first"),
        change=("step_change", "mean"),
    )
    return summary.reset_index(drop=True)


def _all_timepoints(working: pd.DataFrame) -> pd.DataFrame:
    _, is_last = group_boundaries(working)
    following = working[["time", "value"]].shift(-1)
    intervals = pd.DataFrame(
        {
            "subject": working["subject"],
            "from_time": working["time"],
            "to_time": following["time"],
            "change": following["value"] - working["value"],
        }
    )
    return intervals.loc[~is_last].reset_index(drop=True)


STRATEGIES: Dict[ChangeMethod, Callable[[pd.DataFrame], pd.DataFrame]] = {
    ChangeMethod.FIRST_LAST: _first_last,
    ChangeMethod.MEAN_CHANGE: _mean_change,
    ChangeMethod.ALL_TIMEPOINTS: _all_timepoints,
}


def _empty_result(id_column: str, method: ChangeMethod) -> pd.DataFrame:
    columns = {id_column: pd.Series(dtype=object)}
    for name in RESULT_COLUMNS[method]:
        columns[name] = pd.Series(dtype="boolean" if name == "flagged" else float)
    return pd.DataFrame(columns)


def evaluate(
    records: Records,
    subject_field: str,
    time_field: str,
    value_field: str,
    threshold: float,
    method: Union[ChangeMethod, str] = ChangeMethod.FIRST_LAST,
    *,
    id_column: str = ID_COLUMN,
    allow_empty: bool = True,
) -> pd.DataFrame:
    """Identify changes across repeated timepoints within subjects.

    ``method`` selects how change is measured:

    * ``first_last``: last value minus first value, one row per subject.
    * ``mean_change``: mean of the stepwise differences, one row per subject.
      Subjects without a defined step (a single observation) are omitted.
    * ``all_timepoints``: difference between each pair of consecutive timepoints,
      one row per pair with ``from_time`` and ``to_time``.

    A row is flagged when ``abs(change) >= threshold``. The comparison uses the
    absolute change, so a negative threshold flags every defined change.
    ``flagged`` is ``<NA>`` when the change itself is undefined.

    Subject identifiers appear in an ``ID`` column; pass ``id_column`` to name it
    differently, for example after ``subject_field``. Empty input yields an empty
    frame unless ``allow_empty`` is false, in which case :class:`EmptyInputError`
    is raised.
    """

    request = EvaluationRequest.build(
        subject_field=subject_field,
        time_field=time_field,
        value_field=value_field,
        threshold=threshold,
        method=method,
        id_column=id_column,
    )
    if request.threshold < 0:
        LOGGER.warning(
            "Negative threshold %s: absolute changes always meet it, every defined change is flagged",
            request.threshold,
        )

    working = normalize(records, request.subject_field, request.time_field, request.value_field)
    if working.empty:
        if not allow_empty:
            raise EmptyInputError("Input table has no rows")
        LOGGER.info("Input table is empty; returning no %s results", request.method.value)
        return _empty_result(request.id_column, request.method)

    result = STRATEGIES[request.method](working)
    result["flagged"] = flag_changes(result["change"], request.threshold)
    result = result.rename(columns={"subject": request.id_column})
    result = result[[request.id_column, *RESULT_COLUMNS[request.method]]]

    LOGGER.debug(
        "Evaluated %d rows across %d subjects with %s: %d results, %d flagged",
        len(working),
        working["group"].nunique(),
        request.method.value,
        len(result),
        int(result["flagged"].sum()),
    )
    return result
