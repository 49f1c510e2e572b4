"""Bundled example data."""

from __future__ import annotations

from importlib import resources

import pandas as pd

DATASET_EX = "dataset_ex.csv"


def load_dataset_ex() -> pd.DataFrame:
    """Return the simulated teaching dataset: 10 subjects observed at 5 timepoints.

    Columns are ``Person`` (integer subject ID), ``Time`` (visit number) and
    ``Score`` (outcome measured at each visit).
    """

    source = resources.files("longflag").joinpath("data").joinpath(DATASET_EX)
    with source.open("r", encoding="utf-8") as handle:
        df = pd.read_csv(handle)
    df["Person"] = df["Person"].astype(int)
    df["Time"] = df["Time"].astype(float)
    df["Score"] = df["Score"].astype(float)
    return df
